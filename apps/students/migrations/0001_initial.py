# apps/students/migrations/0001_initial.py

from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('accounts', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Student',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, help_text='IP address from which this record was created', null=True, verbose_name='Created From IP')),
                ('updated_from_ip', models.GenericIPAddressField(blank=True, help_text='IP address from which this record was last updated', null=True, verbose_name='Updated From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('student_code', models.CharField(db_index=True, help_text='School-issued student identifier (unique within a school)', max_length=30, verbose_name='Student ID')),
                ('first_name', models.CharField(max_length=50, verbose_name='First Name')),
                ('last_name', models.CharField(blank=True, max_length=50, verbose_name='Last Name')),
                ('grade', models.CharField(db_index=True, max_length=20, verbose_name='Grade')),
                ('section', models.CharField(blank=True, max_length=10, verbose_name='Section')),
                ('roll_number', models.CharField(blank=True, max_length=20, verbose_name='Roll Number')),
                ('parent_contact', models.CharField(blank=True, db_index=True, help_text='Phone number of the parent/guardian responsible for fees', max_length=20, verbose_name='Parent Contact')),
                ('parent_email', models.EmailField(blank=True, max_length=254, verbose_name='Parent Email')),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='Active')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='students', to='accounts.school', verbose_name='School')),
            ],
            options={
                'verbose_name': 'Student',
                'verbose_name_plural': 'Students',
                'ordering': ['grade', 'section', 'roll_number'],
                'indexes': [models.Index(fields=['school', 'grade', 'section'], name='idx_student_school_grade')],
                'constraints': [models.UniqueConstraint(fields=('school', 'student_code'), name='uq_student_school_code')],
            },
        ),
    ]
