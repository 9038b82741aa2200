# apps/accounts/migrations/0001_initial.py

from django.conf import settings
from django.db import migrations, models
import django.core.validators
import django.db.models.deletion
import django_countries.fields
import uuid


PHONE_VALIDATOR = django.core.validators.RegexValidator(
    message="Phone number must be entered in the format: '+999999999'. Up to 15 digits allowed.",
    regex='^\\+?1?\\d{9,15}$',
)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='School',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('full_name', models.CharField(help_text='Official full name of the school', max_length=191, unique=True, verbose_name='Full School Name')),
                ('code', models.SlugField(help_text='Short unique code used by scheduled jobs and exports', max_length=50, unique=True, verbose_name='School Code')),
                ('receipt_name', models.CharField(blank=True, help_text='Name to appear on receipts', max_length=191, null=True, verbose_name='Receipt Name')),
                ('school_type', models.CharField(choices=[('KINDERGARTEN', 'Kindergarten/Nursery School'), ('PRIMARY', 'Primary School'), ('SECONDARY', 'Secondary School'), ('PRIMARY_SECONDARY', 'Primary & Secondary School'), ('VOCATIONAL', 'Vocational School')], default='PRIMARY_SECONDARY', max_length=30, verbose_name='School Type')),
                ('country', django_countries.fields.CountryField(default='IN', max_length=2, verbose_name='Country')),
                ('phone', models.CharField(blank=True, max_length=20, validators=[PHONE_VALIDATOR], verbose_name='Phone')),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
            ],
            options={
                'verbose_name': 'School',
                'verbose_name_plural': 'Schools',
                'ordering': ['full_name'],
            },
        ),
        migrations.CreateModel(
            name='UserProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('SUPER_ADMIN', 'Super Administrator'), ('ADMINISTRATOR', 'School Administrator'), ('FINANCE_MANAGER', 'Finance Manager'), ('ACCOUNTANT', 'Accountant'), ('TEACHER', 'Teacher'), ('PARENT', 'Parent')], default='TEACHER', max_length=30, verbose_name='Role')),
                ('phone', models.CharField(blank=True, max_length=20, validators=[PHONE_VALIDATOR], verbose_name='Phone')),
                ('school', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='staff_profiles', to='accounts.school')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'User Profile',
                'verbose_name_plural': 'User Profiles',
                'indexes': [models.Index(fields=['school', 'role'], name='idx_profile_school_role')],
            },
        ),
    ]
