# apps/core/migrations/0001_initial.py

from decimal import Decimal
from django.db import migrations, models
import django.core.validators
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('accounts', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='FinancialSettings',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, help_text='IP address from which this record was created', null=True, verbose_name='Created From IP')),
                ('updated_from_ip', models.GenericIPAddressField(blank=True, help_text='IP address from which this record was last updated', null=True, verbose_name='Updated From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('school_currency', models.CharField(default='INR', help_text='Primary currency for this school (ISO 4217 code)', max_length=3, verbose_name='School Currency')),
                ('academic_year_start_month', models.PositiveSmallIntegerField(choices=[(1, 'January'), (2, 'February'), (3, 'March'), (4, 'April'), (5, 'May'), (6, 'June'), (7, 'July'), (8, 'August'), (9, 'September'), (10, 'October'), (11, 'November'), (12, 'December')], default=4, help_text='Month the fee year (and monthly ledger) starts', verbose_name='Academic Year Start Month')),
                ('default_due_day', models.PositiveSmallIntegerField(default=10, help_text='Day of month fees fall due when a structure does not say', validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(31)], verbose_name='Default Due Day')),
                ('late_fee_percentage', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal('0.00')), django.core.validators.MaxValueValidator(Decimal('100.00'))], verbose_name='Late Fee Percentage')),
                ('grace_period_days', models.PositiveIntegerField(default=7, help_text='Days after a due date before a student is listed as a defaulter', verbose_name='Grace Period (Days)')),
                ('reminder_interval_days', models.PositiveIntegerField(default=7, help_text='Minimum days between two reminders to the same defaulter', verbose_name='Reminder Interval (Days)')),
                ('transaction_prefix', models.CharField(default='TXN', help_text='Prefix for fee transaction ids', max_length=10, verbose_name='Transaction Number Prefix')),
                ('school', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='financial_settings', to='accounts.school', verbose_name='School')),
            ],
            options={
                'verbose_name': 'Financial Settings',
                'verbose_name_plural': 'Financial Settings',
            },
        ),
    ]
