# apps/fees/migrations/0001_initial.py

from decimal import Decimal
from django.db import migrations, models
import django.core.validators
import django.db.models.deletion
import uuid


MONTH_CHOICES = [
    (1, 'January'), (2, 'February'), (3, 'March'), (4, 'April'),
    (5, 'May'), (6, 'June'), (7, 'July'), (8, 'August'),
    (9, 'September'), (10, 'October'), (11, 'November'), (12, 'December'),
]

FEE_TYPE_CHOICES = [
    ('admission', 'Admission Fee'), ('annual', 'Annual Fee'), ('tuition', 'Tuition Fee'),
    ('exam', 'Exam Fee'), ('transport', 'Transport Fee'), ('library', 'Library Fee'),
    ('sports', 'Sports Fee'), ('computer', 'Computer Fee'), ('development', 'Development Fee'),
    ('other', 'Other'),
]

PAYMENT_STATUS_CHOICES = [
    ('pending', 'Pending'), ('partial', 'Partially Paid'), ('paid', 'Paid'),
    ('overdue', 'Overdue'), ('waived', 'Waived'),
]

NON_NEGATIVE = [django.core.validators.MinValueValidator(Decimal('0.00'))]


def audit_fields():
    return [
        ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
        ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
        ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
        ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
        ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
        ('created_from_ip', models.GenericIPAddressField(blank=True, help_text='IP address from which this record was created', null=True, verbose_name='Created From IP')),
        ('updated_from_ip', models.GenericIPAddressField(blank=True, help_text='IP address from which this record was last updated', null=True, verbose_name='Updated From IP')),
        ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
    ]


def waiver_fields():
    return [
        ('waived', models.BooleanField(default=False, verbose_name='Waived')),
        ('waiver_reason', models.CharField(blank=True, max_length=255, verbose_name='Waiver Reason')),
        ('waived_by_id', models.CharField(blank=True, max_length=50, null=True, verbose_name='Waived By ID')),
        ('waiver_date', models.DateTimeField(blank=True, null=True, verbose_name='Waiver Date')),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('accounts', '0001_initial'),
        ('students', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='FeeStructure',
            fields=audit_fields() + [
                ('grade', models.CharField(db_index=True, max_length=20, verbose_name='Grade')),
                ('academic_year', models.CharField(db_index=True, help_text='Format: YYYY-YYYY', max_length=9, verbose_name='Academic Year')),
                ('monthly_amount', models.DecimalField(decimal_places=2, help_text='Recurring amount charged every month', max_digits=12, validators=NON_NEGATIVE, verbose_name='Monthly Amount')),
                ('due_day', models.PositiveSmallIntegerField(default=10, help_text='Day of month the monthly fee falls due', validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(31)], verbose_name='Due Day')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='Active')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fee_structures', to='accounts.school', verbose_name='School')),
            ],
            options={
                'verbose_name': 'Fee Structure',
                'verbose_name_plural': 'Fee Structures',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['school', 'grade', 'academic_year', 'is_active'], name='idx_structure_lookup')],
            },
        ),
        migrations.CreateModel(
            name='FeeComponent',
            fields=audit_fields() + [
                ('fee_type', models.CharField(choices=FEE_TYPE_CHOICES, max_length=20, verbose_name='Fee Type')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=NON_NEGATIVE, verbose_name='Amount')),
                ('is_one_time', models.BooleanField(default=False, help_text='Charged once per academic year rather than monthly', verbose_name='One-Time')),
                ('structure', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='components', to='fees.feestructure', verbose_name='Fee Structure')),
            ],
            options={
                'verbose_name': 'Fee Component',
                'verbose_name_plural': 'Fee Components',
                'constraints': [models.UniqueConstraint(fields=('structure', 'fee_type'), name='uq_fee_component_structure_type')],
            },
        ),
        migrations.CreateModel(
            name='StudentFeeRecord',
            fields=audit_fields() + [
                ('grade', models.CharField(db_index=True, max_length=20, verbose_name='Grade')),
                ('academic_year', models.CharField(db_index=True, max_length=9, verbose_name='Academic Year')),
                ('total_fee_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Total Fee Amount')),
                ('total_paid_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Total Paid Amount')),
                ('total_due_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, verbose_name='Total Due Amount')),
                ('status', models.CharField(choices=PAYMENT_STATUS_CHOICES, db_index=True, default='pending', max_length=10, verbose_name='Status')),
                ('has_received_payment', models.BooleanField(default=False, help_text='Set once any payment has been applied to this ledger', verbose_name='Has Received Payment')),
                ('version', models.PositiveIntegerField(default=0, verbose_name='Version')),
                ('fee_structure', models.ForeignKey(blank=True, help_text='Structure the slots were generated from (may be superseded)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='fee_records', to='fees.feestructure', verbose_name='Fee Structure')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fee_records', to='accounts.school', verbose_name='School')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fee_records', to='students.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Student Fee Record',
                'verbose_name_plural': 'Student Fee Records',
                'ordering': ['-academic_year', 'grade'],
                'indexes': [
                    models.Index(fields=['school', 'academic_year', 'status'], name='idx_record_school_year'),
                    models.Index(fields=['school', 'grade'], name='idx_record_school_grade'),
                ],
                'constraints': [models.UniqueConstraint(fields=('student', 'academic_year'), name='uq_fee_record_student_year')],
            },
        ),
        migrations.CreateModel(
            name='MonthlyPayment',
            fields=audit_fields() + [
                ('month', models.PositiveSmallIntegerField(choices=MONTH_CHOICES, verbose_name='Month')),
                ('sequence', models.PositiveSmallIntegerField(help_text='Position of the month within the academic year (0-11)', verbose_name='Sequence')),
                ('due_amount', models.DecimalField(decimal_places=2, max_digits=12, validators=NON_NEGATIVE, verbose_name='Due Amount')),
                ('paid_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, validators=NON_NEGATIVE, verbose_name='Paid Amount')),
                ('late_fee', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, validators=NON_NEGATIVE, verbose_name='Late Fee')),
                ('status', models.CharField(choices=PAYMENT_STATUS_CHOICES, db_index=True, default='pending', max_length=10, verbose_name='Status')),
                ('due_date', models.DateField(db_index=True, verbose_name='Due Date')),
                ('paid_date', models.DateField(blank=True, null=True, verbose_name='Paid Date')),
            ] + waiver_fields() + [
                ('fee_record', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='monthly_payments', to='fees.studentfeerecord', verbose_name='Fee Record')),
            ],
            options={
                'verbose_name': 'Monthly Payment',
                'verbose_name_plural': 'Monthly Payments',
                'ordering': ['fee_record', 'sequence'],
                'indexes': [models.Index(fields=['status', 'waived', 'due_date'], name='idx_monthly_overdue')],
                'constraints': [models.UniqueConstraint(fields=('fee_record', 'month'), name='uq_monthly_payment_record_month')],
            },
        ),
        migrations.CreateModel(
            name='OneTimeFee',
            fields=audit_fields() + [
                ('fee_type', models.CharField(choices=FEE_TYPE_CHOICES, max_length=20, verbose_name='Fee Type')),
                ('due_amount', models.DecimalField(decimal_places=2, max_digits=12, validators=NON_NEGATIVE, verbose_name='Due Amount')),
                ('paid_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, validators=NON_NEGATIVE, verbose_name='Paid Amount')),
                ('status', models.CharField(choices=PAYMENT_STATUS_CHOICES, default='pending', max_length=10, verbose_name='Status')),
                ('due_date', models.DateField(blank=True, null=True, verbose_name='Due Date')),
                ('paid_date', models.DateField(blank=True, null=True, verbose_name='Paid Date')),
            ] + waiver_fields() + [
                ('fee_record', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='one_time_fees', to='fees.studentfeerecord', verbose_name='Fee Record')),
            ],
            options={
                'verbose_name': 'One-Time Fee',
                'verbose_name_plural': 'One-Time Fees',
                'ordering': ['fee_record', 'fee_type'],
                'constraints': [models.UniqueConstraint(fields=('fee_record', 'fee_type'), name='uq_one_time_fee_record_type')],
            },
        ),
        migrations.CreateModel(
            name='FeeDefaulter',
            fields=audit_fields() + [
                ('grade', models.CharField(db_index=True, max_length=20, verbose_name='Grade')),
                ('total_due_amount', models.DecimalField(decimal_places=2, max_digits=12, validators=NON_NEGATIVE, verbose_name='Total Due Amount')),
                ('overdue_months', models.JSONField(default=list, verbose_name='Overdue Months')),
                ('days_since_first_due', models.PositiveIntegerField(default=0, verbose_name='Days Since First Due')),
                ('last_reminder_date', models.DateTimeField(blank=True, null=True, verbose_name='Last Reminder Date')),
                ('notification_count', models.PositiveIntegerField(default=0, verbose_name='Notification Count')),
                ('fee_record', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='defaulter_entries', to='fees.studentfeerecord', verbose_name='Fee Record')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fee_defaulters', to='accounts.school', verbose_name='School')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fee_defaulter_entries', to='students.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Fee Defaulter',
                'verbose_name_plural': 'Fee Defaulters',
                'ordering': ['-days_since_first_due', '-total_due_amount'],
                'indexes': [
                    models.Index(fields=['school', 'days_since_first_due'], name='idx_defaulter_school_days'),
                    models.Index(fields=['school', 'total_due_amount'], name='idx_defaulter_school_due'),
                    models.Index(fields=['grade', 'days_since_first_due'], name='idx_defaulter_grade_days'),
                ],
                'constraints': [models.UniqueConstraint(fields=('student', 'fee_record'), name='uq_fee_defaulter_student_record')],
            },
        ),
        migrations.CreateModel(
            name='FeeTransaction',
            fields=audit_fields() + [
                ('transaction_id', models.CharField(db_index=True, max_length=40, unique=True, verbose_name='Transaction ID')),
                ('transaction_type', models.CharField(choices=[('payment', 'Payment'), ('refund', 'Refund'), ('adjustment', 'Adjustment'), ('late_fee', 'Late Fee'), ('waiver', 'Waiver')], default='payment', max_length=15, verbose_name='Transaction Type')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))], verbose_name='Amount')),
                ('payment_method', models.CharField(choices=[('cash', 'Cash'), ('card', 'Card'), ('bank_transfer', 'Bank Transfer'), ('upi', 'UPI'), ('cheque', 'Cheque'), ('online', 'Online')], max_length=20, verbose_name='Payment Method')),
                ('month', models.PositiveSmallIntegerField(blank=True, choices=MONTH_CHOICES, null=True, verbose_name='Month')),
                ('fee_type', models.CharField(blank=True, choices=FEE_TYPE_CHOICES, max_length=20, verbose_name='Fee Type')),
                ('collected_by_id', models.CharField(db_index=True, help_text='ID of the user who collected the payment', max_length=50, verbose_name='Collected By ID')),
                ('remarks', models.TextField(blank=True, verbose_name='Remarks')),
                ('status', models.CharField(choices=[('completed', 'Completed'), ('pending', 'Pending'), ('failed', 'Failed'), ('reversed', 'Reversed')], db_index=True, default='completed', max_length=10, verbose_name='Status')),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True, verbose_name='IP Address')),
                ('device_info', models.CharField(blank=True, max_length=255, verbose_name='Device Info')),
                ('audit_timestamp', models.DateTimeField(blank=True, null=True, verbose_name='Audit Timestamp')),
                ('fee_record', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='transactions', to='fees.studentfeerecord', verbose_name='Fee Record')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='fee_transactions', to='accounts.school', verbose_name='School')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='fee_transactions', to='students.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Fee Transaction',
                'verbose_name_plural': 'Fee Transactions',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['student', 'created_at'], name='idx_txn_student_created'),
                    models.Index(fields=['school', 'created_at'], name='idx_txn_school_created'),
                    models.Index(fields=['school', 'collected_by_id', 'created_at'], name='idx_txn_collector'),
                ],
            },
        ),
    ]
