# fees/signals.py

"""
Fee Management Signal Handlers

Auto-processing for:
- Ledger totals, status and version on every StudentFeeRecord save
- Transaction id generation and audit timestamp for fee transactions
- Audit logging of collected payments
"""

from django.db.models.signals import pre_save, post_save
from django.dispatch import receiver
import logging

from core.utils import get_school_current_time
from fees.utils import generate_transaction_id
from utils.audit import log_financial_activity

logger = logging.getLogger(__name__)


# =============================================================================
# LEDGER SIGNALS
# =============================================================================

@receiver(pre_save, sender='fees.StudentFeeRecord')
def student_fee_record_pre_save(sender, instance, **kwargs):
    """
    Pre-save processing for fee ledgers:
    - Recompute total paid, total due and status from the slots
    - Bump the version counter
    """
    instance.recalculate_totals()
    instance.version = (instance.version or 0) + 1


# =============================================================================
# TRANSACTION SIGNALS
# =============================================================================

@receiver(pre_save, sender='fees.FeeTransaction')
def fee_transaction_pre_save(sender, instance, **kwargs):
    """
    Pre-save processing for fee transactions:
    - Auto-generate transaction id using the school's prefix
    - Stamp the audit timestamp
    """
    if not instance.transaction_id:
        from core.models import FinancialSettings
        prefix = FinancialSettings.get_instance(instance.school).transaction_prefix
        instance.transaction_id = generate_transaction_id(prefix)
        logger.info(f"Generated transaction id: {instance.transaction_id}")

    if not instance.audit_timestamp:
        instance.audit_timestamp = get_school_current_time()


@receiver(post_save, sender='fees.FeeTransaction')
def fee_transaction_post_save(sender, instance, created, **kwargs):
    """Mirror every new transaction to the fee audit log"""
    if not created:
        return

    log_financial_activity(
        action='FEE_COLLECTED' if instance.transaction_type == 'payment' else instance.transaction_type.upper(),
        user_id=instance.collected_by_id,
        school=instance.school,
        student=instance.student,
        amount=instance.amount,
        target_object=instance,
        new_values={
            'transaction_id': instance.transaction_id,
            'payment_method': instance.payment_method,
            'month': instance.month,
            'fee_type': instance.fee_type,
        },
        notes=instance.remarks,
        audit_info={'ip_address': instance.ip_address, 'device_info': instance.device_info},
    )
