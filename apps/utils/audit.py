# utils/audit.py

import json
import logging
from decimal import Decimal

audit_logger = logging.getLogger("fee_audit")
logger = logging.getLogger(__name__)


def _json_default(value):
    if isinstance(value, Decimal):
        return str(value)
    return str(value)


def log_financial_activity(
    action,
    user_id=None,
    school=None,
    student=None,
    amount=None,
    target_object=None,
    old_values=None,
    new_values=None,
    notes=None,
    audit_info=None,
    risk_level='LOW',
):
    """
    Write a structured line to the fee audit log.

    The audit trail of record is the FeeTransaction table; this log is an
    operational mirror of it, so failures here never interrupt a payment.

    Args:
        action (str): Type of financial action (e.g., FEE_COLLECTED).
        user_id (str, optional): User performing the action.
        school (School, optional): Tenant the action belongs to.
        student (Student, optional): Related student.
        amount (Decimal, optional): Amount involved in the action.
        target_object (Model instance, optional): Object affected.
        old_values (dict, optional): Values before the change.
        new_values (dict, optional): Values after the change.
        notes (str, optional): Additional notes.
        audit_info (dict, optional): ip_address / device_info.
        risk_level (str, optional): 'LOW', 'MEDIUM', 'HIGH', 'CRITICAL'.
    """
    try:
        payload = {
            'action': action,
            'user_id': user_id,
            'school': str(school.pk) if school is not None else None,
            'student': str(student.pk) if student is not None else None,
            'amount': amount,
            'target': (
                f"{target_object.__class__.__name__}:{target_object.pk}"
                if target_object is not None else None
            ),
            'old_values': old_values or {},
            'new_values': new_values or {},
            'notes': notes,
            'ip_address': (audit_info or {}).get('ip_address'),
            'device_info': (audit_info or {}).get('device_info'),
            'risk_level': risk_level,
        }
        audit_logger.info(json.dumps(payload, default=_json_default, sort_keys=True))
    except Exception as e:
        logger.error(f"Error in financial activity logging: {e}", exc_info=True)
