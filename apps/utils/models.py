# utils/models.py

"""
Base model for the fee ledger with audit trail and timezone-aware
timestamp handling.

Key Features:
- UUID primary keys
- Automatic school timezone handling for created_at / updated_at
- User and IP tracking from the thread-local request context
- Change reason tracking
"""

from django.db import models
import uuid
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# BASE MODEL - SCHOOL-SPECIFIC DATA
# =============================================================================

class BaseModel(models.Model):
    """
    Abstract base model with audit trail capabilities.

    Features:
    - Automatic user tracking (who created/updated)
    - Real IP address tracking (where operations came from)
    - Change reason tracking (why changes were made)
    - School timezone-aware timestamps (when operations happened)

    User ids are stored as plain strings so ledger rows never carry a
    foreign key into the auth tables.
    """

    # Core identification
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Timestamp fields - set in save() using the school timezone
    created_at = models.DateTimeField(
        "Created At",
        db_index=True,
        help_text="When this record was created (in school's operational timezone)"
    )
    updated_at = models.DateTimeField(
        "Updated At",
        db_index=True,
        help_text="When this record was last updated (in school's operational timezone)"
    )

    # User tracking - CharField to avoid FK constraints into auth
    created_by_id = models.CharField(
        "Created By ID",
        max_length=50,
        null=True,
        blank=True,
        db_index=True,
        help_text="ID of user who created this record"
    )
    updated_by_id = models.CharField(
        "Updated By ID",
        max_length=50,
        null=True,
        blank=True,
        db_index=True,
        help_text="ID of user who last updated this record"
    )

    created_from_ip = models.GenericIPAddressField(
        "Created From IP",
        null=True,
        blank=True,
        help_text="IP address from which this record was created"
    )
    updated_from_ip = models.GenericIPAddressField(
        "Updated From IP",
        null=True,
        blank=True,
        help_text="IP address from which this record was last updated"
    )

    change_reason = models.CharField(
        "Change Reason",
        max_length=255,
        blank=True,
        null=True,
        help_text="Explanation for why this change was made"
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        """
        Override save to:
        1. Set timestamps in school timezone
        2. Populate audit trail fields (created_by, updated_by, IPs)
        """
        from utils.context import get_request_context
        from core.utils import get_school_current_time

        is_new = self._state.adding
        now = get_school_current_time()

        if is_new:
            if not self.created_at:
                self.created_at = now
            if not self.updated_at:
                self.updated_at = now
        else:
            self.updated_at = now

        context = get_request_context()

        if context:
            user = context.get('user')
            ip_address = context.get('ip_address')

            if is_new:
                if user and not self.created_by_id:
                    self.created_by_id = str(user.pk)
                if ip_address and not self.created_from_ip:
                    self.created_from_ip = ip_address

            if user:
                self.updated_by_id = str(user.pk)
            if ip_address:
                self.updated_from_ip = ip_address
        elif is_new:
            logger.debug(
                f"No request context available when creating {self.__class__.__name__}. "
                f"Audit fields will not be populated."
            )

        # update_fields saves must still persist the refreshed timestamp
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'updated_at' not in update_fields:
            kwargs['update_fields'] = list(update_fields) + ['updated_at']

        return super().save(*args, **kwargs)

    # -------------------------------------------------------------------------
    # AUDIT TRAIL HELPER METHODS
    # -------------------------------------------------------------------------

    def get_audit_trail(self):
        """
        Get audit information for this record.

        Returns:
            dict: Audit trail information
        """
        return {
            'id': str(self.id),
            'created_at': self.created_at,
            'created_by_id': self.created_by_id,
            'created_from_ip': self.created_from_ip,
            'updated_at': self.updated_at,
            'updated_by_id': self.updated_by_id,
            'updated_from_ip': self.updated_from_ip,
            'last_change_reason': self.change_reason,
        }
