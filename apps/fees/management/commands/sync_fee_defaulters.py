# fees/management/commands/sync_fee_defaulters.py

"""
Rebuild the fee defaulter index from the student fee ledgers.

USAGE EXAMPLES:
===============

# 1. Sync every active school using each school's grace period
python manage.py sync_fee_defaulters

# 2. Sync one school
python manage.py sync_fee_defaulters --school greenwood-high

# 3. Override the grace period
python manage.py sync_fee_defaulters --grace-days 14
"""

from django.core.management.base import BaseCommand, CommandError
import logging

from accounts.models import School
from core.models import FinancialSettings
from fees.models import FeeDefaulter
from utils.context import RequestContext

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Sync fee defaulters for one or all schools'

    def add_arguments(self, parser):
        parser.add_argument(
            '--school', type=str, default=None,
            help='Code of the school to sync (default: all active schools)'
        )
        parser.add_argument(
            '--grace-days', type=int, default=None,
            help="Days past the due date before a student counts as a defaulter "
                 "(default: the school's financial settings)"
        )

    def handle(self, *args, **options):
        grace_days = options['grace_days']
        if grace_days is not None and grace_days < 0:
            raise CommandError('--grace-days must not be negative')

        if options['school']:
            schools = School.objects.filter(code=options['school'])
            if not schools.exists():
                raise CommandError(f"School '{options['school']}' does not exist")
        else:
            schools = School.objects.filter(is_active=True)

        total_synced = total_removed = 0
        with RequestContext(request_path='manage.py sync_fee_defaulters'):
            for school in schools:
                school_grace = grace_days
                if school_grace is None:
                    school_grace = FinancialSettings.get_instance(school).grace_period_days

                result = FeeDefaulter.sync_defaulters_for_school(school, school_grace)
                total_synced += result['synced']
                total_removed += result['removed']

                self.stdout.write(
                    f"{school.code}: {result['synced']} synced, {result['removed']} removed "
                    f"(grace {school_grace} days)"
                )

        self.stdout.write(self.style.SUCCESS(
            f"Done: {total_synced} defaulter(s) synced, {total_removed} removed"
        ))
        logger.info(f"sync_fee_defaulters finished: {total_synced} synced, {total_removed} removed")
