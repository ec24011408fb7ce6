# general_ledger/management/commands/reconcile_orphan_entries.py
from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError

from company.models import Company
from general_ledger.services.posting_service import reconcile_orphan_entries


class Command(BaseCommand):
    help = 'Removes posted journal entries that have no lines (left behind by a failed posting).'

    def add_arguments(self, parser):
        parser.add_argument(
            '--company-subdomain', type=str, default=None,
            help='Only check this company. Defaults to all companies.',
        )
        parser.add_argument(
            '--older-than', type=int, default=None, metavar='SECONDS',
            help='Grace period in seconds. Defaults to GL_ORPHAN_GRACE_SECONDS.',
        )

    def handle(self, *args, **options):
        company = None
        if options['company_subdomain']:
            try:
                company = Company.objects.get(subdomain_prefix=options['company_subdomain'])
            except Company.DoesNotExist:
                raise CommandError(f"Company with subdomain prefix '{options['company_subdomain']}' not found.")

        older_than = timedelta(seconds=options['older_than']) if options['older_than'] is not None else None
        removed = reconcile_orphan_entries(company=company, older_than=older_than)
        if removed:
            self.stdout.write(self.style.WARNING(f"Removed {len(removed)} orphan entr{'y' if len(removed) == 1 else 'ies'}: "
                                                 f"{', '.join(removed)}"))
        else:
            self.stdout.write(self.style.SUCCESS("No orphan journal entries found."))
