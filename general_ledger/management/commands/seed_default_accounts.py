# general_ledger/management/commands/seed_default_accounts.py
import logging

from django.core.management.base import BaseCommand, CommandError

from company.models import Company
from general_ledger.services.coa_service import seed_default_accounts

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Provisions the default Chart of Accounts for one company (or all active companies). Safe to re-run.'

    def add_arguments(self, parser):
        group = parser.add_mutually_exclusive_group(required=True)
        group.add_argument(
            '--company-subdomain', type=str,
            help='The unique subdomain prefix of the Company to seed.',
        )
        group.add_argument(
            '--all', action='store_true',
            help='Seed every active company.',
        )

    def handle(self, *args, **options):
        if options['all']:
            companies = list(Company.objects.filter(is_active=True, is_suspended_by_admin=False))
        else:
            subdomain = options['company_subdomain']
            try:
                companies = [Company.objects.get(subdomain_prefix=subdomain)]
            except Company.DoesNotExist:
                raise CommandError(f"Company with subdomain prefix '{subdomain}' not found.")

        for company in companies:
            if not company.effective_is_active:
                raise CommandError(f"Company '{company.name}' is inactive or suspended; cannot seed accounts.")
            created, skipped = seed_default_accounts(company)
            self.stdout.write(self.style.SUCCESS(
                f"--- {company.name} ({company.subdomain_prefix}): {created} account(s) created, {skipped} already present."
            ))
