"""
Create the default ticket tiers.
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from sales.models import TicketTier
from sales.services import inventory

DEFAULT_TIERS = [
    ('Silver', 699),
    ('Gold', 999),
    ('Diamond', 1499),
    ('Fanpit', 1999),
    ('VIP', 2499),
]


class Command(BaseCommand):
    help = "Create the default ticket tiers; existing tiers with the same name are left untouched."

    def add_arguments(self, parser):
        parser.add_argument('--quantity', type=int, default=100, help='Initial stock per tier')

    @transaction.atomic
    def handle(self, *args, **options):
        quantity = options['quantity']
        created = 0
        for name, price in DEFAULT_TIERS:
            if TicketTier.objects.filter(name=name).exists():
                self.stdout.write(f"Tier {name} exists, skipping")
                continue
            inventory.create_tier(name, price, quantity)
            created += 1
        self.stdout.write(self.style.SUCCESS(f"Created {created} tier(s)"))
