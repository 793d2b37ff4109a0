import os
import sys
import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'ticket_portal.settings')
os.environ.setdefault('USE_SQLITE_FOR_TESTS', 'true')


@pytest.fixture(autouse=True)
def webhook_settings(settings):
    """Point webhook delivery at a fixed test endpoint."""
    settings.WEBHOOK_URL = 'https://hooks.example.test/sales'
    settings.WEBHOOK_SECRET = 'test-webhook-secret'
    settings.WEBHOOK_TIMEOUT = 10.0
    settings.WEBHOOK_MAX_ATTEMPTS = 3
    settings.WEBHOOK_BACKOFF_SECONDS = 1.0
    settings.WEBHOOK_RESPONSE_BODY_LIMIT = 1000
    return settings


@pytest.fixture
def admin_profile(db):
    from sales.models import Profile
    return Profile.objects.create(name='Event Admin', role=Profile.Role.ADMIN)


@pytest.fixture
def partner(db):
    from sales.models import Profile
    return Profile.objects.create(
        name='Asha Rao',
        mobile='9123456780',
        partner_code='PTR001',
        role=Profile.Role.PARTNER,
    )


@pytest.fixture
def inactive_partner(db):
    from sales.models import Profile
    return Profile.objects.create(
        name='Dev Shah',
        mobile='9000000001',
        partner_code='PTR002',
        role=Profile.Role.PARTNER,
        is_active=False,
    )


@pytest.fixture
def silver_tier(db):
    from sales.models import TicketTier
    return TicketTier.objects.create(name='Silver', price=699, remaining_qty=5, initial_qty=5)


@pytest.fixture
def gold_tier(db):
    from sales.models import TicketTier
    return TicketTier.objects.create(name='Gold', price=999, remaining_qty=100, initial_qty=100)


@pytest.fixture
def make_sale(db, partner):
    """Factory for pending sales with line item snapshots."""
    from sales.models import Sale

    def _make(*items, status=Sale.Status.PENDING, owner=partner):
        tickets = [
            {'tier_id': str(tier.id), 'tier_name': tier.name, 'price': tier.price, 'qty': qty}
            for tier, qty in items
        ]
        return Sale.objects.create(
            partner=owner,
            status=status,
            buyer_name='Ravi Kumar',
            buyer_mobile='9876543210',
            transaction_id_last4='0099',
            screenshot_path='screenshots/1700000000-ab12cd.png',
            tickets_data=tickets,
            amount=sum(t['price'] * t['qty'] for t in tickets),
        )

    return _make
