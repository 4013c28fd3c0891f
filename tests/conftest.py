"""
Shared pytest fixtures.

The app is built with a provider factory that hands every tenant the same
in-memory FakeProvider, so tests can inspect the remote calls made and
make individual operations fail.
"""
from decimal import Decimal

import pytest

from cellarclub import create_app
from cellarclub.crm.base import CrmProvider, PromotionRef
from cellarclub.crm.factory import ProviderFactory
from cellarclub.discounts.commerce7 import PromotionKind
from cellarclub.extensions import db
from cellarclub.models import ClubProgram, ClubStage, Tenant, TierLoyaltyConfig
from cellarclub.utils.exceptions import NotFoundError, RemoteCallError


class FakeProvider(CrmProvider):
    """
    In-memory CRM.

    Add an operation name to ``fail`` to make it raise RemoteCallError, or
    to ``missing`` to make it raise NotFoundError.
    Every call is appended to ``calls`` as (operation, *args).
    """

    crm_type = 'commerce7'

    def __init__(self):
        self.calls = []
        self.fail = set()
        self.missing = set()
        self.clubs = {}
        self.promotions = {}
        self.loyalty_tiers = {}
        self.memberships = {}
        self.bonus_points = []
        self.webhooks = {}
        self.webhook_valid = True
        self._counter = 0

    def _next_id(self, prefix):
        self._counter += 1
        return f'{prefix}-{self._counter}'

    def _record(self, operation, *args):
        self.calls.append((operation,) + args)
        if operation in self.fail:
            raise RemoteCallError(f'{operation} failed', platform='fake', operation=operation)
        if operation in self.missing:
            raise NotFoundError('Remote object', args[0] if args else None)

    def count(self, operation):
        return sum(1 for call in self.calls if call[0] == operation)

    # Clubs

    def upsert_club(self, stage):
        self._record('upsert_club', stage.name)
        if stage.crm_club_id and stage.crm_club_id in self.clubs:
            self.clubs[stage.crm_club_id] = stage.name
            return stage.crm_club_id
        club_id = self._next_id('club')
        self.clubs[club_id] = stage.name
        return club_id

    def delete_club(self, club_id):
        self._record('delete_club', club_id)
        if club_id not in self.clubs:
            raise NotFoundError('Club', club_id)
        del self.clubs[club_id]

    # Promotions

    def create_promotion(self, discount, club_id):
        self._record('create_promotion', discount.title, club_id)
        promotion_id = self._next_id('promo')
        self.promotions[promotion_id] = discount
        return PromotionRef(id=promotion_id, title=discount.title)

    def update_promotion(self, promotion_id, discount, club_id, kind=PromotionKind.PROMOTION):
        self._record('update_promotion', promotion_id, discount.title)
        if promotion_id not in self.promotions:
            raise NotFoundError('Promotion', promotion_id)
        self.promotions[promotion_id] = discount
        return PromotionRef(id=promotion_id, title=discount.title, kind=PromotionKind(kind))

    def delete_promotion(self, promotion_id, kind=PromotionKind.PROMOTION):
        self._record('delete_promotion', promotion_id)
        if promotion_id not in self.promotions:
            raise NotFoundError('Promotion', promotion_id)
        del self.promotions[promotion_id]

    def get_promotion(self, promotion_id, kind=PromotionKind.PROMOTION):
        self._record('get_promotion', promotion_id)
        if promotion_id not in self.promotions:
            raise NotFoundError('Promotion', promotion_id)
        return self.promotions[promotion_id]

    # Loyalty

    def create_loyalty_tier(self, title, club_id, earn_rate, sort_order=0):
        self._record('create_loyalty_tier', title, club_id, earn_rate)
        tier_id = self._next_id('loyalty')
        self.loyalty_tiers[tier_id] = title
        return tier_id

    def update_loyalty_tier(self, loyalty_tier_id, title, club_id, earn_rate):
        self._record('update_loyalty_tier', loyalty_tier_id, earn_rate)
        if loyalty_tier_id not in self.loyalty_tiers:
            raise NotFoundError('Loyalty tier', loyalty_tier_id)
        self.loyalty_tiers[loyalty_tier_id] = title

    def delete_loyalty_tier(self, loyalty_tier_id):
        self._record('delete_loyalty_tier', loyalty_tier_id)
        if loyalty_tier_id not in self.loyalty_tiers:
            raise NotFoundError('Loyalty tier', loyalty_tier_id)
        del self.loyalty_tiers[loyalty_tier_id]

    def preload_bonus_points(self, customer_id, amount, label):
        self._record('preload_bonus_points', customer_id, amount, label)
        self.bonus_points.append((customer_id, amount, label))

    # Memberships

    def create_club_membership(self, request):
        self._record('create_club_membership', request.customer_id, request.club_id)
        membership_id = self._next_id('membership')
        self.memberships[membership_id] = request
        return membership_id

    # Webhooks

    def register_webhook(self, topic, address):
        self._record('register_webhook', topic, address)
        webhook_id = self._next_id('webhook')
        self.webhooks[webhook_id] = {'id': webhook_id, 'topic': topic, 'address': address}
        return webhook_id

    def list_webhooks(self):
        self._record('list_webhooks')
        return list(self.webhooks.values())

    def delete_webhook(self, webhook_id):
        self._record('delete_webhook', webhook_id)
        self.webhooks.pop(webhook_id, None)

    def validate_webhook(self, body, headers):
        self._record('validate_webhook')
        return self.webhook_valid


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def app(fake_provider):
    """Create application for testing."""
    factory = ProviderFactory({
        'commerce7': lambda tenant: fake_provider,
        'shopify': lambda tenant: fake_provider,
    })
    app = create_app('testing', provider_factory=factory)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def sample_tenant(app):
    """Create a Commerce7 tenant."""
    tenant = Tenant(
        crm_type='commerce7',
        crm_identifier='test-winery',
        org_name='Test Winery',
    )
    db.session.add(tenant)
    db.session.commit()
    return tenant


@pytest.fixture
def tenant_headers(sample_tenant):
    return {
        'X-Tenant-ID': sample_tenant.crm_identifier,
        'Content-Type': 'application/json',
    }


@pytest.fixture
def sample_program(sample_tenant):
    """Club program with no tiers."""
    program = ClubProgram(tenant_id=sample_tenant.id, name='Cellar Club')
    db.session.add(program)
    db.session.commit()
    return program


@pytest.fixture
def sample_stage(sample_program, fake_provider):
    """A synced Gold tier with a 500 point welcome bonus."""
    fake_provider.clubs['club-gold'] = 'Gold'
    stage = ClubStage(
        club_program_id=sample_program.id,
        tenant_id=sample_program.tenant_id,
        name='Gold',
        duration_months=12,
        min_purchase_amount=Decimal('150.00'),
        min_ltv_amount=Decimal('1000.00'),
        stage_order=1,
        crm_club_id='club-gold',
    )
    db.session.add(stage)
    db.session.commit()

    db.session.add(TierLoyaltyConfig(
        club_stage_id=stage.id,
        crm_loyalty_tier_id='loyalty-gold',
        tier_title='Gold Rewards',
        earn_rate=Decimal('0.02'),
        initial_points_bonus=500,
    ))
    db.session.commit()
    fake_provider.loyalty_tiers['loyalty-gold'] = 'Gold Rewards'
    return stage


def discount_dict(title='Member 10% off', percentage=10, target='product', **overrides):
    """JSON discount as the console posts it."""
    data = {
        'title': title,
        'value': {'type': 'percentage', 'percentage': percentage},
        'applies_to': {'target': target, 'scope': 'all'},
        'minimum_requirement': {'type': 'none'},
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_discount():
    return discount_dict
