"""
Tests for TierPromotionReconciler.

Tests cover:
- Creating tiers and their promotions from placeholder ids
- Updating persisted tiers in place
- Unchanged resubmissions making no update calls
- Recreating promotions deleted on the platform
- Remote failures becoming warnings
- Removing tiers (deleted vs frozen when enrollments exist)
- Loyalty rules
"""
from decimal import Decimal
from unittest.mock import patch

import pytest

from cellarclub.extensions import db
from cellarclub.models import ClubEnrollment, ClubStage, Customer, LoyaltyRules, StagePromotion
from cellarclub.services.tier_reconciler import TierPromotionReconciler, parse_loyalty_rules
from cellarclub.utils.exceptions import FatalSetupError, NotFoundError, ValidationError


def tier(name, id=None, promotions=None, **fields):
    data = {'id': id or f'temp-{name.lower()}', 'name': name, 'promotions': promotions or []}
    data.update(fields)
    return data


@pytest.fixture
def reconciler(sample_tenant, sample_program, fake_provider):
    return TierPromotionReconciler(sample_tenant, fake_provider)


class TestCreate:

    def test_creates_tiers_and_promotions(self, reconciler, fake_provider, make_discount):
        result = reconciler.reconcile([
            tier('Silver', min_purchase_amount='75.00', promotions=[make_discount()]),
            tier('Gold', duration_months=6),
        ])

        assert len(result.tiers_created) == 2
        assert result.promotions_created == 1
        assert result.warnings == []

        silver = ClubStage.query.filter_by(name='Silver').one()
        assert silver.stage_order == 1
        assert silver.min_purchase_amount == Decimal('75.00')
        assert silver.crm_club_id in fake_provider.clubs
        assert silver.promotions[0].crm_id in fake_provider.promotions
        assert silver.promotions[0].kind == 'promotion'

        gold = ClubStage.query.filter_by(name='Gold').one()
        assert gold.stage_order == 2
        assert gold.duration_months == 6

    def test_invalid_tier_rejected_before_remote_calls(self, reconciler, fake_provider):
        with pytest.raises(ValidationError):
            reconciler.reconcile([tier('Silver'), {'id': 'temp-2', 'name': ''}])
        assert fake_provider.calls == []

    def test_promotion_failure_is_a_warning(self, reconciler, fake_provider, make_discount):
        fake_provider.fail.add('create_promotion')
        result = reconciler.reconcile([tier('Silver', promotions=[make_discount()])])

        assert len(result.tiers_created) == 1
        assert result.promotions_created == 0
        assert len(result.warnings) == 1
        record = StagePromotion.query.one()
        assert record.crm_id is None
        assert record.discount_snapshot['title'] == 'Member 10% off'

    def test_unsynced_promotion_created_next_time(self, reconciler, fake_provider, make_discount):
        fake_provider.fail.add('create_promotion')
        reconciler.reconcile([tier('Silver', promotions=[make_discount()])])
        stage = ClubStage.query.one()

        fake_provider.fail.clear()
        result = reconciler.reconcile([tier('Silver', id=stage.id, promotions=[make_discount()])])

        assert result.promotions_created == 1
        assert StagePromotion.query.one().crm_id in fake_provider.promotions

    def test_club_failure_keeps_promotions_unsynced(self, reconciler, fake_provider, make_discount):
        fake_provider.fail.add('upsert_club')
        result = reconciler.reconcile([tier('Silver', promotions=[make_discount()])])

        assert fake_provider.count('create_promotion') == 0
        assert len(result.warnings) == 2
        assert StagePromotion.query.one().crm_id is None

    def test_missing_remote_at_create_is_a_warning(self, reconciler, fake_provider, make_discount):
        fake_provider.missing.add('create_promotion')
        result = reconciler.reconcile([
            tier('Silver', promotions=[make_discount()]),
            tier('Gold'),
        ])

        assert len(result.tiers_created) == 2
        assert len(result.warnings) == 1
        assert StagePromotion.query.one().crm_id is None

    def test_missing_remote_at_club_sync_is_a_warning(self, reconciler, fake_provider, make_discount):
        fake_provider.missing.add('upsert_club')
        result = reconciler.reconcile([tier('Silver', promotions=[make_discount()])])

        assert len(result.tiers_created) == 1
        assert len(result.warnings) == 2
        assert fake_provider.count('create_promotion') == 0


class TestUpdate:

    def test_updates_existing_tier(self, reconciler, sample_stage, fake_provider):
        result = reconciler.reconcile([tier('Gold Plus', id=sample_stage.id, min_ltv_amount=2500)])

        assert result.tiers_updated == [sample_stage.id]
        assert result.tiers_created == []
        stage = db.session.get(ClubStage, sample_stage.id)
        assert stage.name == 'Gold Plus'
        assert stage.min_ltv_amount == Decimal('2500')
        assert stage.crm_club_id == 'club-gold'

    def test_resubmission_is_idempotent(self, reconciler, sample_stage, fake_provider, make_discount):
        submitted = [tier('Gold', id=sample_stage.id, promotions=[make_discount()])]
        reconciler.reconcile(submitted)
        record = StagePromotion.query.one()

        fake_provider.calls.clear()
        result = reconciler.reconcile([
            tier('Gold', id=sample_stage.id, promotions=[{'id': record.id, 'discount': make_discount()}]),
        ])

        assert result.promotions_unchanged == 1
        assert fake_provider.count('update_promotion') == 0
        assert fake_provider.count('create_promotion') == 0
        assert StagePromotion.query.count() == 1

    def test_changed_promotion_is_updated(self, reconciler, sample_stage, fake_provider, make_discount):
        reconciler.reconcile([tier('Gold', id=sample_stage.id, promotions=[make_discount()])])
        record = StagePromotion.query.one()

        result = reconciler.reconcile([
            tier('Gold', id=sample_stage.id, promotions=[
                {'id': record.id, 'discount': make_discount(title='Member 15% off', percentage=15)},
            ]),
        ])

        assert result.promotions_updated == 1
        assert fake_provider.promotions[record.crm_id].value.percentage == 15
        assert db.session.get(StagePromotion, record.id).title == 'Member 15% off'

    def test_drifted_promotion_is_recreated(self, reconciler, sample_stage, fake_provider, make_discount):
        reconciler.reconcile([tier('Gold', id=sample_stage.id, promotions=[make_discount()])])
        record = StagePromotion.query.one()
        old_id = record.crm_id
        del fake_provider.promotions[old_id]

        result = reconciler.reconcile([
            tier('Gold', id=sample_stage.id, promotions=[{'id': record.id, 'discount': make_discount()}]),
        ])

        assert result.promotions_created == 1
        record = StagePromotion.query.one()
        assert record.crm_id != old_id
        assert record.crm_id in fake_provider.promotions

    def test_dropped_promotion_is_deleted(self, reconciler, sample_stage, fake_provider, make_discount):
        reconciler.reconcile([tier('Gold', id=sample_stage.id, promotions=[make_discount()])])
        crm_id = StagePromotion.query.one().crm_id

        result = reconciler.reconcile([tier('Gold', id=sample_stage.id)])

        assert result.promotions_deleted == 1
        assert crm_id not in fake_provider.promotions
        assert StagePromotion.query.count() == 0

    def test_promotion_resent_when_club_recreated(self, reconciler, sample_stage, fake_provider, make_discount):
        reconciler.reconcile([tier('Gold', id=sample_stage.id, promotions=[make_discount()])])
        record = StagePromotion.query.one()
        assert record.crm_club_id == 'club-gold'
        del fake_provider.clubs['club-gold']

        fake_provider.calls.clear()
        result = reconciler.reconcile([
            tier('Gold', id=sample_stage.id, promotions=[{'id': record.id, 'discount': make_discount()}]),
        ])

        new_club = db.session.get(ClubStage, sample_stage.id).crm_club_id
        assert new_club != 'club-gold'
        assert result.promotions_updated == 1
        assert result.promotions_unchanged == 0
        assert fake_provider.count('update_promotion') == 1
        assert db.session.get(StagePromotion, record.id).crm_club_id == new_club

    def test_promotion_missing_at_update_is_recreated(self, reconciler, sample_stage, fake_provider, make_discount):
        reconciler.reconcile([tier('Gold', id=sample_stage.id, promotions=[make_discount()])])
        record = StagePromotion.query.one()
        old_id = record.crm_id
        fake_provider.missing.add('update_promotion')

        result = reconciler.reconcile([
            tier('Gold', id=sample_stage.id, promotions=[
                {'id': record.id, 'discount': make_discount(title='Member 15% off', percentage=15)},
            ]),
            tier('Silver'),
        ])

        assert result.promotions_created == 1
        assert result.warnings == []
        assert len(result.tiers_created) == 1
        record = db.session.get(StagePromotion, record.id)
        assert record.crm_id != old_id
        assert fake_provider.promotions[record.crm_id].value.percentage == 15

    def test_reordering(self, reconciler, sample_stage):
        reconciler.reconcile([tier('Silver'), tier('Gold', id=sample_stage.id)])
        assert db.session.get(ClubStage, sample_stage.id).stage_order == 2


class TestRemove:

    def test_unused_tier_is_deleted(self, reconciler, sample_stage, fake_provider):
        stage_id = sample_stage.id
        result = reconciler.reconcile([])

        assert result.tiers_deleted == [stage_id]
        assert db.session.get(ClubStage, stage_id) is None
        assert 'club-gold' not in fake_provider.clubs
        assert 'loyalty-gold' not in fake_provider.loyalty_tiers

    def test_tier_with_enrollments_is_frozen(self, reconciler, sample_tenant, sample_stage):
        customer = Customer(tenant_id=sample_tenant.id, crm_id='cust-1')
        db.session.add(customer)
        db.session.commit()
        db.session.add(ClubEnrollment(customer_id=customer.id, club_stage_id=sample_stage.id))
        db.session.commit()

        result = reconciler.reconcile([])

        assert result.tiers_deactivated == [sample_stage.id]
        stage = db.session.get(ClubStage, sample_stage.id)
        assert stage.is_active is False
        assert stage.stage_order is None
        assert ClubEnrollment.query.count() == 1

    def test_remote_delete_failure_is_a_warning(self, reconciler, sample_stage, fake_provider):
        fake_provider.fail.add('delete_club')
        result = reconciler.reconcile([])

        assert len(result.warnings) == 1
        assert result.tiers_deleted == [sample_stage.id]


class TestLoyaltyRules:

    def test_rules_saved(self, reconciler, sample_tenant):
        reconciler.reconcile([], loyalty_rules={'points_per_dollar': 2, 'min_membership_days': 90})

        rules = LoyaltyRules.query.filter_by(tenant_id=sample_tenant.id).one()
        assert rules.points_per_dollar == Decimal('2')
        assert rules.min_membership_days == 90
        assert rules.min_points_for_redemption == 100

    def test_defaults(self):
        rules = parse_loyalty_rules({})
        assert rules['min_membership_days'] == 365
        assert rules['point_dollar_value'] == Decimal('0.01')

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            parse_loyalty_rules({'min_points_for_redemption': -5})

    def test_save_failure_is_fatal(self, reconciler):
        with patch.object(
            TierPromotionReconciler, '_save_loyalty_rules', side_effect=FatalSetupError('db down')
        ):
            with pytest.raises(FatalSetupError):
                reconciler.reconcile([], loyalty_rules={})


class TestProgram:

    def test_missing_program(self, sample_tenant, fake_provider):
        with pytest.raises(NotFoundError):
            TierPromotionReconciler(sample_tenant, fake_provider).reconcile([])
