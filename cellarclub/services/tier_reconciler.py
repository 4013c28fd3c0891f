"""
Tier/promotion reconciliation.

Takes the full submitted tier list for a tenant's club and brings the
local tables and the CRM into line with it:

- submitted tiers whose id is a persisted tier are updated, and their
  promotions synced (a cached promotion that no longer exists remotely is
  recreated);
- any other submitted id is a client-side placeholder, so the tier is
  created locally and remotely;
- persisted tiers missing from the submission are removed remotely
  (best-effort) and then deleted, or frozen if enrollments reference them.

Promotion and club failures are collected as warnings, never raised.
Loyalty rules are saved last and their failure is fatal.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..discounts.commerce7 import PromotionKind
from ..discounts.model import Discount
from ..extensions import db
from ..models.club import ClubProgram, ClubStage, LoyaltyRules, StagePromotion
from ..models.member import ClubEnrollment
from ..utils.exceptions import FatalSetupError, NotFoundError, RemoteCallError, ValidationError

logger = logging.getLogger(__name__)


# ==================== Submissions ====================

def _decimal(value, field_name: str) -> Decimal:
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    if amount < 0:
        raise ValidationError(f"{field_name} cannot be negative", field=field_name)
    return amount


@dataclass
class PromotionSubmission:
    """One promotion on a submitted tier. ``id`` is the local record id when editing."""
    discount: Discount
    id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PromotionSubmission':
        if not isinstance(data, dict):
            raise ValidationError("Each promotion must be an object", field='promotions')
        discount_data = data.get('discount', data)
        promotion_id = data.get('id') if 'discount' in data else None
        return cls(
            discount=Discount.from_dict(discount_data),
            id=str(promotion_id) if promotion_id is not None else None,
        )


def _promotion_list(promotions) -> list:
    if promotions is None or promotions == '':
        return []
    if not isinstance(promotions, list):
        raise ValidationError("promotions must be a list", field='promotions')
    return promotions


@dataclass
class TierSubmission:
    id: Optional[str]
    name: str
    duration_months: int = 12
    min_purchase_amount: Decimal = Decimal('0')
    min_ltv_amount: Decimal = Decimal('0')
    upgradable: bool = True
    promotions: List[PromotionSubmission] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TierSubmission':
        if not isinstance(data, dict):
            raise ValidationError("Each tier must be an object", field='tiers')
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError("Tier name is required", field='name')

        try:
            duration = int(data.get('duration_months', 12))
        except (TypeError, ValueError):
            raise ValidationError("duration_months must be a whole number", field='duration_months')
        if duration < 1:
            raise ValidationError("duration_months must be at least 1", field='duration_months')

        return cls(
            id=str(data['id']) if data.get('id') is not None else None,
            name=name,
            duration_months=duration,
            min_purchase_amount=_decimal(data.get('min_purchase_amount'), 'min_purchase_amount'),
            min_ltv_amount=_decimal(data.get('min_ltv_amount'), 'min_ltv_amount'),
            upgradable=bool(data.get('upgradable', True)),
            promotions=[PromotionSubmission.from_dict(p) for p in _promotion_list(data.get('promotions'))],
        )


def parse_tier_submissions(tiers) -> List[TierSubmission]:
    """Validate a submitted tier list up front, before any remote call."""
    if not isinstance(tiers, list):
        raise ValidationError("tiers must be a list", field='tiers')
    return [t if isinstance(t, TierSubmission) else TierSubmission.from_dict(t) for t in tiers]


@dataclass
class ReconcileResult:
    tiers_created: List[str] = field(default_factory=list)
    tiers_updated: List[str] = field(default_factory=list)
    tiers_deleted: List[str] = field(default_factory=list)
    tiers_deactivated: List[str] = field(default_factory=list)
    promotions_created: int = 0
    promotions_updated: int = 0
    promotions_unchanged: int = 0
    promotions_deleted: int = 0
    warnings: List[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    @property
    def message(self) -> str:
        if self.warnings:
            return f"Club tiers saved; completed with {len(self.warnings)} warning(s)"
        return "Club tiers saved"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'message': self.message,
            'tiers_created': self.tiers_created,
            'tiers_updated': self.tiers_updated,
            'tiers_deleted': self.tiers_deleted,
            'tiers_deactivated': self.tiers_deactivated,
            'promotions_created': self.promotions_created,
            'promotions_updated': self.promotions_updated,
            'promotions_unchanged': self.promotions_unchanged,
            'promotions_deleted': self.promotions_deleted,
            'warnings': self.warnings,
        }


# ==================== Reconciler ====================

class TierPromotionReconciler:
    """
    Usage:
        reconciler = TierPromotionReconciler(tenant, provider)
        result = reconciler.reconcile(tiers, loyalty_rules={...})
    """

    def __init__(self, tenant, provider, program: ClubProgram = None):
        self.tenant = tenant
        self.provider = provider
        self._program = program

    @property
    def program(self) -> ClubProgram:
        if self._program is None:
            self._program = ClubProgram.query.filter_by(tenant_id=self.tenant.id).first()
            if self._program is None:
                raise NotFoundError("Club program")
        return self._program

    def reconcile(self, tiers, loyalty_rules: Dict[str, Any] = None) -> ReconcileResult:
        submissions = parse_tier_submissions(tiers)
        rules = parse_loyalty_rules(loyalty_rules) if loyalty_rules is not None else None
        program = self.program
        result = ReconcileResult()

        persisted = {
            stage.id: stage
            for stage in ClubStage.query.filter_by(club_program_id=program.id, is_active=True)
        }
        seen = set()

        for index, submission in enumerate(submissions):
            stage_order = index + 1
            stage = persisted.get(submission.id) if submission.id else None
            if stage is not None and stage.id not in seen:
                seen.add(stage.id)
                self._update_existing(stage, submission, stage_order, result)
            else:
                self._create_new(program, submission, stage_order, result)

        for stage_id, stage in persisted.items():
            if stage_id not in seen:
                self._remove_tier(stage, result)

        if rules is not None:
            self._save_loyalty_rules(rules)

        logger.info(
            f"Reconciled tiers for tenant {self.tenant.id}: "
            f"{len(result.tiers_created)} created, {len(result.tiers_updated)} updated, "
            f"{len(result.tiers_deleted) + len(result.tiers_deactivated)} removed, "
            f"{len(result.warnings)} warning(s)"
        )
        return result

    # ==================== Tiers ====================

    def _apply_fields(self, stage: ClubStage, submission: TierSubmission, stage_order: int) -> None:
        stage.name = submission.name
        stage.duration_months = submission.duration_months
        stage.min_purchase_amount = submission.min_purchase_amount
        stage.min_ltv_amount = submission.min_ltv_amount
        stage.upgradable = submission.upgradable
        stage.stage_order = stage_order

    def _sync_club(self, stage: ClubStage, result: ReconcileResult) -> bool:
        """Create or update the remote club. Returns False if the tier has no usable club."""
        try:
            club_id = self.provider.upsert_club(stage)
        except (NotFoundError, RemoteCallError) as e:
            result.warn(f"Tier '{stage.name}': club sync failed ({e.message})")
            return bool(stage.crm_club_id)

        if club_id != stage.crm_club_id:
            stage.crm_club_id = club_id
            db.session.commit()
        return True

    def _update_existing(
        self, stage: ClubStage, submission: TierSubmission, stage_order: int, result: ReconcileResult
    ) -> None:
        self._apply_fields(stage, submission, stage_order)
        db.session.commit()
        result.tiers_updated.append(stage.id)

        if not self._sync_club(stage, result):
            if submission.promotions:
                result.warn(f"Tier '{stage.name}': promotions not synced, tier has no remote club")
            return
        self._sync_promotions(stage, submission.promotions, result)

    def _create_new(
        self, program: ClubProgram, submission: TierSubmission, stage_order: int, result: ReconcileResult
    ) -> None:
        stage = ClubStage(club_program_id=program.id, tenant_id=self.tenant.id)
        self._apply_fields(stage, submission, stage_order)
        db.session.add(stage)
        db.session.commit()
        result.tiers_created.append(stage.id)

        if not self._sync_club(stage, result):
            for promotion in submission.promotions:
                self._save_unsynced(stage, promotion.discount)
            if submission.promotions:
                result.warn(f"Tier '{stage.name}': promotions not created, tier has no remote club")
            return
        for promotion in submission.promotions:
            self._create_promotion(stage, promotion.discount, result)

    def _remove_tier(self, stage: ClubStage, result: ReconcileResult) -> None:
        for record in list(stage.promotions):
            self._delete_promotion(stage, record, result)

        if stage.loyalty_config and stage.loyalty_config.crm_loyalty_tier_id:
            try:
                self.provider.delete_loyalty_tier(stage.loyalty_config.crm_loyalty_tier_id)
            except NotFoundError:
                pass
            except RemoteCallError as e:
                result.warn(
                    f"Tier '{stage.name}': loyalty tier "
                    f"{stage.loyalty_config.crm_loyalty_tier_id} not deleted ({e.message})"
                )

        if stage.crm_club_id:
            try:
                self.provider.delete_club(stage.crm_club_id)
            except NotFoundError:
                pass
            except RemoteCallError as e:
                result.warn(f"Tier '{stage.name}': club {stage.crm_club_id} not deleted ({e.message})")

        in_use = ClubEnrollment.query.filter_by(club_stage_id=stage.id).count() > 0
        if in_use:
            stage.is_active = False
            stage.stage_order = None
            if stage.loyalty_config:
                db.session.delete(stage.loyalty_config)
            result.tiers_deactivated.append(stage.id)
        else:
            db.session.delete(stage)
            result.tiers_deleted.append(stage.id)
        db.session.commit()

    # ==================== Promotions ====================

    def _sync_promotions(
        self, stage: ClubStage, submissions: List[PromotionSubmission], result: ReconcileResult
    ) -> None:
        existing = list(stage.promotions)
        records = {}
        for record in existing:
            records[str(record.id)] = record
            if record.crm_id:
                records.setdefault(record.crm_id, record)

        kept = set()
        for submission in submissions:
            record = self._match_record(submission, records, existing, kept)
            if record is not None:
                kept.add(record.id)
                self._sync_promotion(stage, record, submission.discount, result)
            else:
                self._create_promotion(stage, submission.discount, result)

        for record in existing:
            if record.id not in kept:
                self._delete_promotion(stage, record, result)

    @staticmethod
    def _match_record(submission: PromotionSubmission, records, existing, kept) -> Optional[StagePromotion]:
        """Match by local id, then external id, then an identical last-sent discount."""
        for key in (submission.id, submission.discount.id):
            record = records.get(str(key)) if key else None
            if record is not None and record.id not in kept:
                return record
        snapshot = submission.discount.to_dict()
        for record in existing:
            if record.id not in kept and record.discount_snapshot == snapshot:
                return record
        return None

    def _sync_promotion(
        self, stage: ClubStage, record: StagePromotion, discount: Discount, result: ReconcileResult
    ) -> None:
        """Drift-aware sync of one existing promotion record."""
        if record.crm_id is None:
            self._create_promotion(stage, discount, result, record=record)
            return

        try:
            self.provider.get_promotion(record.crm_id, kind=record.kind)
        except NotFoundError:
            logger.info(
                f"Tier '{stage.name}': promotion {record.crm_id} no longer exists remotely, recreating"
            )
            self._create_promotion(stage, discount, result, record=record)
            return
        except RemoteCallError as e:
            result.warn(f"Tier '{stage.name}': promotion {record.crm_id} could not be read ({e.message})")
            return

        snapshot = discount.to_dict()
        if record.discount_snapshot == snapshot and record.crm_club_id == stage.crm_club_id:
            result.promotions_unchanged += 1
            return

        try:
            ref = self.provider.update_promotion(
                record.crm_id, discount, stage.crm_club_id, kind=record.kind
            )
        except NotFoundError:
            logger.info(
                f"Tier '{stage.name}': promotion {record.crm_id} vanished before update, recreating"
            )
            self._create_promotion(stage, discount, result, record=record)
            return
        except RemoteCallError as e:
            result.warn(f"Tier '{stage.name}': promotion {record.crm_id} not updated ({e.message})")
            return

        record.title = ref.title
        record.crm_club_id = stage.crm_club_id
        record.discount_snapshot = snapshot
        db.session.commit()
        result.promotions_updated += 1
        logger.info(f"✓ Updated promotion {record.crm_id} for tier '{stage.name}'")

    def _create_promotion(
        self, stage: ClubStage, discount: Discount, result: ReconcileResult,
        record: StagePromotion = None
    ) -> None:
        try:
            ref = self.provider.create_promotion(discount, stage.crm_club_id)
        except (NotFoundError, RemoteCallError) as e:
            result.warn(f"Tier '{stage.name}': promotion '{discount.title}' not created ({e.message})")
            if record is None:
                self._save_unsynced(stage, discount)
            else:
                record.crm_id = None
                record.discount_snapshot = discount.to_dict()
                db.session.commit()
            return

        if record is None:
            record = StagePromotion(club_stage_id=stage.id, crm_type=self.provider.crm_type)
            db.session.add(record)
        record.crm_id = ref.id
        record.crm_club_id = stage.crm_club_id
        record.kind = PromotionKind(ref.kind).value
        record.title = ref.title
        record.discount_snapshot = discount.to_dict()
        db.session.commit()
        result.promotions_created += 1
        logger.info(f"✓ Created promotion {ref.id} for tier '{stage.name}'")

    def _save_unsynced(self, stage: ClubStage, discount: Discount) -> None:
        """Keep a promotion with no remote id so the next reconcile creates it."""
        db.session.add(StagePromotion(
            club_stage_id=stage.id,
            crm_type=self.provider.crm_type,
            crm_id=None,
            kind=PromotionKind.PROMOTION.value,
            title=discount.title,
            discount_snapshot=discount.to_dict(),
        ))
        db.session.commit()

    def _delete_promotion(self, stage: ClubStage, record: StagePromotion, result: ReconcileResult) -> None:
        if record.crm_id:
            try:
                self.provider.delete_promotion(record.crm_id, kind=record.kind)
                result.promotions_deleted += 1
            except NotFoundError:
                result.promotions_deleted += 1
            except RemoteCallError as e:
                result.warn(f"Tier '{stage.name}': promotion {record.crm_id} not deleted ({e.message})")
        db.session.delete(record)
        db.session.commit()

    # ==================== Loyalty rules ====================

    def _save_loyalty_rules(self, rules: Dict[str, Any]) -> None:
        try:
            record = LoyaltyRules.query.filter_by(tenant_id=self.tenant.id).first()
            if record is None:
                record = LoyaltyRules(tenant_id=self.tenant.id)
                db.session.add(record)
            for key, value in rules.items():
                setattr(record, key, value)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to save loyalty rules for tenant {self.tenant.id}: {e}")
            raise FatalSetupError(f"Failed to save loyalty rules: {e}")


def parse_loyalty_rules(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate loyalty rule input, filling defaults for missing values."""
    if not isinstance(data, dict):
        raise ValidationError("loyalty_rules must be an object", field='loyalty_rules')

    def whole(key, default):
        try:
            value = int(data.get(key) if data.get(key) not in (None, '') else default)
        except (TypeError, ValueError):
            raise ValidationError(f"{key} must be a whole number", field=key)
        if value < 0:
            raise ValidationError(f"{key} cannot be negative", field=key)
        return value

    return {
        'points_per_dollar': _decimal(data.get('points_per_dollar', 1), 'points_per_dollar'),
        'min_membership_days': whole('min_membership_days', 365),
        'point_dollar_value': _decimal(data.get('point_dollar_value', '0.01'), 'point_dollar_value'),
        'min_points_for_redemption': whole('min_points_for_redemption', 100),
    }
