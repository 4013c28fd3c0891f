"""
Initial club program setup and per-tier loyalty toggles.
"""
import json
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models.club import ClubProgram, ClubStage, TierLoyaltyConfig
from ..utils.exceptions import (
    DuplicateError,
    FatalSetupError,
    NotFoundError,
    RemoteCallError,
    TierNotFoundError,
    ValidationError,
)
from .tier_reconciler import (
    ReconcileResult,
    TierPromotionReconciler,
    parse_loyalty_rules,
    parse_tier_submissions,
)

logger = logging.getLogger(__name__)


def parse_setup_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize a setup submission.

    ``tiers`` may arrive as a list or a JSON-encoded string (form posts).
    Loyalty values fall back to program defaults when blank.
    """
    if not isinstance(data, dict):
        raise ValidationError("Setup payload must be an object")

    name = (data.get('club_name') or '').strip()
    if not name:
        raise ValidationError("Club name is required", field='club_name')

    tiers = data.get('tiers') or []
    if isinstance(tiers, str):
        try:
            tiers = json.loads(tiers)
        except ValueError:
            raise ValidationError("tiers must be valid JSON", field='tiers')
    if not isinstance(tiers, list) or not tiers:
        raise ValidationError("At least one tier is required", field='tiers')

    return {
        'name': name,
        'description': (data.get('club_description') or '').strip() or None,
        'tiers': tiers,
        'loyalty_rules': parse_loyalty_rules(data.get('loyalty_rules') or {}),
    }


class ClubSetupService:
    """
    Creates a tenant's club program and manages tier loyalty.

    Usage:
        service = ClubSetupService(tenant, provider)
        result = service.create_program('Cellar Club', None, tiers, rules)
    """

    def __init__(self, tenant, provider):
        self.tenant = tenant
        self.provider = provider

    # ==================== Program setup ====================

    def create_program(
        self,
        name: str,
        description: Optional[str],
        tiers: List[Dict[str, Any]],
        loyalty_rules: Dict[str, Any] = None
    ) -> ReconcileResult:
        """
        Create the program, its tiers, promotions and loyalty rules.

        A failure to create the program or save the loyalty rules, or any
        remote error that escapes the per-tier warnings, undoes everything
        created so far and raises FatalSetupError.
        """
        if not name or not name.strip():
            raise ValidationError("Club name is required", field='club_name')
        if not tiers:
            raise ValidationError("At least one tier is required", field='tiers')
        submissions = parse_tier_submissions(tiers)
        rules = parse_loyalty_rules(loyalty_rules or {})
        if ClubProgram.query.filter_by(tenant_id=self.tenant.id).first():
            raise DuplicateError("Club program", f"tenant {self.tenant.id}")

        try:
            program = ClubProgram(tenant_id=self.tenant.id, name=name.strip(), description=description)
            db.session.add(program)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to create club program for tenant {self.tenant.id}: {e}")
            raise FatalSetupError(f"Failed to create club program: {e}")

        reconciler = TierPromotionReconciler(self.tenant, self.provider, program=program)
        try:
            result = reconciler.reconcile(submissions, loyalty_rules=rules)
        except (FatalSetupError, NotFoundError, RemoteCallError) as e:
            orphans = self._rollback_program(program)
            raise FatalSetupError(e.message, orphans=orphans) from e

        logger.info(f"Created club program '{program.name}' for tenant {self.tenant.id}")
        return result

    def _rollback_program(self, program: ClubProgram) -> List[str]:
        """
        Compensating deletes for a failed setup.

        Returns a description of every object that could not be removed;
        each is also logged so it can be cleaned up by hand.
        """
        orphans = []

        def compensate(description: str, action) -> None:
            try:
                action()
            except NotFoundError:
                pass
            except RemoteCallError as e:
                logger.warning(f"Setup rollback could not delete {description}: {e.message}")
                orphans.append(description)

        for stage in list(program.stages):
            for record in stage.promotions:
                if record.crm_id:
                    compensate(
                        f"promotion {record.crm_id}",
                        lambda r=record: self.provider.delete_promotion(r.crm_id, kind=r.kind)
                    )
            config = stage.loyalty_config
            if config and config.crm_loyalty_tier_id:
                compensate(
                    f"loyalty tier {config.crm_loyalty_tier_id}",
                    lambda c=config: self.provider.delete_loyalty_tier(c.crm_loyalty_tier_id)
                )
            if stage.crm_club_id:
                compensate(
                    f"club {stage.crm_club_id}",
                    lambda s=stage: self.provider.delete_club(s.crm_club_id)
                )

        try:
            db.session.delete(program)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Setup rollback could not delete club program {program.id}: {e}")
            orphans.append(f"club program {program.id}")

        if orphans:
            logger.warning(f"Setup rollback for tenant {self.tenant.id} left {len(orphans)} orphan(s): {orphans}")
        return orphans

    def mark_setup_complete(self) -> None:
        self.tenant.setup_complete = True
        db.session.commit()

    # ==================== Loyalty ====================

    def _get_stage(self, stage_id: str) -> ClubStage:
        stage = ClubStage.query.filter_by(id=stage_id, tenant_id=self.tenant.id, is_active=True).first()
        if not stage:
            raise TierNotFoundError(stage_id)
        return stage

    def enable_loyalty(self, stage_id: str, earn_rate_pct, bonus_points=0) -> TierLoyaltyConfig:
        """Create or update the remote loyalty tier (earn rate given in percent) and store its config."""
        stage = self._get_stage(stage_id)
        if not stage.crm_club_id:
            raise ValidationError(f"Tier '{stage.name}' has not been synced to the CRM yet")

        try:
            earn_rate = Decimal(str(earn_rate_pct)) / 100
            bonus = int(bonus_points or 0)
        except (ArithmeticError, TypeError, ValueError):
            raise ValidationError("earn_rate and bonus_points must be numbers")
        if earn_rate < 0 or bonus < 0:
            raise ValidationError("earn_rate and bonus_points cannot be negative")

        config = stage.loyalty_config
        if config is None:
            title = f"{stage.name} Rewards"
            config = TierLoyaltyConfig(
                club_stage_id=stage.id,
                crm_loyalty_tier_id=self._create_loyalty_tier(stage, title, earn_rate),
                tier_title=title
            )
            db.session.add(config)
        elif config.crm_loyalty_tier_id and Decimal(str(config.earn_rate or 0)) != earn_rate:
            title = config.tier_title or f"{stage.name} Rewards"
            try:
                self.provider.update_loyalty_tier(
                    config.crm_loyalty_tier_id, title, stage.crm_club_id, float(earn_rate)
                )
            except NotFoundError:
                logger.info(f"Loyalty tier {config.crm_loyalty_tier_id} gone remotely, recreating")
                config.crm_loyalty_tier_id = self._create_loyalty_tier(stage, title, earn_rate)

        config.earn_rate = earn_rate
        config.initial_points_bonus = bonus
        db.session.commit()
        logger.info(f"Loyalty enabled for tier '{stage.name}' (earn {earn_rate}, bonus {bonus})")
        return config

    def _create_loyalty_tier(self, stage: ClubStage, title: str, earn_rate: Decimal) -> str:
        return self.provider.create_loyalty_tier(
            title, stage.crm_club_id, float(earn_rate), sort_order=stage.stage_order or 0
        )

    def disable_loyalty(self, stage_id: str) -> bool:
        stage = self._get_stage(stage_id)
        config = stage.loyalty_config
        if config is None:
            return False

        if config.crm_loyalty_tier_id:
            try:
                self.provider.delete_loyalty_tier(config.crm_loyalty_tier_id)
            except NotFoundError:
                logger.info(f"Loyalty tier {config.crm_loyalty_tier_id} already deleted remotely")

        db.session.delete(config)
        db.session.commit()
        return True
