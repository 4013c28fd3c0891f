"""
Fire-and-forget side effects that run after an enrollment is committed.

A failure here must never undo or fail the enrollment. Every attempt,
including skips, is recorded as a SideEffectEvent so missed effects can
be found and replayed later.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models.club import ClubStage, TierLoyaltyConfig
from ..models.side_effect import SideEffectEvent

logger = logging.getLogger(__name__)


class SideEffectStatus(str, Enum):
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    SKIPPED = 'skipped'


class SideEffectKind(str, Enum):
    LOYALTY_BONUS = 'loyalty_bonus'
    WELCOME_EMAIL = 'welcome_email'


@dataclass
class SideEffectOutcome:
    kind: SideEffectKind
    status: SideEffectStatus
    detail: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    event_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'status': self.status.value,
            'detail': self.detail,
            'error': self.error,
            'event_id': self.event_id,
        }


def record_side_effect(tenant_id: int, reference: str, outcome: SideEffectOutcome) -> SideEffectOutcome:
    """Persist one outcome row. A failed write is logged and rolled back."""
    event = SideEffectEvent(
        tenant_id=tenant_id,
        kind=outcome.kind.value,
        status=outcome.status.value,
        reference=reference,
        detail=outcome.detail or None,
        error=outcome.error,
    )
    try:
        db.session.add(event)
        db.session.commit()
        outcome.event_id = event.id
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(
            f"Could not record {outcome.kind.value} outcome for {reference}: {e} "
            f"(outcome was {outcome.status.value})"
        )
    return outcome


def run_side_effect(
    tenant_id: int,
    kind: SideEffectKind,
    reference: str,
    action: Callable[[], Optional[SideEffectOutcome]],
    detail: Dict[str, Any] = None
) -> SideEffectOutcome:
    """
    Run ``action`` and record what happened.

    ``action`` returns an outcome to report a skip, or None on success.
    Exceptions become a FAILED outcome instead of propagating.
    """
    detail = dict(detail or {})
    try:
        outcome = action()
        if outcome is None:
            outcome = SideEffectOutcome(kind, SideEffectStatus.SUCCEEDED, detail)
    except Exception as e:
        logger.warning(f"{kind.value} for {reference} failed (non-blocking): {e}")
        outcome = SideEffectOutcome(kind, SideEffectStatus.FAILED, detail, error=str(e))
    return record_side_effect(tenant_id, reference, outcome)


class LoyaltyBonusDispatcher:
    """
    Awards a tier's welcome bonus points after enrollment.

    Usage:
        dispatcher = LoyaltyBonusDispatcher(provider)
        outcome = dispatcher.dispatch(tenant_id, customer_crm_id, stage)
    """

    def __init__(self, provider):
        self.provider = provider

    def dispatch(self, tenant_id: int, customer_crm_id: str, stage: ClubStage) -> SideEffectOutcome:
        config = TierLoyaltyConfig.query.filter_by(club_stage_id=stage.id).first()
        points = config.initial_points_bonus if config else 0
        label = f"{stage.name} Tier Welcome Bonus"
        detail = {'tier_id': stage.id, 'points': points, 'label': label}

        def award():
            if not points or points <= 0:
                return SideEffectOutcome(
                    SideEffectKind.LOYALTY_BONUS, SideEffectStatus.SKIPPED,
                    dict(detail, reason='no welcome bonus configured')
                )
            self.provider.preload_bonus_points(customer_crm_id, points, label)
            logger.info(f"Awarded {points} welcome points to {customer_crm_id} ({stage.name})")
            return None

        return run_side_effect(
            tenant_id, SideEffectKind.LOYALTY_BONUS, customer_crm_id, award, detail
        )


class WelcomeNotifier:
    """
    Welcome communication hook.

    Template rendering and delivery belong to the communication provider;
    without one configured the attempt is recorded as skipped.
    """

    def __init__(self, sender: Callable[[Dict[str, Any], ClubStage], None] = None):
        self.sender = sender

    def notify(self, tenant_id: int, customer: Dict[str, Any], stage: ClubStage) -> SideEffectOutcome:
        reference = customer.get('crm_id') or customer.get('id') or ''
        detail = {'tier_id': stage.id, 'email': customer.get('email')}

        def send():
            if self.sender is None:
                return SideEffectOutcome(
                    SideEffectKind.WELCOME_EMAIL, SideEffectStatus.SKIPPED,
                    dict(detail, reason='no communication provider configured')
                )
            self.sender(customer, stage)
            return None

        return run_side_effect(tenant_id, SideEffectKind.WELCOME_EMAIL, reference, send, detail)
