"""
Enrollment completion.

Turns a finished wizard draft into a remote club membership and a local
enrollment record, then runs the post-enrollment side effects.
"""
import calendar
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from ..extensions import db
from ..models.club import ClubStage
from ..models.member import ClubEnrollment, Customer
from ..utils.exceptions import DraftIncomplete, ValidationError
from ..crm.base import MembershipRequest
from .enrollment_draft import EnrollmentDraftStore
from .side_effects import LoyaltyBonusDispatcher, SideEffectOutcome, WelcomeNotifier
from .tier_qualification import parse_amount

logger = logging.getLogger(__name__)


def add_months(value: datetime, months: int) -> datetime:
    """Calendar-month arithmetic; the day is clamped to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


@dataclass
class EnrollmentResult:
    enrollment: ClubEnrollment
    customer: Customer
    membership_id: str
    loyalty_bonus: SideEffectOutcome
    welcome: SideEffectOutcome

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'enrollment': self.enrollment.to_dict(),
            'customer': self.customer.to_dict(),
            'membership_id': self.membership_id,
            'side_effects': {
                'loyalty_bonus': self.loyalty_bonus.to_dict(),
                'welcome': self.welcome.to_dict(),
            },
        }


class EnrollmentService:
    """
    Usage:
        service = EnrollmentService(tenant, provider)
        result = service.complete_enrollment(session_id)
    """

    def __init__(
        self,
        tenant,
        provider,
        draft_store: EnrollmentDraftStore = None,
        bonus_dispatcher: LoyaltyBonusDispatcher = None,
        welcome_notifier: WelcomeNotifier = None
    ):
        self.tenant = tenant
        self.provider = provider
        self.draft_store = draft_store or EnrollmentDraftStore(tenant.id)
        self.bonus_dispatcher = bonus_dispatcher or LoyaltyBonusDispatcher(provider)
        self.welcome_notifier = welcome_notifier or WelcomeNotifier()

    def complete_enrollment(self, session_id: str, now: Optional[datetime] = None) -> EnrollmentResult:
        """
        Create the membership for a completed draft.

        Everything that can fail validation is checked before the remote
        membership call. The draft is cleared only after the membership and
        the local enrollment are both written.

        Raises:
            DraftIncomplete: a wizard gate has not been passed
            ValidationError: the tier or the CRM ids are unusable
            RemoteCallError: the membership could not be created
        """
        draft = self.draft_store.get(session_id)
        missing = draft.missing_gates()
        if missing:
            raise DraftIncomplete(missing)

        customer_data = draft.customer
        stage = ClubStage.query.filter_by(
            id=draft.tier.get('id'), tenant_id=self.tenant.id
        ).first()
        if stage is None or not stage.is_active:
            raise ValidationError("Selected tier is no longer available", field='tier')
        if not stage.crm_club_id:
            raise ValidationError(f"Tier '{stage.name}' has not been synced to the CRM", field='tier')

        for key in ('billing_address_id', 'shipping_address_id', 'payment_method_id'):
            if not customer_data.get(key):
                raise ValidationError(f"Missing CRM {key.replace('_', ' ')}", field=key)
        ltv = parse_amount(customer_data.get('ltv'), 'ltv')

        enrolled_at = now or datetime.utcnow()
        expires_at = add_months(enrolled_at, stage.duration_months)

        # No idempotency key is sent; a retry after a lost response can
        # create a second remote membership.
        membership_id = self.provider.create_club_membership(MembershipRequest(
            customer_id=customer_data['crm_id'],
            club_id=stage.crm_club_id,
            billing_address_id=customer_data['billing_address_id'],
            shipping_address_id=customer_data['shipping_address_id'],
            payment_method_id=customer_data['payment_method_id'],
            signup_date=enrolled_at,
            tier_id=stage.id,
            tier_name=stage.name,
        ))
        logger.info(
            f"Created membership {membership_id} for customer {customer_data['crm_id']} "
            f"in tier '{stage.name}' (session {session_id})"
        )

        customer = self._get_or_create_customer(customer_data, ltv)
        enrollment = ClubEnrollment(
            customer_id=customer.id,
            club_stage_id=stage.id,
            status='active',
            enrolled_at=enrolled_at,
            expires_at=expires_at,
            crm_membership_id=membership_id,
        )
        db.session.add(enrollment)
        db.session.commit()

        bonus = self.bonus_dispatcher.dispatch(self.tenant.id, customer.crm_id, stage)
        welcome = self.welcome_notifier.notify(self.tenant.id, customer_data, stage)

        self.draft_store.clear(session_id)

        return EnrollmentResult(
            enrollment=enrollment,
            customer=customer,
            membership_id=membership_id,
            loyalty_bonus=bonus,
            welcome=welcome,
        )

    def _get_or_create_customer(self, data: Dict[str, Any], ltv: Optional[Decimal]) -> Customer:
        customer = Customer.query.filter_by(tenant_id=self.tenant.id, crm_id=data['crm_id']).first()
        if customer is None:
            customer = Customer(tenant_id=self.tenant.id, crm_id=data['crm_id'])
            db.session.add(customer)

        for attr in ('email', 'first_name', 'last_name', 'phone'):
            if data.get(attr):
                setattr(customer, attr, data[attr])
        if ltv is not None:
            customer.ltv = ltv

        db.session.flush()
        return customer
