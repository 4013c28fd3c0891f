"""
Enrollment wizard draft.

The wizard (customer -> tier -> address -> payment -> review) writes each
step into a per-session draft row. Steps can be visited in any order; the
draft's state is the furthest point reached with every earlier gate
satisfied. Completing the enrollment reads the draft once and clears it.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..extensions import db
from ..models.club import ClubStage
from ..models.enrollment_draft import EnrollmentDraftRecord
from ..utils.exceptions import TierNotFoundError, ValidationError
from .tier_qualification import is_qualified, parse_amount

logger = logging.getLogger(__name__)


class DraftState(str, Enum):
    EMPTY = 'empty'
    CUSTOMER_SELECTED = 'customer-selected'
    TIER_SELECTED = 'tier-selected'
    ADDRESS_VERIFIED = 'address-verified'
    PAYMENT_VERIFIED = 'payment-verified'
    COMPLETED = 'completed'


# Gates checked before an enrollment may be completed, in wizard order
REQUIRED_GATES = ('customer', 'tier', 'address_verified', 'payment_verified')


@dataclass
class EnrollmentDraft:
    session_id: str
    customer: Optional[Dict[str, Any]] = None
    tier: Optional[Dict[str, Any]] = None
    address: Optional[Dict[str, Any]] = None
    payment: Optional[Dict[str, Any]] = None
    preferences: Optional[Dict[str, Any]] = None
    address_verified: bool = False
    payment_verified: bool = False
    completed: bool = False

    @classmethod
    def from_record(cls, record: EnrollmentDraftRecord) -> 'EnrollmentDraft':
        return cls(
            session_id=record.session_id,
            customer=record.customer,
            tier=record.tier,
            address=record.address,
            payment=record.payment,
            preferences=record.preferences,
            address_verified=bool(record.address_verified),
            payment_verified=bool(record.payment_verified),
        )

    def _passed(self, gate: str) -> bool:
        if gate == 'customer':
            # Address and payment steps merge ids into customer; only a CRM id counts
            return bool(self.customer and self.customer.get('crm_id'))
        return bool(getattr(self, gate))

    def missing_gates(self) -> List[str]:
        return [gate for gate in REQUIRED_GATES if not self._passed(gate)]

    @property
    def is_complete(self) -> bool:
        return not self.missing_gates()

    @property
    def state(self) -> DraftState:
        if self.completed:
            return DraftState.COMPLETED
        reached = DraftState.EMPTY
        for gate, state in zip(REQUIRED_GATES, (
            DraftState.CUSTOMER_SELECTED,
            DraftState.TIER_SELECTED,
            DraftState.ADDRESS_VERIFIED,
            DraftState.PAYMENT_VERIFIED,
        )):
            if not self._passed(gate):
                break
            reached = state
        return reached

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'state': self.state.value,
            'customer': self.customer,
            'tier': self.tier,
            'address': self.address,
            'payment': self.payment,
            'preferences': self.preferences,
            'address_verified': self.address_verified,
            'payment_verified': self.payment_verified,
            'missing': self.missing_gates(),
        }


class EnrollmentDraftStore:
    """Per-session draft persistence with merge-on-update semantics."""

    def __init__(self, tenant_id: int):
        self.tenant_id = tenant_id

    def _record(self, session_id: str) -> Optional[EnrollmentDraftRecord]:
        return EnrollmentDraftRecord.query.filter_by(
            tenant_id=self.tenant_id, session_id=session_id
        ).first()

    def get(self, session_id: str) -> EnrollmentDraft:
        record = self._record(session_id)
        if record is None:
            return EnrollmentDraft(session_id=session_id)
        return EnrollmentDraft.from_record(record)

    def update(
        self,
        session_id: str,
        customer: Dict[str, Any] = None,
        tier: Dict[str, Any] = None,
        address: Dict[str, Any] = None,
        payment: Dict[str, Any] = None,
        preferences: Dict[str, Any] = None,
        address_verified: bool = None,
        payment_verified: bool = None
    ) -> EnrollmentDraft:
        """
        Upsert the session's draft.

        ``customer`` is merged into the stored customer; every other
        section replaces what was stored. Arguments left as None keep the
        stored value.
        """
        record = self._record(session_id)
        if record is None:
            record = EnrollmentDraftRecord(tenant_id=self.tenant_id, session_id=session_id)
            db.session.add(record)

        if customer is not None:
            record.customer = {**(record.customer or {}), **customer}
        if tier is not None:
            record.tier = dict(tier)
        if address is not None:
            record.address = dict(address)
        if payment is not None:
            record.payment = dict(payment)
        if preferences is not None:
            record.preferences = dict(preferences)
        if address_verified is not None:
            record.address_verified = bool(address_verified)
        if payment_verified is not None:
            record.payment_verified = bool(payment_verified)

        db.session.commit()
        return EnrollmentDraft.from_record(record)

    def clear(self, session_id: str) -> bool:
        record = self._record(session_id)
        if record is None:
            return False
        db.session.delete(record)
        db.session.commit()
        return True


class EnrollmentWizard:
    """
    The wizard steps, each writing one part of the draft.

    Usage:
        wizard = EnrollmentWizard(tenant)
        wizard.select_customer(session_id, {'crm_id': 'c-1', 'email': '...'})
    """

    def __init__(self, tenant, store: EnrollmentDraftStore = None):
        self.tenant = tenant
        self.store = store or EnrollmentDraftStore(tenant.id)

    def start(self, session_id: str) -> EnrollmentDraft:
        """Begin a fresh enrollment, discarding any earlier draft for the session."""
        self.store.clear(session_id)
        return self.store.update(session_id)

    def reset(self, session_id: str) -> EnrollmentDraft:
        self.store.clear(session_id)
        return EnrollmentDraft(session_id=session_id)

    def select_customer(self, session_id: str, customer: Dict[str, Any]) -> EnrollmentDraft:
        if not isinstance(customer, dict) or not customer.get('crm_id'):
            raise ValidationError("Customer must have a CRM id", field='crm_id')
        customer = dict(customer)
        customer['crm_id'] = str(customer['crm_id'])
        parse_amount(customer.get('ltv'), 'ltv')

        previous = self.store.get(session_id).customer or {}
        if previous.get('crm_id') and previous['crm_id'] != customer['crm_id']:
            # Address and payment ids belong to the previous customer
            customer.update(billing_address_id=None, shipping_address_id=None, payment_method_id=None)
            return self.store.update(
                session_id, customer=customer, address_verified=False, payment_verified=False
            )
        return self.store.update(session_id, customer=customer)

    def select_tier(self, session_id: str, stage_id: str, purchase_amount=None) -> EnrollmentDraft:
        stage = ClubStage.query.filter_by(id=stage_id, tenant_id=self.tenant.id, is_active=True).first()
        if stage is None:
            raise TierNotFoundError(stage_id)

        draft = self.store.get(session_id)
        ltv = (draft.customer or {}).get('ltv')
        tier = {
            'id': stage.id,
            'name': stage.name,
            'qualified': is_qualified(stage, purchase_amount, ltv),
            'purchase_amount': float(purchase_amount) if purchase_amount not in (None, '') else None,
            'duration_months': stage.duration_months,
            'min_purchase_amount': float(stage.min_purchase_amount or 0),
        }
        return self.store.update(session_id, tier=tier)

    def verify_address(
        self,
        session_id: str,
        billing_address_id: str,
        shipping_address_id: str = None,
        billing: Dict[str, Any] = None,
        shipping: Dict[str, Any] = None
    ) -> EnrollmentDraft:
        """Record CRM address ids. Shipping defaults to the billing address."""
        if not billing_address_id:
            raise ValidationError("A CRM billing address id is required", field='billing_address_id')
        shipping_address_id = shipping_address_id or billing_address_id
        return self.store.update(
            session_id,
            customer={
                'billing_address_id': str(billing_address_id),
                'shipping_address_id': str(shipping_address_id),
            },
            address={'billing': billing, 'shipping': shipping or billing},
            address_verified=True,
        )

    def verify_payment(
        self, session_id: str, payment_method_id: str, summary: Dict[str, Any] = None
    ) -> EnrollmentDraft:
        if not payment_method_id:
            raise ValidationError("A CRM payment method id is required", field='payment_method_id')
        return self.store.update(
            session_id,
            customer={'payment_method_id': str(payment_method_id)},
            payment=summary or {},
            payment_verified=True,
        )

    def set_preferences(self, session_id: str, preferences: Dict[str, Any]) -> EnrollmentDraft:
        if not isinstance(preferences, dict):
            raise ValidationError("preferences must be an object", field='preferences')
        return self.store.update(session_id, preferences=preferences)
