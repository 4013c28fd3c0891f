"""
CRM provider capability interface.

A provider wraps one tenant's CRM account. Implementations must raise
NotFoundError when a remote object is gone (the reconciler recreates it)
and RemoteCallError for every other failure.
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping

from ..discounts.commerce7 import PromotionKind
from ..discounts.model import Discount


@dataclass
class PromotionRef:
    """Identity of a remote promotion as returned by create/update."""
    id: str
    title: str
    kind: PromotionKind = PromotionKind.PROMOTION


@dataclass
class MembershipRequest:
    """
    Everything needed to create a remote club membership.

    Address and payment ids must already be CRM ids, never local drafts.
    """
    customer_id: str
    club_id: str
    billing_address_id: str
    shipping_address_id: str
    payment_method_id: str
    signup_date: datetime
    tier_id: str = ''
    tier_name: str = ''
    delivery_method: str = 'Ship'


def club_slug(name: str) -> str:
    return re.sub(r'\s+', '-', (name or '').strip().lower())


class CrmProvider(ABC):
    """Operations the console needs from a CRM platform."""

    crm_type: str = None

    # ==================== Clubs ====================

    @abstractmethod
    def upsert_club(self, stage) -> str:
        """Create the remote club for a tier, or update it when stage.crm_club_id is set."""

    @abstractmethod
    def delete_club(self, club_id: str) -> None:
        pass

    # ==================== Promotions ====================

    @abstractmethod
    def create_promotion(self, discount: Discount, club_id: str) -> PromotionRef:
        pass

    @abstractmethod
    def update_promotion(
        self, promotion_id: str, discount: Discount, club_id: str,
        kind: PromotionKind = PromotionKind.PROMOTION
    ) -> PromotionRef:
        pass

    @abstractmethod
    def delete_promotion(self, promotion_id: str, kind: PromotionKind = PromotionKind.PROMOTION) -> None:
        pass

    @abstractmethod
    def get_promotion(self, promotion_id: str, kind: PromotionKind = PromotionKind.PROMOTION) -> Discount:
        """Fetch and decode a promotion. Raises NotFoundError if it no longer exists."""

    # ==================== Loyalty ====================

    @abstractmethod
    def create_loyalty_tier(self, title: str, club_id: str, earn_rate: float, sort_order: int = 0) -> str:
        pass

    @abstractmethod
    def update_loyalty_tier(self, loyalty_tier_id: str, title: str, club_id: str, earn_rate: float) -> None:
        """Push a changed earn rate. Raises NotFoundError if the tier is gone."""

    @abstractmethod
    def delete_loyalty_tier(self, loyalty_tier_id: str) -> None:
        pass

    @abstractmethod
    def preload_bonus_points(self, customer_id: str, amount: int, label: str) -> None:
        pass

    # ==================== Memberships ====================

    @abstractmethod
    def create_club_membership(self, request: MembershipRequest) -> str:
        pass

    # ==================== Webhooks ====================

    @abstractmethod
    def register_webhook(self, topic: str, address: str) -> str:
        pass

    @abstractmethod
    def list_webhooks(self) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def delete_webhook(self, webhook_id: str) -> None:
        pass

    @abstractmethod
    def validate_webhook(self, body: bytes, headers: Mapping[str, str]) -> bool:
        pass
