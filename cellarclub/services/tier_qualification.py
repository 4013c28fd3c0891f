"""
Tier qualification by purchase amount or customer lifetime value.
"""
from decimal import Decimal, InvalidOperation
from typing import Optional

from ..models.club import ClubStage
from ..utils.exceptions import ValidationError


def parse_amount(value, field: str) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number", field=field)
    return amount


def is_qualified(stage: ClubStage, purchase_amount=None, customer_ltv=None) -> bool:
    """A customer qualifies on either the purchase or the LTV threshold."""
    purchase = parse_amount(purchase_amount, 'purchase_amount')
    ltv = parse_amount(customer_ltv, 'ltv')
    min_purchase = Decimal(str(stage.min_purchase_amount or 0))
    min_ltv = Decimal(str(stage.min_ltv_amount or 0))

    if purchase is not None and purchase >= min_purchase:
        return True
    if ltv is not None and ltv >= min_ltv:
        return True
    return False


def find_qualifying_tier(tenant_id: int, purchase_amount=None, customer_ltv=None) -> Optional[ClubStage]:
    """Highest active tier the customer qualifies for, or None."""
    stages = (
        ClubStage.query
        .filter_by(tenant_id=tenant_id, is_active=True)
        .order_by(ClubStage.stage_order.desc())
        .all()
    )
    for stage in stages:
        if is_qualified(stage, purchase_amount, customer_ltv):
            return stage
    return None
