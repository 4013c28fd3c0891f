"""
Commerce7 promotion codecs.

Commerce7 has two request/response shapes for tier discounts:

- ``promotion``: the current auto-applying club promotion. Percentages are
  integer basis points, dollar-off discounts stay in cents, and the cart
  minimum is expressed in dollars.
- ``coupon``: the older code-based shape kept for objects created before
  promotions existed. Percentages are plain 0-100 and every money field is
  in dollars.

Both travel as an ``EncodedPromotion`` tagged with its kind, and a stored
object keeps the kind it was created with.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..utils.exceptions import ValidationError
from .extensions import Commerce7CouponExtension, Commerce7PromotionExtension
from .model import (
    AppliesTo,
    CollectionRef,
    Discount,
    DiscountScope,
    DiscountStatus,
    DiscountTarget,
    DiscountValue,
    MinimumRequirement,
    Platform,
    ProductRef,
    RequirementType,
    SegmentRef,
    ValueType,
    format_timestamp,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

PERCENTAGE_OFF = 'Percentage Off'
DOLLAR_OFF = 'Dollar Off'
NO_DISCOUNT = 'No Discount'

APPLIES_TO_STORE = 'Store'
APPLIES_TO_PRODUCT = 'Product'
APPLIES_TO_COLLECTION = 'Collection'

# Resolves ('product' | 'collection', id) to a display title
TitleResolver = Callable[[str, str], str]


class PromotionKind(str, Enum):
    PROMOTION = 'promotion'
    COUPON = 'coupon'


@dataclass(frozen=True)
class EncodedPromotion:
    """A Commerce7 request/response body tagged with the shape it uses."""
    kind: PromotionKind
    payload: Dict[str, Any]


# ==================== Shared helpers ====================

def _dollars(cents: int) -> float:
    return cents / 100


def _cents(dollars) -> int:
    return int(round(float(dollars) * 100))


def _applies_to(discount: Discount) -> Dict[str, Any]:
    """appliesTo plus object ids; the id key is omitted for store-wide scope."""
    applies = discount.applies_to
    if applies.scope == DiscountScope.ALL:
        return {'appliesTo': APPLIES_TO_STORE}
    if applies.collections:
        return {
            'appliesTo': APPLIES_TO_COLLECTION,
            'appliesToObjectIds': [c.id for c in applies.collections],
        }
    if applies.products:
        return {
            'appliesTo': APPLIES_TO_PRODUCT,
            'appliesToObjectIds': [p.id for p in applies.products],
        }
    return {'appliesTo': APPLIES_TO_STORE}


def _segment_ids(discount: Discount, club_id: Optional[str]) -> List[str]:
    ids = [club_id] if club_id else []
    ids.extend(s.id for s in discount.customer_segments if s.id not in ids)
    return ids


def _resolve(resolve_title: Optional[TitleResolver], kind: str, object_id: str) -> str:
    """Title lookup that never aborts a decode."""
    if resolve_title is None:
        return ''
    try:
        return resolve_title(kind, object_id) or ''
    except Exception as e:
        logger.warning(f"Could not resolve {kind} {object_id} title: {e}")
        return ''


def _decode_applies_to(
    data: Dict[str, Any],
    target: DiscountTarget,
    resolve_title: Optional[TitleResolver]
) -> AppliesTo:
    applies = data.get('appliesTo') or APPLIES_TO_STORE
    object_ids = [str(i) for i in data.get('appliesToObjectIds') or []]

    if applies == APPLIES_TO_COLLECTION and object_ids:
        return AppliesTo(
            target=target,
            scope=DiscountScope.SPECIFIC,
            collections=[
                CollectionRef(id=i, title=_resolve(resolve_title, 'collection', i))
                for i in object_ids
            ],
        )
    if applies == APPLIES_TO_PRODUCT and object_ids:
        return AppliesTo(
            target=target,
            scope=DiscountScope.SPECIFIC,
            products=[
                ProductRef(id=i, title=_resolve(resolve_title, 'product', i))
                for i in object_ids
            ],
        )
    return AppliesTo(target=target, scope=DiscountScope.ALL)


def _decode_status(data: Dict[str, Any], starts_at: Optional[datetime]) -> DiscountStatus:
    status = DiscountStatus.ACTIVE if data.get('status') == 'Enabled' else DiscountStatus.INACTIVE
    if starts_at and starts_at > datetime.utcnow():
        return DiscountStatus.SCHEDULED
    return status


def _coupon_code(title: str) -> str:
    code = re.sub(r'[^A-Za-z0-9]+', '', title or '').upper()
    return code[:30] or 'CLUBMEMBER'


# ==================== Promotion shape ====================

def encode_promotion(discount: Discount, club_id: Optional[str]) -> Dict[str, Any]:
    """Canonical discount -> Commerce7 promotion create/update body."""
    is_shipping = discount.applies_to.target == DiscountTarget.SHIPPING

    if discount.value.type == ValueType.PERCENTAGE:
        discount_type = PERCENTAGE_OFF
        amount = int(round(discount.value.percentage * 100))  # basis points
    else:
        discount_type = DOLLAR_OFF
        amount = discount.value.amount  # stays in cents

    extension = discount.extension
    if not isinstance(extension, Commerce7PromotionExtension):
        extension = Commerce7PromotionExtension()

    payload = {
        'title': discount.title,
        'type': 'Shipping' if is_shipping else 'Product',
        'status': 'Enabled' if discount.status != DiscountStatus.INACTIVE else 'Disabled',
        'discountType': discount_type,
        'discount': amount,
        'dollarOffDiscountApplies': 'Once Per Order',
        'cartRequirementType': 'None',
        'cartRequirement': None,
        'cartRequirementMaximum': None,
        'cartRequirementCountType': 'All Items',
        'usageLimitType': 'Unlimited',
        'availableTo': 'Club',
        'availableToObjectIds': _segment_ids(discount, club_id),
        'clubFrequencies': [],
        'promotionSets': list(extension.promotion_set_ids),
        'actionMessage': extension.action_message,
        'startDate': format_timestamp(discount.starts_at or datetime.utcnow()),
        'endDate': None,
    }
    payload.update(_applies_to(discount))

    # Cart minimums only mean something for shipping promotions
    minimum = discount.minimum_requirement
    if is_shipping and minimum.type == RequirementType.AMOUNT:
        payload['cartRequirementType'] = 'Minimum Amount'
        payload['cartRequirement'] = _dollars(minimum.amount)
    elif is_shipping and minimum.type == RequirementType.QUANTITY:
        payload['cartRequirementType'] = 'Minimum Quantity'
        payload['cartRequirement'] = minimum.quantity

    return payload


def _promotion_discount_fields(data: Dict[str, Any], is_shipping: bool):
    """discountType/discount, falling back to the product/shipping split fields."""
    if data.get('discountType'):
        return data.get('discountType'), data.get('discount')
    if is_shipping:
        return data.get('shippingDiscountType'), data.get('shippingDiscount')
    return data.get('productDiscountType'), data.get('productDiscount')


def decode_promotion(
    data: Optional[Dict[str, Any]],
    resolve_title: Optional[TitleResolver] = None
) -> Discount:
    """Commerce7 promotion response -> canonical discount."""
    if not data:
        raise ValidationError("Commerce7 promotion payload is empty", field='promotion')

    is_shipping = data.get('type') == 'Shipping'
    target = DiscountTarget.SHIPPING if is_shipping else DiscountTarget.PRODUCT

    discount_type, amount = _promotion_discount_fields(data, is_shipping)
    if discount_type == DOLLAR_OFF:
        value = DiscountValue.fixed(int(round(float(amount or 0))))
    else:
        value = DiscountValue.percent(float(amount or 0) / 100)

    minimum = MinimumRequirement()
    requirement_type = data.get('cartRequirementType')
    requirement = data.get('cartRequirement')
    if requirement is None and data.get('minimumCartAmount') is not None:
        requirement_type, requirement = 'Minimum Amount', data.get('minimumCartAmount')
    if is_shipping and requirement is not None:
        if requirement_type == 'Minimum Amount':
            minimum = MinimumRequirement(type=RequirementType.AMOUNT, amount=_cents(requirement))
        elif requirement_type == 'Minimum Quantity':
            minimum = MinimumRequirement(type=RequirementType.QUANTITY, quantity=int(requirement))

    starts_at = parse_timestamp(data.get('startDate'))

    return Discount(
        id=data.get('id'),
        title=data.get('title') or '',
        platform=Platform.COMMERCE7,
        status=_decode_status(data, starts_at),
        starts_at=starts_at,
        value=value,
        applies_to=_decode_applies_to(data, target, resolve_title),
        customer_segments=[
            SegmentRef(id=str(i)) for i in data.get('availableToObjectIds') or []
        ],
        minimum_requirement=minimum,
        extension=Commerce7PromotionExtension(
            promotion_set_ids=[
                str(s.get('id') if isinstance(s, dict) else s)
                for s in data.get('promotionSets') or []
            ],
            action_message=data.get('actionMessage') or '',
        ),
        created_at=parse_timestamp(data.get('createdAt')),
        updated_at=parse_timestamp(data.get('updatedAt')),
    )


# ==================== Legacy coupon shape ====================

def encode_coupon(discount: Discount, club_id: Optional[str] = None) -> Dict[str, Any]:
    """Canonical discount -> legacy Commerce7 coupon body."""
    is_shipping = discount.applies_to.target == DiscountTarget.SHIPPING

    if discount.value.type == ValueType.PERCENTAGE:
        discount_type = PERCENTAGE_OFF
        amount = discount.value.percentage
    else:
        discount_type = DOLLAR_OFF
        amount = _dollars(discount.value.amount)

    extension = discount.extension
    if not isinstance(extension, Commerce7CouponExtension):
        extension = Commerce7CouponExtension(code=_coupon_code(discount.title))

    segment_ids = _segment_ids(discount, club_id)
    starts_at = discount.starts_at or datetime.utcnow()

    payload = {
        'code': extension.code or _coupon_code(discount.title),
        'title': discount.title,
        'type': 'Shipping' if is_shipping else 'Product',
        'status': 'Enabled' if discount.status != DiscountStatus.INACTIVE else 'Disabled',
        'startDate': starts_at.date().isoformat(),
        'endDate': None,
        'discountType': discount_type,
        'discount': amount,
        'availableTo': 'Tag' if segment_ids else 'Everyone',
        'availableToObjectIds': segment_ids,
        'cartRequirementType': 'None',
        'cartRequirement': None,
        'cartRequirementCountType': 'All Items',
        'usageLimitType': extension.usage_limit_type,
        'dollarOffDiscountApplies': 'Once Per Order',
        'actionMessage': '',
        'cartContainsType': extension.cart_contains_type,
        'excludes': None,
    }
    payload.update(_applies_to(discount))

    minimum = discount.minimum_requirement
    if is_shipping and minimum.type == RequirementType.AMOUNT:
        payload['cartRequirementType'] = 'Minimum Purchase Amount'
        payload['cartRequirement'] = _dollars(minimum.amount)
    elif is_shipping and minimum.type == RequirementType.QUANTITY:
        payload['cartRequirementType'] = 'Minimum Quantity'
        payload['cartRequirement'] = minimum.quantity

    return payload


def decode_coupon(
    data: Optional[Dict[str, Any]],
    resolve_title: Optional[TitleResolver] = None
) -> Discount:
    """Legacy Commerce7 coupon response -> canonical discount."""
    if not data:
        raise ValidationError("Commerce7 coupon payload is empty", field='coupon')

    is_shipping = data.get('type') == 'Shipping'
    target = DiscountTarget.SHIPPING if is_shipping else DiscountTarget.PRODUCT

    amount = data.get('discount') or 0
    if data.get('discountType') == DOLLAR_OFF:
        value = DiscountValue.fixed(_cents(amount))
    else:
        value = DiscountValue.percent(float(amount))

    minimum = MinimumRequirement()
    requirement = data.get('cartRequirement')
    if is_shipping and requirement is not None:
        if data.get('cartRequirementType') == 'Minimum Purchase Amount':
            minimum = MinimumRequirement(type=RequirementType.AMOUNT, amount=_cents(requirement))
        elif data.get('cartRequirementType') == 'Minimum Quantity':
            minimum = MinimumRequirement(type=RequirementType.QUANTITY, quantity=int(requirement))

    starts_at = parse_timestamp(data.get('startDate'))
    segments = []
    if data.get('availableTo') != 'Everyone':
        segments = [SegmentRef(id=str(i)) for i in data.get('availableToObjectIds') or []]

    return Discount(
        id=data.get('id'),
        title=data.get('title') or '',
        platform=Platform.COMMERCE7,
        status=_decode_status(data, starts_at),
        starts_at=starts_at,
        value=value,
        applies_to=_decode_applies_to(data, target, resolve_title),
        customer_segments=segments,
        minimum_requirement=minimum,
        extension=Commerce7CouponExtension(
            code=data.get('code') or '',
            usage_limit_type=data.get('usageLimitType') or 'Unlimited',
            cart_contains_type=data.get('cartContainsType') or 'Anything',
        ),
        created_at=parse_timestamp(data.get('createdAt')),
        updated_at=parse_timestamp(data.get('updatedAt')),
    )


# ==================== Tagged dispatch ====================

def encode(discount: Discount, club_id: Optional[str], kind=PromotionKind.PROMOTION) -> EncodedPromotion:
    kind = PromotionKind(kind)
    if kind == PromotionKind.COUPON:
        return EncodedPromotion(kind, encode_coupon(discount, club_id))
    return EncodedPromotion(kind, encode_promotion(discount, club_id))


def decode(encoded: EncodedPromotion, resolve_title: Optional[TitleResolver] = None) -> Discount:
    if PromotionKind(encoded.kind) == PromotionKind.COUPON:
        return decode_coupon(encoded.payload, resolve_title)
    return decode_promotion(encoded.payload, resolve_title)
