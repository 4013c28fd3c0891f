"""
Shopify automatic discount codec.

Shopify wants percentages as a 0-1 fraction and every money field
(discount amount, minimum subtotal) in dollars.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..utils.exceptions import ValidationError
from .extensions import ShopifyDiscountExtension
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

STATUS_MAP = {
    'ACTIVE': DiscountStatus.ACTIVE,
    'SCHEDULED': DiscountStatus.SCHEDULED,
    'EXPIRED': DiscountStatus.INACTIVE,
}


def _nodes(connection) -> List[Dict[str, Any]]:
    """Accept a GraphQL connection as {nodes}, {edges: [{node}]} or a bare list."""
    if not connection:
        return []
    if isinstance(connection, list):
        return connection
    if connection.get('nodes') is not None:
        return connection['nodes']
    return [edge.get('node', {}) for edge in connection.get('edges') or []]


def encode_discount(discount: Discount, segment_id: Optional[str] = None) -> Dict[str, Any]:
    """Canonical discount -> DiscountAutomaticBasicInput."""
    if discount.value.type == ValueType.PERCENTAGE:
        value = {'percentage': discount.value.percentage / 100}
    else:
        value = {
            'discountAmount': {
                'amount': discount.value.amount / 100,
                'appliesOnEachItem': False,
            }
        }

    applies = discount.applies_to
    if applies.scope == DiscountScope.ALL:
        items = {'all': True}
    elif applies.collections:
        items = {'collections': {'add': [c.id for c in applies.collections]}}
    elif applies.products:
        items = {'products': {'productsToAdd': [p.id for p in applies.products]}}
    else:
        items = {'all': True}

    extension = discount.extension
    if not isinstance(extension, ShopifyDiscountExtension):
        extension = ShopifyDiscountExtension()

    segment_ids = [segment_id] if segment_id else []
    segment_ids.extend(s.id for s in discount.customer_segments if s.id not in segment_ids)

    payload = {
        'title': discount.title,
        'startsAt': format_timestamp(discount.starts_at or datetime.utcnow()),
        'endsAt': None,
        'customerGets': {'value': value, 'items': items},
        'combinesWith': {
            'productDiscounts': extension.combines_with_product,
            'orderDiscounts': extension.combines_with_order,
            'shippingDiscounts': extension.combines_with_shipping,
        },
    }
    if segment_ids:
        payload['context'] = {'customerSegments': {'add': segment_ids}}
    else:
        payload['context'] = {'all': 'ALL'}

    # Minimums are only sent for shipping promotions
    minimum = discount.minimum_requirement
    if applies.target == DiscountTarget.SHIPPING:
        if minimum.type == RequirementType.AMOUNT:
            payload['minimumRequirement'] = {
                'subtotal': {'greaterThanOrEqualToSubtotal': minimum.amount / 100}
            }
        elif minimum.type == RequirementType.QUANTITY:
            payload['minimumRequirement'] = {
                'quantity': {'greaterThanOrEqualToQuantity': str(minimum.quantity)}
            }

    return payload


def _decode_value(value: Dict[str, Any]) -> DiscountValue:
    if value.get('percentage') is not None:
        return DiscountValue.percent(round(float(value['percentage']) * 100, 6))
    # Query responses use {amount: MoneyV2}; inputs use {discountAmount: {amount}}
    amount = value.get('amount') or value.get('discountAmount') or {}
    if isinstance(amount, dict):
        amount = amount.get('amount')
    if amount is None:
        return DiscountValue.percent(0)
    return DiscountValue.fixed(int(round(float(amount) * 100)))


def _decode_items(items: Dict[str, Any], target: DiscountTarget) -> AppliesTo:
    if not items or items.get('allItems') or items.get('all'):
        return AppliesTo(target=target, scope=DiscountScope.ALL)
    collections = _nodes(items.get('collections'))
    if collections:
        return AppliesTo(
            target=target,
            scope=DiscountScope.SPECIFIC,
            collections=[CollectionRef(id=c.get('id'), title=c.get('title') or '') for c in collections],
        )
    products = _nodes(items.get('products'))
    if products:
        return AppliesTo(
            target=target,
            scope=DiscountScope.SPECIFIC,
            products=[ProductRef(id=p.get('id'), title=p.get('title') or '') for p in products],
        )
    return AppliesTo(target=target, scope=DiscountScope.ALL)


def _decode_minimum(requirement: Optional[Dict[str, Any]]) -> MinimumRequirement:
    if not requirement:
        return MinimumRequirement()
    # Inputs wrap the threshold in {subtotal: ...} / {quantity: ...}
    requirement = requirement.get('subtotal') or requirement.get('quantity') or requirement
    if requirement.get('greaterThanOrEqualToQuantity') is not None:
        return MinimumRequirement(
            type=RequirementType.QUANTITY,
            quantity=int(requirement['greaterThanOrEqualToQuantity']),
        )
    subtotal = requirement.get('greaterThanOrEqualToSubtotal')
    if isinstance(subtotal, dict):
        subtotal = subtotal.get('amount')
    if subtotal is not None:
        return MinimumRequirement(
            type=RequirementType.AMOUNT,
            amount=int(round(float(subtotal) * 100)),
        )
    return MinimumRequirement()


def _decode_segments(data: Dict[str, Any]) -> List[SegmentRef]:
    context = data.get('context') or {}
    segments = _nodes(context.get('segments'))
    if not segments and context.get('customerSegments'):
        segments = [{'id': i} for i in context['customerSegments'].get('add') or []]
    if not segments:
        segments = _nodes((data.get('customerSelection') or {}).get('segments'))
    return [SegmentRef(id=s.get('id'), name=s.get('name') or '') for s in segments if s.get('id')]


def decode_discount(node: Optional[Dict[str, Any]]) -> Discount:
    """
    Shopify automatic discount node -> canonical discount.

    Accepts either the DiscountAutomaticNode ({id, automaticDiscount}) or the
    bare DiscountAutomaticBasic object.
    """
    if not node:
        raise ValidationError("Shopify discount payload is empty", field='discount')

    data = node.get('automaticDiscount') or node
    customer_gets = data.get('customerGets') or {}

    minimum = _decode_minimum(data.get('minimumRequirement'))
    # Shopify has no shipping target on basic discounts; minimums are only
    # ever sent for shipping promotions, so their presence marks one.
    is_shipping = (
        data.get('discountClass') == 'SHIPPING'
        or minimum.type != RequirementType.NONE
    )
    target = DiscountTarget.SHIPPING if is_shipping else DiscountTarget.PRODUCT

    combines = data.get('combinesWith') or {}
    status = STATUS_MAP.get((data.get('status') or '').upper(), DiscountStatus.INACTIVE)

    return Discount(
        id=node.get('id') or data.get('id'),
        title=data.get('title') or '',
        platform=Platform.SHOPIFY,
        status=status,
        starts_at=parse_timestamp(data.get('startsAt')),
        value=_decode_value(customer_gets.get('value') or {}),
        applies_to=_decode_items(customer_gets.get('items') or {}, target),
        customer_segments=_decode_segments(data),
        minimum_requirement=minimum,
        extension=ShopifyDiscountExtension(
            combines_with_product=bool(combines.get('productDiscounts', False)),
            combines_with_order=bool(combines.get('orderDiscounts', False)),
            combines_with_shipping=bool(combines.get('shippingDiscounts', True)),
            applies_once_per_customer=bool(data.get('appliesOncePerCustomer', False)),
            usage_limit=data.get('usageLimit'),
            usage_count=data.get('asyncUsageCount'),
        ),
        created_at=parse_timestamp(data.get('createdAt')),
        updated_at=parse_timestamp(data.get('updatedAt')),
    )
