"""
Platform-specific discount extension data.

Each known extension shape is its own dataclass with a ``KIND`` tag;
anything unrecognized is kept verbatim in UnknownExtension so data written
by newer code survives a round trip through older code.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class Commerce7PromotionExtension:
    KIND = 'commerce7_promotion'

    promotion_set_ids: List[str] = field(default_factory=list)
    action_message: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.KIND,
            'promotion_set_ids': list(self.promotion_set_ids),
            'action_message': self.action_message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Commerce7PromotionExtension':
        return cls(
            promotion_set_ids=list(data.get('promotion_set_ids') or []),
            action_message=data.get('action_message') or '',
        )


@dataclass
class Commerce7CouponExtension:
    KIND = 'commerce7_coupon'

    code: str = ''
    usage_limit_type: str = 'Unlimited'
    cart_contains_type: str = 'Anything'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.KIND,
            'code': self.code,
            'usage_limit_type': self.usage_limit_type,
            'cart_contains_type': self.cart_contains_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Commerce7CouponExtension':
        return cls(
            code=data.get('code') or '',
            usage_limit_type=data.get('usage_limit_type') or 'Unlimited',
            cart_contains_type=data.get('cart_contains_type') or 'Anything',
        )


@dataclass
class ShopifyDiscountExtension:
    KIND = 'shopify_discount'

    combines_with_product: bool = False
    combines_with_order: bool = False
    combines_with_shipping: bool = True
    applies_once_per_customer: bool = False
    usage_limit: Optional[int] = None
    usage_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.KIND,
            'combines_with_product': self.combines_with_product,
            'combines_with_order': self.combines_with_order,
            'combines_with_shipping': self.combines_with_shipping,
            'applies_once_per_customer': self.applies_once_per_customer,
            'usage_limit': self.usage_limit,
            'usage_count': self.usage_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ShopifyDiscountExtension':
        return cls(
            combines_with_product=bool(data.get('combines_with_product', False)),
            combines_with_order=bool(data.get('combines_with_order', False)),
            combines_with_shipping=bool(data.get('combines_with_shipping', True)),
            applies_once_per_customer=bool(data.get('applies_once_per_customer', False)),
            usage_limit=data.get('usage_limit'),
            usage_count=data.get('usage_count'),
        )


@dataclass
class UnknownExtension:
    kind: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.payload)
        data['kind'] = self.kind
        return data


DiscountExtension = Union[
    Commerce7PromotionExtension,
    Commerce7CouponExtension,
    ShopifyDiscountExtension,
    UnknownExtension,
]

EXTENSION_TYPES = {
    Commerce7PromotionExtension.KIND: Commerce7PromotionExtension,
    Commerce7CouponExtension.KIND: Commerce7CouponExtension,
    ShopifyDiscountExtension.KIND: ShopifyDiscountExtension,
}


def extension_from_dict(data: Optional[Dict[str, Any]]) -> Optional[DiscountExtension]:
    """Rebuild an extension from its dict form, dispatching on ``kind``."""
    if not data:
        return None
    kind = data.get('kind') or 'unknown'
    extension_cls = EXTENSION_TYPES.get(kind)
    if extension_cls is None:
        payload = {k: v for k, v in data.items() if k != 'kind'}
        return UnknownExtension(kind=kind, payload=payload)
    return extension_cls.from_dict(data)
