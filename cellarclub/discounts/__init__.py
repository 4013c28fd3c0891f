"""
Canonical discount model and the per-platform codecs.
"""
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
    default_discount,
)
from .extensions import (
    Commerce7CouponExtension,
    Commerce7PromotionExtension,
    ShopifyDiscountExtension,
    UnknownExtension,
    extension_from_dict,
)

__all__ = [
    'AppliesTo',
    'CollectionRef',
    'Discount',
    'DiscountScope',
    'DiscountStatus',
    'DiscountTarget',
    'DiscountValue',
    'MinimumRequirement',
    'Platform',
    'ProductRef',
    'RequirementType',
    'SegmentRef',
    'ValueType',
    'default_discount',
    'Commerce7CouponExtension',
    'Commerce7PromotionExtension',
    'ShopifyDiscountExtension',
    'UnknownExtension',
    'extension_from_dict',
]
