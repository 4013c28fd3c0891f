"""
CRM provider interface, concrete providers and the provider factory.
"""
from .base import CrmProvider, MembershipRequest, PromotionRef
from .commerce7 import Commerce7Provider
from .shopify import ShopifyProvider
from .factory import ProviderFactory, get_provider_factory

__all__ = [
    'CrmProvider',
    'MembershipRequest',
    'PromotionRef',
    'Commerce7Provider',
    'ShopifyProvider',
    'ProviderFactory',
    'get_provider_factory',
]
