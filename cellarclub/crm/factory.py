"""
Provider factory.

Built once per application in create_app() and stored on
``app.extensions``; services receive the provider it returns rather than
looking one up themselves. Tests build a factory around fakes.
"""
from typing import Callable, Dict

from flask import current_app

from ..utils.exceptions import ConfigurationError
from .base import CrmProvider
from .commerce7 import Commerce7Provider
from .shopify import ShopifyProvider

ProviderBuilder = Callable[[object], CrmProvider]

EXTENSION_KEY = 'cellarclub_providers'


class ProviderFactory:
    """Returns the CRM provider for a tenant, keyed by ``tenant.crm_type``."""

    def __init__(self, builders: Dict[str, ProviderBuilder]):
        self._builders = dict(builders)

    @property
    def crm_types(self):
        return sorted(self._builders)

    def for_tenant(self, tenant) -> CrmProvider:
        builder = self._builders.get(tenant.crm_type)
        if builder is None:
            raise ConfigurationError(f"No CRM provider for platform '{tenant.crm_type}'")
        return builder(tenant)

    @classmethod
    def from_config(cls, config) -> 'ProviderFactory':
        """Default factory wired to the real Commerce7 and Shopify APIs."""

        def build_commerce7(tenant) -> CrmProvider:
            return Commerce7Provider(
                tenant.crm_identifier,
                app_name=config.get('COMMERCE7_APP_NAME'),
                api_key=config.get('COMMERCE7_KEY'),
                api_url=config.get('COMMERCE7_API_URL'),
                webhook_secret=tenant.webhook_secret or config.get('COMMERCE7_WEBHOOK_SECRET'),
                timeout=config.get('CRM_TIMEOUT_SECONDS', 30),
            )

        def build_shopify(tenant) -> CrmProvider:
            if not tenant.access_token:
                raise ConfigurationError(f"Tenant {tenant.crm_identifier} missing Shopify credentials")
            return ShopifyProvider(
                tenant.crm_identifier,
                tenant.access_token,
                api_version=config.get('SHOPIFY_API_VERSION', '2025-01'),
                api_secret=config.get('SHOPIFY_API_SECRET'),
                timeout=config.get('CRM_TIMEOUT_SECONDS', 30),
            )

        return cls({
            Commerce7Provider.crm_type: build_commerce7,
            ShopifyProvider.crm_type: build_shopify,
        })


def get_provider_factory() -> ProviderFactory:
    """The factory registered on the current application."""
    return current_app.extensions[EXTENSION_KEY]
