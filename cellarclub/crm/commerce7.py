"""
Commerce7 REST provider.

API Documentation: https://developer.commerce7.com/docs/commerce7-apis

Every call authenticates with the app's Basic credentials and names the
winery in the ``tenant`` header.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

from ..discounts import commerce7 as codec
from ..discounts.commerce7 import EncodedPromotion, PromotionKind
from ..discounts.model import Discount
from ..utils.exceptions import NotFoundError, RemoteCallError
from ..webhooks import verify_commerce7_webhook_signature
from .base import CrmProvider, MembershipRequest, PromotionRef, club_slug

logger = logging.getLogger(__name__)

PLATFORM = 'commerce7'


class Commerce7Provider(CrmProvider):
    """
    Commerce7 implementation of the CRM capability interface.

    Usage:
        provider = Commerce7Provider('my-winery', app_name, api_key)
        club_id = provider.upsert_club(stage)
    """

    crm_type = PLATFORM
    BASE_URL = 'https://api.commerce7.com/v1'

    def __init__(
        self,
        tenant_identifier: str,
        app_name: str,
        api_key: str,
        api_url: str = None,
        webhook_secret: str = None,
        timeout: float = 30,
        session: requests.Session = None
    ):
        self.tenant_identifier = tenant_identifier
        self.app_name = app_name
        self.api_key = api_key
        self.api_url = (api_url or self.BASE_URL).rstrip('/')
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get_headers(self) -> Dict[str, str]:
        return {
            'tenant': self.tenant_identifier,
            'Content-Type': 'application/json',
        }

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Send one API call, mapping 404 to NotFoundError and all else to RemoteCallError."""
        url = f'{self.api_url}/{path}'
        try:
            response = self.session.request(
                method,
                url,
                headers=self._get_headers(),
                auth=(self.app_name, self.api_key),
                json=payload,
                params=params,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Commerce7 {operation} failed for {self.tenant_identifier}: {e}")
            raise RemoteCallError(
                f"Commerce7 {operation} failed: {e}",
                platform=PLATFORM, operation=operation, original_error=e
            )

        if response.status_code == 404:
            raise NotFoundError(f"Commerce7 {path.split('/')[0]}", path.split('/')[-1])

        if response.status_code >= 400:
            logger.error(
                f"Commerce7 {operation} returned {response.status_code} "
                f"for {self.tenant_identifier}: {response.text[:500]}"
            )
            raise RemoteCallError(
                f"Commerce7 {operation} failed with status {response.status_code}",
                platform=PLATFORM, operation=operation, status_code=response.status_code
            )

        if response.status_code == 204 or not response.content:
            return {}

        data = response.json()
        if isinstance(data, dict) and data.get('errors'):
            raise RemoteCallError(
                f"Commerce7 {operation} rejected: {data['errors']}",
                platform=PLATFORM, operation=operation, status_code=response.status_code
            )
        return data

    # ==================== Clubs ====================

    def upsert_club(self, stage) -> str:
        payload = {
            'title': stage.name,
            'slug': club_slug(stage.name),
            'seo': {'title': stage.name},
            'webStatus': 'Not Available',
            'adminStatus': 'Not Available',
        }

        if stage.crm_club_id:
            try:
                # Club type is immutable once created, so it is not resent
                self._request('PUT', f'club/{stage.crm_club_id}', 'update club', payload)
                return stage.crm_club_id
            except NotFoundError:
                logger.info(f"Club {stage.crm_club_id} for tier {stage.name} is gone, recreating")

        payload['type'] = 'Traditional'
        data = self._request('POST', 'club', 'create club', payload)
        return data['id']

    def delete_club(self, club_id: str) -> None:
        self._request('DELETE', f'club/{club_id}', 'delete club')

    # ==================== Promotions ====================

    @staticmethod
    def _path(kind) -> str:
        return 'coupon' if PromotionKind(kind) == PromotionKind.COUPON else 'promotion'

    def create_promotion(self, discount: Discount, club_id: str) -> PromotionRef:
        encoded = codec.encode(discount, club_id, PromotionKind.PROMOTION)
        data = self._request('POST', 'promotion', 'create promotion', encoded.payload)
        return PromotionRef(
            id=data['id'],
            title=data.get('title') or discount.title,
            kind=PromotionKind.PROMOTION
        )

    def update_promotion(
        self, promotion_id: str, discount: Discount, club_id: str,
        kind: PromotionKind = PromotionKind.PROMOTION
    ) -> PromotionRef:
        encoded = codec.encode(discount, club_id, kind)
        data = self._request(
            'PUT', f'{self._path(kind)}/{promotion_id}', f'update {self._path(kind)}', encoded.payload
        )
        return PromotionRef(
            id=data.get('id') or promotion_id,
            title=data.get('title') or discount.title,
            kind=encoded.kind
        )

    def delete_promotion(self, promotion_id: str, kind: PromotionKind = PromotionKind.PROMOTION) -> None:
        self._request('DELETE', f'{self._path(kind)}/{promotion_id}', f'delete {self._path(kind)}')

    def get_promotion(self, promotion_id: str, kind: PromotionKind = PromotionKind.PROMOTION) -> Discount:
        data = self._request('GET', f'{self._path(kind)}/{promotion_id}', f'get {self._path(kind)}')
        if not data:
            raise NotFoundError(f"Commerce7 {self._path(kind)}", promotion_id)
        return codec.decode(EncodedPromotion(PromotionKind(kind), data), self.resolve_title)

    def resolve_title(self, object_type: str, object_id: str) -> str:
        """Look up a product or collection title for display."""
        data = self._request('GET', f'{object_type}/{object_id}', f'get {object_type}')
        return data.get('title', '')

    # ==================== Loyalty ====================

    def create_loyalty_tier(self, title: str, club_id: str, earn_rate: float, sort_order: int = 0) -> str:
        payload = {
            'title': title,
            'qualificationType': 'Club',
            'clubsToQualify': [{'id': club_id}],
            'earnRate': earn_rate,
            'sortOrder': sort_order,
        }
        data = self._request('POST', 'loyalty-tier', 'create loyalty tier', payload)
        return data['id']

    def update_loyalty_tier(self, loyalty_tier_id: str, title: str, club_id: str, earn_rate: float) -> None:
        payload = {
            'title': title,
            'qualificationType': 'Club',
            'clubsToQualify': [{'id': club_id}],
            'earnRate': earn_rate,
        }
        self._request('PUT', f'loyalty-tier/{loyalty_tier_id}', 'update loyalty tier', payload)

    def delete_loyalty_tier(self, loyalty_tier_id: str) -> None:
        self._request('DELETE', f'loyalty-tier/{loyalty_tier_id}', 'delete loyalty tier')

    def preload_bonus_points(self, customer_id: str, amount: int, label: str) -> None:
        payload = {'customerId': customer_id, 'amount': amount, 'notes': label}
        self._request('POST', 'loyalty-transaction', 'add loyalty points', payload)

    # ==================== Memberships ====================

    def create_club_membership(self, request: MembershipRequest) -> str:
        payload = {
            'customerId': request.customer_id,
            'clubId': request.club_id,
            'billToCustomerAddressId': request.billing_address_id,
            'shipToCustomerAddressId': request.shipping_address_id,
            'customerCreditCardId': request.payment_method_id,
            'orderDeliveryMethod': request.delivery_method,
            'signupDate': request.signup_date.isoformat() + 'Z',
            'cancelDate': None,
        }
        data = self._request('POST', 'club-membership', 'create club membership', payload)
        return data['id']

    # ==================== Webhooks ====================

    def register_webhook(self, topic: str, address: str) -> str:
        payload = {'topic': topic, 'url': address, 'isActive': True}
        data = self._request('POST', 'webhook', 'register webhook', payload)
        return data['id']

    def list_webhooks(self) -> List[Dict[str, Any]]:
        data = self._request('GET', 'webhook', 'list webhooks')
        return data.get('webhooks', [])

    def delete_webhook(self, webhook_id: str) -> None:
        self._request('DELETE', f'webhook/{webhook_id}', 'delete webhook')

    def validate_webhook(self, body: bytes, headers: Mapping[str, str]) -> bool:
        signature = headers.get('X-Commerce7-Signature') or headers.get('x-commerce7-signature')
        return verify_commerce7_webhook_signature(body, signature, self.webhook_secret)
