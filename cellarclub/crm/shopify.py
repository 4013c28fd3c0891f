"""
Shopify Admin GraphQL provider.

Clubs map to customer segments keyed on a customer tag; tier promotions
are automatic basic discounts scoped to that segment. Shopify has no
native loyalty ledger, so loyalty operations are unsupported.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from ..discounts.commerce7 import PromotionKind
from ..discounts.model import Discount
from ..discounts.shopify import decode_discount, encode_discount
from ..utils.exceptions import ConfigurationError, NotFoundError, RemoteCallError, ValidationError
from ..webhooks import verify_shopify_webhook_signature
from .base import CrmProvider, MembershipRequest, PromotionRef

logger = logging.getLogger(__name__)

PLATFORM = 'shopify'

DISCOUNT_FIELDS = """
    id
    automaticDiscount {
        ... on DiscountAutomaticBasic {
            title
            status
            startsAt
            endsAt
            createdAt
            updatedAt
            asyncUsageCount
            discountClass
            combinesWith {
                productDiscounts
                orderDiscounts
                shippingDiscounts
            }
            customerGets {
                value {
                    ... on DiscountPercentage {
                        percentage
                    }
                    ... on DiscountAmount {
                        amount {
                            amount
                        }
                    }
                }
                items {
                    ... on AllDiscountItems {
                        allItems
                    }
                    ... on DiscountProducts {
                        products(first: 50) {
                            nodes {
                                id
                                title
                            }
                        }
                    }
                    ... on DiscountCollections {
                        collections(first: 50) {
                            nodes {
                                id
                                title
                            }
                        }
                    }
                }
            }
            minimumRequirement {
                ... on DiscountMinimumQuantity {
                    greaterThanOrEqualToQuantity
                }
                ... on DiscountMinimumSubtotal {
                    greaterThanOrEqualToSubtotal {
                        amount
                    }
                }
            }
            context {
                ... on DiscountCustomerSegments {
                    segments {
                        id
                        name
                    }
                }
            }
        }
    }
"""


def club_tag(stage_id: str) -> str:
    """Customer tag for a tier; stable across renames."""
    return f'club-{stage_id}'


def _gid(kind: str, value: str) -> str:
    value = str(value)
    if value.startswith('gid://'):
        return value
    return f'gid://shopify/{kind}/{value}'


class ShopifyProvider(CrmProvider):
    """
    Shopify implementation of the CRM capability interface.

    Usage:
        provider = ShopifyProvider('wine.myshopify.com', access_token)
        ref = provider.create_promotion(discount, segment_id)
    """

    crm_type = PLATFORM

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = '2025-01',
        api_secret: str = None,
        timeout: float = 30.0
    ):
        self.shop_domain = shop_domain.replace('https://', '').replace('http://', '').rstrip('/')
        self.access_token = access_token
        self.api_version = api_version
        self.api_secret = api_secret
        self.timeout = timeout
        self.graphql_url = f'https://{self.shop_domain}/admin/api/{api_version}/graphql.json'

    def _execute_query(self, query: str, variables: Optional[Dict] = None, operation: str = 'query') -> Dict[str, Any]:
        """Execute a GraphQL query."""
        headers = {
            'X-Shopify-Access-Token': self.access_token,
            'Content-Type': 'application/json'
        }

        payload = {'query': query}
        if variables:
            payload['variables'] = variables

        try:
            with httpx.Client() as client:
                response = client.post(
                    self.graphql_url,
                    headers=headers,
                    json=payload,
                    timeout=self.timeout
                )
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Shopify {operation} failed for {self.shop_domain}: {e}")
            raise RemoteCallError(
                f"Shopify {operation} failed with status {e.response.status_code}",
                platform=PLATFORM, operation=operation,
                status_code=e.response.status_code, original_error=e
            )
        except httpx.HTTPError as e:
            logger.error(f"Shopify {operation} failed for {self.shop_domain}: {e}")
            raise RemoteCallError(
                f"Shopify {operation} failed: {e}",
                platform=PLATFORM, operation=operation, original_error=e
            )

        if 'errors' in result:
            raise RemoteCallError(
                f"Shopify {operation} GraphQL errors: {result['errors']}",
                platform=PLATFORM, operation=operation
            )

        return result.get('data', {})

    def _mutate(self, mutation: str, variables: Dict, root: str, operation: str) -> Dict[str, Any]:
        """Run a mutation and raise on userErrors."""
        result = self._execute_query(mutation, variables, operation)
        data = result.get(root) or {}
        errors = data.get('userErrors') or []
        if errors:
            messages = '; '.join(e.get('message', '') for e in errors)
            if any('does not exist' in (e.get('message') or '').lower() for e in errors):
                raise NotFoundError(f"Shopify {operation.split(' ')[-1]}", variables.get('id'))
            raise RemoteCallError(
                f"Shopify {operation} rejected: {messages}",
                platform=PLATFORM, operation=operation
            )
        return data

    # ==================== Clubs (customer segments) ====================

    def upsert_club(self, stage) -> str:
        name = f'Club: {stage.name}'
        segment_query = f"customer_tags CONTAINS '{club_tag(stage.id)}'"

        if stage.crm_club_id:
            mutation = """
            mutation segmentUpdate($id: ID!, $name: String, $query: String) {
                segmentUpdate(id: $id, name: $name, query: $query) {
                    segment { id }
                    userErrors { field message }
                }
            }
            """
            try:
                data = self._mutate(
                    mutation,
                    {'id': stage.crm_club_id, 'name': name, 'query': segment_query},
                    'segmentUpdate', 'update segment'
                )
                if data.get('segment'):
                    return data['segment']['id']
            except NotFoundError:
                pass
            logger.info(f"Segment {stage.crm_club_id} for tier {stage.name} is gone, recreating")

        mutation = """
        mutation segmentCreate($name: String!, $query: String!) {
            segmentCreate(name: $name, query: $query) {
                segment { id }
                userErrors { field message }
            }
        }
        """
        data = self._mutate(
            mutation, {'name': name, 'query': segment_query}, 'segmentCreate', 'create segment'
        )
        return data['segment']['id']

    def delete_club(self, club_id: str) -> None:
        mutation = """
        mutation segmentDelete($id: ID!) {
            segmentDelete(id: $id) {
                deletedSegmentId
                userErrors { field message }
            }
        }
        """
        self._mutate(mutation, {'id': club_id}, 'segmentDelete', 'delete segment')

    # ==================== Promotions (automatic discounts) ====================

    def create_promotion(self, discount: Discount, club_id: str) -> PromotionRef:
        mutation = """
        mutation discountAutomaticBasicCreate($automaticBasicDiscount: DiscountAutomaticBasicInput!) {
            discountAutomaticBasicCreate(automaticBasicDiscount: $automaticBasicDiscount) {
                automaticDiscountNode {
                    id
                    automaticDiscount {
                        ... on DiscountAutomaticBasic { title }
                    }
                }
                userErrors { field message }
            }
        }
        """
        data = self._mutate(
            mutation,
            {'automaticBasicDiscount': encode_discount(discount, club_id)},
            'discountAutomaticBasicCreate', 'create discount'
        )
        node = data.get('automaticDiscountNode') or {}
        title = (node.get('automaticDiscount') or {}).get('title') or discount.title
        return PromotionRef(id=node['id'], title=title)

    def update_promotion(
        self, promotion_id: str, discount: Discount, club_id: str,
        kind: PromotionKind = PromotionKind.PROMOTION
    ) -> PromotionRef:
        mutation = """
        mutation discountAutomaticBasicUpdate($id: ID!, $automaticBasicDiscount: DiscountAutomaticBasicInput!) {
            discountAutomaticBasicUpdate(id: $id, automaticBasicDiscount: $automaticBasicDiscount) {
                automaticDiscountNode { id }
                userErrors { field message }
            }
        }
        """
        self._mutate(
            mutation,
            {'id': promotion_id, 'automaticBasicDiscount': encode_discount(discount, club_id)},
            'discountAutomaticBasicUpdate', 'update discount'
        )
        return PromotionRef(id=promotion_id, title=discount.title)

    def delete_promotion(self, promotion_id: str, kind: PromotionKind = PromotionKind.PROMOTION) -> None:
        # Automatic and code discounts use different delete mutations
        if 'DiscountCodeNode' in promotion_id:
            mutation = """
            mutation discountCodeDelete($id: ID!) {
                discountCodeDelete(id: $id) {
                    deletedCodeDiscountId
                    userErrors { field message }
                }
            }
            """
            root = 'discountCodeDelete'
        else:
            mutation = """
            mutation discountAutomaticDelete($id: ID!) {
                discountAutomaticDelete(id: $id) {
                    deletedAutomaticDiscountId
                    userErrors { field message }
                }
            }
            """
            root = 'discountAutomaticDelete'
        self._mutate(mutation, {'id': promotion_id}, root, 'delete discount')

    def get_promotion(self, promotion_id: str, kind: PromotionKind = PromotionKind.PROMOTION) -> Discount:
        query = f"""
        query getAutomaticDiscount($id: ID!) {{
            automaticDiscountNode(id: $id) {{
                {DISCOUNT_FIELDS}
            }}
        }}
        """
        result = self._execute_query(query, {'id': promotion_id}, 'get discount')
        node = result.get('automaticDiscountNode')
        if not node:
            raise NotFoundError('Shopify discount', promotion_id)
        return decode_discount(node)

    # ==================== Loyalty ====================

    def create_loyalty_tier(self, title: str, club_id: str, earn_rate: float, sort_order: int = 0) -> str:
        raise ConfigurationError('Loyalty tiers are not supported for Shopify stores')

    def update_loyalty_tier(self, loyalty_tier_id: str, title: str, club_id: str, earn_rate: float) -> None:
        raise ConfigurationError('Loyalty tiers are not supported for Shopify stores')

    def delete_loyalty_tier(self, loyalty_tier_id: str) -> None:
        raise ConfigurationError('Loyalty tiers are not supported for Shopify stores')

    def preload_bonus_points(self, customer_id: str, amount: int, label: str) -> None:
        raise ConfigurationError('Loyalty points are not supported for Shopify stores')

    # ==================== Memberships ====================

    def create_club_membership(self, request: MembershipRequest) -> str:
        """Membership on Shopify is the club tag on the customer, which puts them in the segment."""
        customer_gid = _gid('Customer', request.customer_id)
        if not request.tier_id:
            raise ValidationError('Shopify memberships need the tier id', field='tier')
        tag = club_tag(request.tier_id)
        mutation = """
        mutation tagsAdd($id: ID!, $tags: [String!]!) {
            tagsAdd(id: $id, tags: $tags) {
                node { id }
                userErrors { field message }
            }
        }
        """
        self._mutate(mutation, {'id': customer_gid, 'tags': [tag]}, 'tagsAdd', 'tag customer')
        return f'{customer_gid}#{tag}'

    # ==================== Webhooks ====================

    def register_webhook(self, topic: str, address: str) -> str:
        mutation = """
        mutation webhookSubscriptionCreate($topic: WebhookSubscriptionTopic!, $webhookSubscription: WebhookSubscriptionInput!) {
            webhookSubscriptionCreate(topic: $topic, webhookSubscription: $webhookSubscription) {
                webhookSubscription { id }
                userErrors { field message }
            }
        }
        """
        variables = {
            'topic': topic.upper().replace('/', '_'),
            'webhookSubscription': {'callbackUrl': address, 'format': 'JSON'},
        }
        data = self._mutate(
            mutation, variables, 'webhookSubscriptionCreate', 'register webhook'
        )
        return data['webhookSubscription']['id']

    def list_webhooks(self) -> List[Dict[str, Any]]:
        query = """
        query {
            webhookSubscriptions(first: 50) {
                edges {
                    node {
                        id
                        topic
                        endpoint {
                            ... on WebhookHttpEndpoint { callbackUrl }
                        }
                    }
                }
            }
        }
        """
        result = self._execute_query(query, operation='list webhooks')
        edges = (result.get('webhookSubscriptions') or {}).get('edges') or []
        return [
            {
                'id': edge['node']['id'],
                'topic': edge['node'].get('topic'),
                'address': (edge['node'].get('endpoint') or {}).get('callbackUrl'),
            }
            for edge in edges
        ]

    def delete_webhook(self, webhook_id: str) -> None:
        mutation = """
        mutation webhookSubscriptionDelete($id: ID!) {
            webhookSubscriptionDelete(id: $id) {
                deletedWebhookSubscriptionId
                userErrors { field message }
            }
        }
        """
        self._mutate(mutation, {'id': webhook_id}, 'webhookSubscriptionDelete', 'delete webhook')

    def validate_webhook(self, body: bytes, headers: Mapping[str, str]) -> bool:
        signature = headers.get('X-Shopify-Hmac-Sha256') or headers.get('x-shopify-hmac-sha256')
        return verify_shopify_webhook_signature(body, signature, self.api_secret)
