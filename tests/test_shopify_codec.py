"""
Tests for the Shopify automatic discount codec.
"""
import pytest
from datetime import datetime

from cellarclub.discounts.extensions import ShopifyDiscountExtension
from cellarclub.discounts.model import (
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
)
from cellarclub.discounts.shopify import decode_discount, encode_discount
from cellarclub.utils.exceptions import ValidationError


SAMPLE_NODE = {
    'id': 'gid://shopify/DiscountAutomaticNode/101',
    'automaticDiscount': {
        'title': 'Gold members 15%',
        'status': 'ACTIVE',
        'startsAt': '2026-01-01T00:00:00Z',
        'endsAt': None,
        'discountClass': 'PRODUCT',
        'asyncUsageCount': 12,
        'combinesWith': {
            'productDiscounts': False,
            'orderDiscounts': True,
            'shippingDiscounts': True,
        },
        'customerGets': {
            'value': {'percentage': 0.15},
            'items': {
                'collections': {
                    'nodes': [{'id': 'gid://shopify/Collection/7', 'title': 'Reds'}],
                },
            },
        },
        'minimumRequirement': None,
        'context': {
            'segments': [{'id': 'gid://shopify/Segment/9', 'name': 'Club: Gold'}],
        },
    },
}


class TestEncodeDiscount:

    def test_percentage_as_fraction(self):
        payload = encode_discount(Discount(title='x', value=DiscountValue.percent(15)))
        assert payload['customerGets']['value'] == {'percentage': 0.15}

    def test_fixed_amount_in_dollars(self):
        payload = encode_discount(Discount(title='x', value=DiscountValue.fixed(1250)))
        amount = payload['customerGets']['value']['discountAmount']
        assert amount['amount'] == 12.5
        assert amount['appliesOnEachItem'] is False

    def test_all_items(self):
        payload = encode_discount(Discount(title='x', value=DiscountValue.percent(10)))
        assert payload['customerGets']['items'] == {'all': True}

    def test_specific_products(self):
        discount = Discount(
            title='x',
            value=DiscountValue.percent(10),
            applies_to=AppliesTo(scope=DiscountScope.SPECIFIC, products=[ProductRef(id='gid://shopify/Product/1')]),
        )
        payload = encode_discount(discount)
        assert payload['customerGets']['items'] == {
            'products': {'productsToAdd': ['gid://shopify/Product/1']}
        }

    def test_segment_context(self):
        discount = Discount(title='x', value=DiscountValue.percent(10), customer_segments=[SegmentRef(id='seg-2')])
        payload = encode_discount(discount, 'seg-1')
        assert payload['context'] == {'customerSegments': {'add': ['seg-1', 'seg-2']}}

    def test_no_segments_means_everyone(self):
        payload = encode_discount(Discount(title='x', value=DiscountValue.percent(10)))
        assert payload['context'] == {'all': 'ALL'}

    def test_shipping_minimum_subtotal(self):
        discount = Discount(
            title='Ship',
            value=DiscountValue.percent(100),
            applies_to=AppliesTo(target=DiscountTarget.SHIPPING),
            minimum_requirement=MinimumRequirement(type=RequirementType.AMOUNT, amount=5000),
        )
        payload = encode_discount(discount)
        assert payload['minimumRequirement'] == {'subtotal': {'greaterThanOrEqualToSubtotal': 50.0}}

    def test_product_target_has_no_minimum(self):
        discount = Discount(
            title='x',
            value=DiscountValue.percent(10),
            minimum_requirement=MinimumRequirement(type=RequirementType.QUANTITY, quantity=6),
        )
        assert 'minimumRequirement' not in encode_discount(discount)

    def test_never_ends(self):
        payload = encode_discount(Discount(title='x', value=DiscountValue.percent(10), starts_at=datetime(2026, 5, 1)))
        assert payload['endsAt'] is None
        assert payload['startsAt'] == '2026-05-01T00:00:00Z'

    def test_combines_with_from_extension(self):
        discount = Discount(
            title='x',
            value=DiscountValue.percent(10),
            extension=ShopifyDiscountExtension(combines_with_order=True, combines_with_shipping=False),
        )
        combines = encode_discount(discount)['combinesWith']
        assert combines == {'productDiscounts': False, 'orderDiscounts': True, 'shippingDiscounts': False}


class TestDecodeDiscount:

    def test_decode_node(self):
        discount = decode_discount(SAMPLE_NODE)
        assert discount.id == 'gid://shopify/DiscountAutomaticNode/101'
        assert discount.platform == Platform.SHOPIFY
        assert discount.status == DiscountStatus.ACTIVE
        assert abs(discount.value.percentage - 15) < 1e-6
        assert discount.applies_to.scope == DiscountScope.SPECIFIC
        assert discount.applies_to.collections[0].title == 'Reds'
        assert discount.customer_segments[0].name == 'Club: Gold'
        assert discount.extension.combines_with_order is True
        assert discount.extension.usage_count == 12

    def test_amount_response(self):
        node = {'id': 'd-1', 'customerGets': {'value': {'amount': {'amount': '12.50'}}}}
        discount = decode_discount(node)
        assert discount.value.type == ValueType.FIXED_AMOUNT
        assert discount.value.amount == 1250

    def test_minimum_marks_shipping(self):
        node = {
            'id': 'd-2',
            'customerGets': {'value': {'percentage': 1.0}, 'items': {'allItems': True}},
            'minimumRequirement': {'greaterThanOrEqualToSubtotal': {'amount': '50.0'}},
        }
        discount = decode_discount(node)
        assert discount.applies_to.target == DiscountTarget.SHIPPING
        assert discount.minimum_requirement.amount == 5000

    def test_expired_is_inactive(self):
        node = {'id': 'd-3', 'status': 'EXPIRED', 'customerGets': {'value': {'percentage': 0.1}}}
        assert decode_discount(node).status == DiscountStatus.INACTIVE

    def test_edges_connection(self):
        node = {
            'id': 'd-4',
            'customerGets': {
                'value': {'percentage': 0.1},
                'items': {'products': {'edges': [{'node': {'id': 'p-1', 'title': 'Cab'}}]}},
            },
        }
        discount = decode_discount(node)
        assert discount.applies_to.products[0].id == 'p-1'

    def test_empty_node(self):
        with pytest.raises(ValidationError):
            decode_discount(None)


class TestRoundTrip:

    def test_encoded_input_decodes_back(self):
        discount = Discount(
            title='Ship over $50',
            value=DiscountValue.fixed(999),
            applies_to=AppliesTo(target=DiscountTarget.SHIPPING),
            customer_segments=[SegmentRef(id='seg-1')],
            minimum_requirement=MinimumRequirement(type=RequirementType.AMOUNT, amount=5000),
            starts_at=datetime(2026, 1, 1),
        )
        decoded = decode_discount(encode_discount(discount))
        assert decoded.value.amount == 999
        assert decoded.applies_to.target == DiscountTarget.SHIPPING
        assert decoded.minimum_requirement.amount == 5000
        assert [s.id for s in decoded.customer_segments] == ['seg-1']

    def test_percentage_precision(self):
        for pct in (0, 7.5, 12.345, 33.333333, 100):
            decoded = decode_discount(encode_discount(Discount(title='x', value=DiscountValue.percent(pct))))
            assert abs(decoded.value.percentage - pct) < 1e-6
