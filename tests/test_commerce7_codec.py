"""
Tests for the Commerce7 promotion and legacy coupon codecs.

Tests cover:
- Percentage <-> basis points
- Cart minimum cents <-> dollars
- Store-wide scope omits object ids
- Tagged promotion/coupon dispatch
- Title resolution failures during decode
"""
import pytest
from datetime import datetime, timedelta

from cellarclub.discounts import commerce7 as codec
from cellarclub.discounts.commerce7 import EncodedPromotion, PromotionKind
from cellarclub.discounts.extensions import Commerce7CouponExtension, Commerce7PromotionExtension
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
from cellarclub.utils.exceptions import ValidationError


def shipping_discount(amount_cents=5000):
    return Discount(
        title='Free shipping over $50',
        value=DiscountValue.percent(100),
        applies_to=AppliesTo(target=DiscountTarget.SHIPPING),
        minimum_requirement=MinimumRequirement(type=RequirementType.AMOUNT, amount=amount_cents),
        starts_at=datetime(2026, 1, 1),
    )


class TestEncodePromotion:

    def test_percentage_in_basis_points(self):
        discount = Discount(title='12.5% off', value=DiscountValue.percent(12.5))
        payload = codec.encode_promotion(discount, 'club-1')
        assert payload['discountType'] == 'Percentage Off'
        assert payload['discount'] == 1250
        assert payload['type'] == 'Product'

    def test_dollar_off_stays_in_cents(self):
        discount = Discount(title='$5 off', value=DiscountValue.fixed(500))
        payload = codec.encode_promotion(discount, 'club-1')
        assert payload['discountType'] == 'Dollar Off'
        assert payload['discount'] == 500

    def test_store_scope_omits_object_ids(self):
        discount = Discount(title='All', value=DiscountValue.percent(10))
        payload = codec.encode_promotion(discount, 'club-1')
        assert payload['appliesTo'] == 'Store'
        assert 'appliesToObjectIds' not in payload

    def test_collection_scope(self):
        discount = Discount(
            title='Reds',
            value=DiscountValue.percent(10),
            applies_to=AppliesTo(
                scope=DiscountScope.SPECIFIC,
                collections=[CollectionRef(id='col-1', title='Reds')],
                products=[ProductRef(id='prod-1')],
            ),
        )
        payload = codec.encode_promotion(discount, 'club-1')
        assert payload['appliesTo'] == 'Collection'
        assert payload['appliesToObjectIds'] == ['col-1']

    def test_product_scope(self):
        discount = Discount(
            title='Cab',
            value=DiscountValue.percent(10),
            applies_to=AppliesTo(scope=DiscountScope.SPECIFIC, products=[ProductRef(id='prod-1')]),
        )
        payload = codec.encode_promotion(discount, 'club-1')
        assert payload['appliesTo'] == 'Product'
        assert payload['appliesToObjectIds'] == ['prod-1']

    def test_cart_minimum_in_dollars(self):
        payload = codec.encode_promotion(shipping_discount(5000), 'club-1')
        assert payload['type'] == 'Shipping'
        assert payload['cartRequirementType'] == 'Minimum Amount'
        assert payload['cartRequirement'] == 50.0

    def test_product_target_drops_minimum(self):
        discount = Discount(
            title='Product',
            value=DiscountValue.percent(10),
            minimum_requirement=MinimumRequirement(type=RequirementType.AMOUNT, amount=5000),
        )
        payload = codec.encode_promotion(discount, 'club-1')
        assert payload['cartRequirementType'] == 'None'
        assert payload['cartRequirement'] is None

    def test_club_is_the_audience(self):
        discount = Discount(
            title='x',
            value=DiscountValue.percent(10),
            customer_segments=[SegmentRef(id='club-1'), SegmentRef(id='tag-9')],
        )
        payload = codec.encode_promotion(discount, 'club-1')
        assert payload['availableTo'] == 'Club'
        assert payload['availableToObjectIds'] == ['club-1', 'tag-9']

    def test_status_and_no_end_date(self):
        discount = Discount(title='x', value=DiscountValue.percent(10), status=DiscountStatus.INACTIVE)
        payload = codec.encode_promotion(discount, 'club-1')
        assert payload['status'] == 'Disabled'
        assert payload['endDate'] is None
        assert payload['startDate'].endswith('Z')

    def test_extension_fields(self):
        discount = Discount(
            title='x',
            value=DiscountValue.percent(10),
            extension=Commerce7PromotionExtension(promotion_set_ids=['set-1'], action_message='Cheers'),
        )
        payload = codec.encode_promotion(discount, 'club-1')
        assert payload['promotionSets'] == ['set-1']
        assert payload['actionMessage'] == 'Cheers'


class TestDecodePromotion:

    def test_round_trip_percentage(self):
        discount = Discount(title='12.5% off', value=DiscountValue.percent(12.5), starts_at=datetime(2026, 1, 1))
        decoded = codec.decode_promotion(codec.encode_promotion(discount, 'club-1'))
        assert decoded.value.type == ValueType.PERCENTAGE
        assert abs(decoded.value.percentage - 12.5) < 1e-6
        assert decoded.platform == Platform.COMMERCE7

    def test_round_trip_cart_minimum(self):
        decoded = codec.decode_promotion(codec.encode_promotion(shipping_discount(5000), 'club-1'))
        assert decoded.applies_to.target == DiscountTarget.SHIPPING
        assert decoded.minimum_requirement.type == RequirementType.AMOUNT
        assert decoded.minimum_requirement.amount == 5000

    def test_legacy_split_fields(self):
        data = {
            'id': 'p-1',
            'title': 'Ship',
            'type': 'Shipping',
            'status': 'Enabled',
            'productDiscountType': 'No Discount',
            'shippingDiscountType': 'Dollar Off',
            'shippingDiscount': 1500,
            'minimumCartAmount': 75,
        }
        decoded = codec.decode_promotion(data)
        assert decoded.value.type == ValueType.FIXED_AMOUNT
        assert decoded.value.amount == 1500
        assert decoded.minimum_requirement.amount == 7500

    def test_tolerates_missing_fields(self):
        decoded = codec.decode_promotion({'id': 'p-2', 'title': 'Bare'})
        assert decoded.title == 'Bare'
        assert decoded.status == DiscountStatus.INACTIVE
        assert decoded.applies_to.scope == DiscountScope.ALL
        assert decoded.minimum_requirement.type == RequirementType.NONE

    def test_future_start_is_scheduled(self):
        start = (datetime.utcnow() + timedelta(days=5)).isoformat() + 'Z'
        decoded = codec.decode_promotion({'title': 'Soon', 'status': 'Enabled', 'startDate': start})
        assert decoded.status == DiscountStatus.SCHEDULED

    def test_resolves_titles(self):
        data = {'title': 'x', 'appliesTo': 'Product', 'appliesToObjectIds': ['prod-1']}
        decoded = codec.decode_promotion(data, resolve_title=lambda kind, object_id: f'{kind}:{object_id}')
        assert decoded.applies_to.products[0].title == 'product:prod-1'

    def test_title_resolver_failure_keeps_bare_id(self):
        def broken(kind, object_id):
            raise RuntimeError('lookup failed')

        data = {'title': 'x', 'appliesTo': 'Collection', 'appliesToObjectIds': ['col-1', 'col-2']}
        decoded = codec.decode_promotion(data, resolve_title=broken)
        assert [c.id for c in decoded.applies_to.collections] == ['col-1', 'col-2']
        assert all(c.title == '' for c in decoded.applies_to.collections)

    def test_empty_payload(self):
        with pytest.raises(ValidationError):
            codec.decode_promotion({})

    def test_promotion_sets_extension(self):
        decoded = codec.decode_promotion({'title': 'x', 'promotionSets': [{'id': 's-1'}, 's-2']})
        assert isinstance(decoded.extension, Commerce7PromotionExtension)
        assert decoded.extension.promotion_set_ids == ['s-1', 's-2']


class TestCouponShape:

    def test_encode_uses_dollars_and_plain_percent(self):
        discount = Discount(title='Gold 10%', value=DiscountValue.percent(10), starts_at=datetime(2026, 4, 2, 13))
        payload = codec.encode_coupon(discount, 'club-1')
        assert payload['discount'] == 10
        assert payload['code'] == 'GOLD10'
        assert payload['startDate'] == '2026-04-02'
        assert payload['availableTo'] == 'Tag'

        fixed = codec.encode_coupon(Discount(title='x', value=DiscountValue.fixed(1250)), None)
        assert fixed['discount'] == 12.5
        assert fixed['availableTo'] == 'Everyone'

    def test_coupon_minimum(self):
        payload = codec.encode_coupon(shipping_discount(5000), 'club-1')
        assert payload['cartRequirementType'] == 'Minimum Purchase Amount'
        assert payload['cartRequirement'] == 50.0

    def test_decode_coupon(self):
        data = {
            'id': 'c-1',
            'code': 'WELCOME',
            'title': 'Welcome',
            'type': 'Shipping',
            'status': 'Enabled',
            'discountType': 'Dollar Off',
            'discount': 12.5,
            'cartRequirementType': 'Minimum Purchase Amount',
            'cartRequirement': 50,
            'availableTo': 'Everyone',
        }
        decoded = codec.decode_coupon(data)
        assert decoded.value.amount == 1250
        assert decoded.minimum_requirement.amount == 5000
        assert decoded.customer_segments == []
        assert isinstance(decoded.extension, Commerce7CouponExtension)
        assert decoded.extension.code == 'WELCOME'


class TestTaggedDispatch:

    def test_encode_tags_kind(self):
        discount = Discount(title='x', value=DiscountValue.percent(10))
        assert codec.encode(discount, 'club-1').kind == PromotionKind.PROMOTION
        coupon = codec.encode(discount, 'club-1', 'coupon')
        assert coupon.kind == PromotionKind.COUPON
        assert 'code' in coupon.payload

    def test_decode_dispatches_on_kind(self):
        payload = {'title': 'x', 'discountType': 'Percentage Off', 'discount': 10}
        as_coupon = codec.decode(EncodedPromotion(PromotionKind.COUPON, payload))
        as_promotion = codec.decode(EncodedPromotion(PromotionKind.PROMOTION, payload))
        assert as_coupon.value.percentage == 10
        assert as_promotion.value.percentage == 0.1
