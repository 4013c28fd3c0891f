"""
Tests for the canonical discount model.

Tests cover:
- Value invariants (exactly one of percentage/amount)
- Integer-cent enforcement
- Status calculation
- JSON input validation
"""
import pytest
from datetime import datetime, timedelta

from cellarclub.discounts.extensions import (
    Commerce7PromotionExtension,
    ShopifyDiscountExtension,
    UnknownExtension,
    extension_from_dict,
)
from cellarclub.discounts.model import (
    Discount,
    DiscountScope,
    DiscountStatus,
    DiscountTarget,
    DiscountValue,
    MinimumRequirement,
    Platform,
    RequirementType,
    ValueType,
    default_discount,
    parse_timestamp,
)
from cellarclub.utils.exceptions import ValidationError


class TestDiscountValue:
    """Exactly one of percentage / amount is populated."""

    def test_percentage_value(self):
        value = DiscountValue.percent(15)
        assert value.type == ValueType.PERCENTAGE
        assert value.percentage == 15
        assert value.amount is None

    def test_fixed_value_in_cents(self):
        value = DiscountValue.fixed(500)
        assert value.type == ValueType.FIXED_AMOUNT
        assert value.amount == 500
        assert value.percentage is None

    def test_rejects_both_fields(self):
        with pytest.raises(ValidationError):
            DiscountValue(ValueType.PERCENTAGE, percentage=10, amount=100)

    def test_rejects_percentage_over_100(self):
        with pytest.raises(ValidationError):
            DiscountValue.percent(101)

    def test_rejects_fractional_cents(self):
        with pytest.raises(ValidationError) as exc:
            DiscountValue.fixed(12.5)
        assert exc.value.field == 'amount'

    def test_accepts_whole_float_cents(self):
        assert DiscountValue.fixed(500.0).amount == 500

    def test_rejects_boolean_amount(self):
        with pytest.raises(ValidationError):
            DiscountValue.fixed(True)

    def test_rejects_non_numeric_percentage(self):
        with pytest.raises(ValidationError):
            DiscountValue.percent('ten')


class TestMinimumRequirement:

    def test_amount_requires_value(self):
        with pytest.raises(ValidationError):
            MinimumRequirement(type=RequirementType.AMOUNT)

    def test_amount_must_be_whole_cents(self):
        with pytest.raises(ValidationError):
            MinimumRequirement(type=RequirementType.AMOUNT, amount=49.99)

    def test_quantity_requirement(self):
        minimum = MinimumRequirement(type='quantity', quantity=6)
        assert minimum.type == RequirementType.QUANTITY
        assert minimum.quantity == 6


class TestStatus:

    def test_future_start_is_scheduled(self):
        now = datetime(2026, 1, 1)
        discount = Discount(title='Later', value=DiscountValue.percent(5), starts_at=now + timedelta(days=3))
        assert discount.calculate_status(now) == DiscountStatus.SCHEDULED

    def test_past_start_is_active(self):
        now = datetime(2026, 1, 1)
        discount = Discount(title='Now', value=DiscountValue.percent(5), starts_at=now - timedelta(days=3))
        assert discount.calculate_status(now) == DiscountStatus.ACTIVE

    def test_inactive_stays_inactive(self):
        discount = Discount(title='Off', value=DiscountValue.percent(5), status='inactive')
        assert discount.calculate_status() == DiscountStatus.INACTIVE


class TestFormatting:

    def test_percentage(self):
        assert Discount(title='x', value=DiscountValue.percent(10)).format_value() == '10%'

    def test_fixed_amount(self):
        assert Discount(title='x', value=DiscountValue.fixed(550)).format_value() == '$5.50'


class TestFromDict:

    def test_parses_full_payload(self, make_discount):
        data = make_discount(
            title='Free shipping over $50',
            target='shipping',
            minimum_requirement={'type': 'amount', 'amount': 5000},
            customer_segments=[{'id': 'club-1', 'name': 'Gold'}],
            starts_at='2026-02-01T00:00:00Z',
            platform='commerce7',
        )
        discount = Discount.from_dict(data)

        assert discount.applies_to.target == DiscountTarget.SHIPPING
        assert discount.applies_to.scope == DiscountScope.ALL
        assert discount.minimum_requirement.amount == 5000
        assert discount.customer_segments[0].id == 'club-1'
        assert discount.starts_at == datetime(2026, 2, 1)
        assert discount.platform == Platform.COMMERCE7

    def test_to_dict_from_dict_preserves_extension(self):
        discount = Discount(
            title='Set',
            value=DiscountValue.percent(20),
            extension=Commerce7PromotionExtension(promotion_set_ids=['set-1'], action_message='Hi'),
        )
        restored = Discount.from_dict(discount.to_dict())
        assert isinstance(restored.extension, Commerce7PromotionExtension)
        assert restored.extension.promotion_set_ids == ['set-1']

    def test_unknown_value_type(self, make_discount):
        with pytest.raises(ValidationError):
            Discount.from_dict(make_discount(value={'type': 'bogo'}))

    def test_invalid_target(self, make_discount):
        with pytest.raises(ValidationError):
            Discount.from_dict(make_discount(target='gift-card'))

    def test_product_missing_id(self, make_discount):
        data = make_discount(applies_to={'target': 'product', 'scope': 'specific', 'products': [{'title': 'x'}]})
        with pytest.raises(ValidationError):
            Discount.from_dict(data)

    def test_non_object(self):
        with pytest.raises(ValidationError):
            Discount.from_dict(['not', 'a', 'dict'])

    def test_product_entries_must_be_objects(self, make_discount):
        data = make_discount(applies_to={'target': 'product', 'scope': 'specific', 'products': ['sku-1']})
        with pytest.raises(ValidationError):
            Discount.from_dict(data)

    def test_segment_entries_must_be_objects(self, make_discount):
        with pytest.raises(ValidationError):
            Discount.from_dict(make_discount(customer_segments=[['seg-1']]))

    def test_value_section_must_be_an_object(self, make_discount):
        with pytest.raises(ValidationError):
            Discount.from_dict(make_discount(value='10%'))

    def test_invalid_timestamp(self, make_discount):
        with pytest.raises(ValidationError):
            Discount.from_dict(make_discount(starts_at='next tuesday'))


class TestExtensions:

    def test_dispatch_on_kind(self):
        ext = extension_from_dict({'kind': 'shopify_discount', 'combines_with_order': True})
        assert isinstance(ext, ShopifyDiscountExtension)
        assert ext.combines_with_order is True

    def test_unknown_kind_is_preserved(self):
        ext = extension_from_dict({'kind': 'square', 'foo': 1})
        assert isinstance(ext, UnknownExtension)
        assert ext.to_dict()['kind'] == 'square'

    def test_none(self):
        assert extension_from_dict(None) is None


class TestHelpers:

    def test_parse_timestamp_converts_offsets_to_utc(self):
        assert parse_timestamp('2026-03-01T10:00:00-05:00') == datetime(2026, 3, 1, 15, 0)

    def test_default_discount(self):
        discount = default_discount(Platform.SHOPIFY, DiscountTarget.SHIPPING)
        assert discount.value.percentage == 0
        assert discount.applies_to.target == DiscountTarget.SHIPPING
