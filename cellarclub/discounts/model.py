"""
Canonical, platform-agnostic discount model.

Amounts are always integer minor units (cents). Percentages are 0-100.
Only the platform codecs convert to other units.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..utils.exceptions import ValidationError
from .extensions import DiscountExtension, extension_from_dict


class Platform(str, Enum):
    COMMERCE7 = 'commerce7'
    SHOPIFY = 'shopify'


class DiscountStatus(str, Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    SCHEDULED = 'scheduled'


class ValueType(str, Enum):
    PERCENTAGE = 'percentage'
    FIXED_AMOUNT = 'fixed-amount'


class DiscountTarget(str, Enum):
    PRODUCT = 'product'
    SHIPPING = 'shipping'


class DiscountScope(str, Enum):
    ALL = 'all'
    SPECIFIC = 'specific'


class RequirementType(str, Enum):
    NONE = 'none'
    QUANTITY = 'quantity'
    AMOUNT = 'amount'


# ==================== Value helpers ====================

def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 string (or date) into a naive UTC datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Invalid timestamp: {value}", field='starts_at')
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Naive UTC datetime -> ISO-8601 string with a Z suffix."""
    if value is None:
        return None
    return value.isoformat() + 'Z'


def to_number(value, field_name: str) -> float:
    """Coerce a numeric input, rejecting booleans and non-numeric strings."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    if isinstance(value, (int, float)):
        return value
    try:
        return float(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field_name} must be a number", field=field_name)


def to_cents(value, field_name: str) -> int:
    """Coerce an integer minor-unit amount. Fractional cents are rejected."""
    number = to_number(value, field_name)
    if isinstance(number, float):
        if not number.is_integer():
            raise ValidationError(
                f"{field_name} must be a whole number of cents", field=field_name
            )
        number = int(number)
    if number < 0:
        raise ValidationError(f"{field_name} cannot be negative", field=field_name)
    return number


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ValidationError(f"{key} must be an object", field=key)
    return section


def _entries(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    entries = data.get(key) or []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise ValidationError(f"{key} must be a list of objects", field=key)
    return entries


# ==================== Value objects ====================

@dataclass
class DiscountValue:
    """Exactly one of ``percentage`` / ``amount`` is set, matching ``type``."""
    type: ValueType
    percentage: Optional[float] = None
    amount: Optional[int] = None

    def __post_init__(self):
        self.type = ValueType(self.type)
        if self.type == ValueType.PERCENTAGE:
            if self.amount is not None:
                raise ValidationError("Percentage discounts cannot carry an amount", field='amount')
            self.percentage = to_number(self.percentage, 'percentage')
            if not 0 <= self.percentage <= 100:
                raise ValidationError("percentage must be between 0 and 100", field='percentage')
        else:
            if self.percentage is not None:
                raise ValidationError(
                    "Fixed-amount discounts cannot carry a percentage", field='percentage'
                )
            self.amount = to_cents(self.amount, 'amount')

    @classmethod
    def percent(cls, percentage) -> 'DiscountValue':
        return cls(ValueType.PERCENTAGE, percentage=percentage)

    @classmethod
    def fixed(cls, cents) -> 'DiscountValue':
        return cls(ValueType.FIXED_AMOUNT, amount=cents)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type.value, 'percentage': self.percentage, 'amount': self.amount}


@dataclass
class ProductRef:
    id: str
    title: str = ''
    variant_ids: List[str] = field(default_factory=list)

    def to_dict(self):
        return {'id': self.id, 'title': self.title, 'variant_ids': list(self.variant_ids)}


@dataclass
class CollectionRef:
    id: str
    title: str = ''

    def to_dict(self):
        return {'id': self.id, 'title': self.title}


@dataclass
class SegmentRef:
    """A customer segment, tag or club that a discount is restricted to."""
    id: str
    name: str = ''

    def to_dict(self):
        return {'id': self.id, 'name': self.name}


@dataclass
class AppliesTo:
    target: DiscountTarget = DiscountTarget.PRODUCT
    scope: DiscountScope = DiscountScope.ALL
    products: List[ProductRef] = field(default_factory=list)
    collections: List[CollectionRef] = field(default_factory=list)

    def __post_init__(self):
        self.target = DiscountTarget(self.target)
        self.scope = DiscountScope(self.scope)

    def to_dict(self):
        return {
            'target': self.target.value,
            'scope': self.scope.value,
            'products': [p.to_dict() for p in self.products],
            'collections': [c.to_dict() for c in self.collections],
        }


@dataclass
class MinimumRequirement:
    type: RequirementType = RequirementType.NONE
    quantity: Optional[int] = None
    amount: Optional[int] = None  # cents

    def __post_init__(self):
        self.type = RequirementType(self.type)
        if self.amount is not None:
            self.amount = to_cents(self.amount, 'minimum_amount')
        if self.quantity is not None:
            self.quantity = to_cents(self.quantity, 'minimum_quantity')
        if self.type == RequirementType.AMOUNT and self.amount is None:
            raise ValidationError("Minimum amount requirement needs an amount", field='minimum_amount')
        if self.type == RequirementType.QUANTITY and self.quantity is None:
            raise ValidationError(
                "Minimum quantity requirement needs a quantity", field='minimum_quantity'
            )

    def to_dict(self):
        return {'type': self.type.value, 'quantity': self.quantity, 'amount': self.amount}


# ==================== Discount ====================

@dataclass
class Discount:
    """
    A tier promotion as the console understands it.

    Discounts never expire, so there is no end timestamp. ``starts_at`` is
    optional; codecs send "now" when it is missing.
    """
    title: str
    value: DiscountValue
    applies_to: AppliesTo = field(default_factory=AppliesTo)
    customer_segments: List[SegmentRef] = field(default_factory=list)
    minimum_requirement: MinimumRequirement = field(default_factory=MinimumRequirement)
    status: DiscountStatus = DiscountStatus.ACTIVE
    starts_at: Optional[datetime] = None
    id: Optional[str] = None
    platform: Optional[Platform] = None
    extension: Optional[DiscountExtension] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = DiscountStatus(self.status)
        if self.platform is not None:
            self.platform = Platform(self.platform)

    def calculate_status(self, now: datetime = None) -> DiscountStatus:
        """Scheduled while the start is in the future; otherwise the stored on/off state."""
        now = now or datetime.utcnow()
        if self.starts_at and self.starts_at > now:
            return DiscountStatus.SCHEDULED
        if self.status == DiscountStatus.INACTIVE:
            return DiscountStatus.INACTIVE
        return DiscountStatus.ACTIVE

    def format_value(self) -> str:
        if self.value.type == ValueType.PERCENTAGE:
            return f"{self.value.percentage:g}%"
        return f"${self.value.amount / 100:.2f}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'platform': self.platform.value if self.platform else None,
            'status': self.status.value,
            'starts_at': format_timestamp(self.starts_at),
            'value': self.value.to_dict(),
            'applies_to': self.applies_to.to_dict(),
            'customer_segments': [s.to_dict() for s in self.customer_segments],
            'minimum_requirement': self.minimum_requirement.to_dict(),
            'extension': self.extension.to_dict() if self.extension else None,
            'created_at': format_timestamp(self.created_at),
            'updated_at': format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Discount':
        """Build a discount from API/JSON input, validating every numeric field."""
        if not isinstance(data, dict):
            raise ValidationError("Discount must be an object", field='discount')

        value_data = _section(data, 'value')
        try:
            value_type = ValueType(value_data.get('type', ValueType.PERCENTAGE.value))
        except ValueError:
            raise ValidationError(f"Unknown discount value type: {value_data.get('type')}", field='value')
        if value_type == ValueType.PERCENTAGE:
            value = DiscountValue.percent(value_data.get('percentage'))
        else:
            value = DiscountValue.fixed(value_data.get('amount'))

        applies_data = _section(data, 'applies_to')
        minimum_data = _section(data, 'minimum_requirement')
        try:
            applies_to = AppliesTo(
                target=applies_data.get('target', DiscountTarget.PRODUCT.value),
                scope=applies_data.get('scope', DiscountScope.ALL.value),
                products=[
                    ProductRef(
                        id=str(p['id']),
                        title=p.get('title') or '',
                        variant_ids=[str(v) for v in p.get('variant_ids') or []],
                    )
                    for p in _entries(applies_data, 'products')
                ],
                collections=[
                    CollectionRef(id=str(c['id']), title=c.get('title') or '')
                    for c in _entries(applies_data, 'collections')
                ],
            )
            minimum = MinimumRequirement(
                type=minimum_data.get('type', RequirementType.NONE.value),
                quantity=minimum_data.get('quantity'),
                amount=minimum_data.get('amount'),
            )
            segments = [
                SegmentRef(id=str(s['id']), name=s.get('name') or '')
                for s in _entries(data, 'customer_segments')
            ]
            return cls(
                id=data.get('id'),
                title=data.get('title') or '',
                platform=data.get('platform'),
                status=data.get('status', DiscountStatus.ACTIVE.value),
                starts_at=parse_timestamp(data.get('starts_at')),
                value=value,
                applies_to=applies_to,
                customer_segments=segments,
                minimum_requirement=minimum,
                extension=extension_from_dict(data.get('extension')),
                created_at=parse_timestamp(data.get('created_at')),
                updated_at=parse_timestamp(data.get('updated_at')),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid discount: {e}", field='discount')


def default_discount(platform: Platform = None, target: DiscountTarget = DiscountTarget.PRODUCT) -> Discount:
    """Blank store-wide 0% discount used to seed a new tier promotion."""
    return Discount(
        title='',
        value=DiscountValue.percent(0),
        applies_to=AppliesTo(target=target, scope=DiscountScope.ALL),
        platform=platform,
    )
