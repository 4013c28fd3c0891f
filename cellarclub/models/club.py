"""
Club program, tier (stage), promotion and loyalty models.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from ..extensions import db


def generate_stage_id() -> str:
    return str(uuid.uuid4())


class ClubProgram(db.Model):
    """A tenant's wine club. One per tenant."""
    __tablename__ = 'club_programs'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'),
        nullable=False, unique=True
    )
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    stages = db.relationship(
        'ClubStage', backref='program', cascade='all, delete-orphan',
        order_by='ClubStage.stage_order'
    )

    def __repr__(self):
        return f'<ClubProgram {self.name}>'

    def to_dict(self, include_stages=True):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_stages:
            data['tiers'] = [s.to_dict() for s in self.stages if s.is_active]
        return data


class ClubStage(db.Model):
    """
    A membership tier (Bronze, Silver, Gold...).

    Tiers referenced by an enrollment are never hard-deleted: removing one
    sets is_active=False and clears stage_order, freezing the record.
    """
    __tablename__ = 'club_stages'

    id = db.Column(db.String(36), primary_key=True, default=generate_stage_id)
    club_program_id = db.Column(
        db.Integer, db.ForeignKey('club_programs.id', ondelete='CASCADE'), nullable=False
    )
    tenant_id = db.Column(
        db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True
    )

    name = db.Column(db.String(100), nullable=False)
    duration_months = db.Column(db.Integer, nullable=False, default=12)
    min_purchase_amount = db.Column(db.Numeric(10, 2), default=0)  # dollars
    min_ltv_amount = db.Column(db.Numeric(10, 2), default=0)  # dollars
    upgradable = db.Column(db.Boolean, default=True)
    stage_order = db.Column(db.Integer)  # None once deactivated

    # External club (Commerce7) or customer segment (Shopify) id
    crm_club_id = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    promotions = db.relationship(
        'StagePromotion', backref='stage', cascade='all, delete-orphan',
        order_by='StagePromotion.id'
    )
    loyalty_config = db.relationship(
        'TierLoyaltyConfig', backref='stage', uselist=False, cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f'<ClubStage {self.name}>'

    def to_dict(self, include_promotions=False):
        data = {
            'id': self.id,
            'name': self.name,
            'duration_months': self.duration_months,
            'min_purchase_amount': float(self.min_purchase_amount or 0),
            'min_ltv_amount': float(self.min_ltv_amount or 0),
            'upgradable': self.upgradable,
            'stage_order': self.stage_order,
            'crm_club_id': self.crm_club_id,
            'is_active': self.is_active,
            'loyalty': self.loyalty_config.to_dict() if self.loyalty_config else None,
        }
        if include_promotions:
            data['promotions'] = [p.to_dict() for p in self.promotions]
        return data


class StagePromotion(db.Model):
    """
    Links a tier to one external promotion.

    ``kind`` is fixed when the remote object is created: 'promotion' for the
    current Commerce7 shape, 'coupon' for legacy code-based objects.
    ``discount_snapshot`` holds the last canonical discount sent to the
    platform and ``crm_club_id`` the club it was bound to; an update is
    skipped only when both still match.
    """
    __tablename__ = 'stage_promotions'

    id = db.Column(db.Integer, primary_key=True)
    club_stage_id = db.Column(
        db.String(36), db.ForeignKey('club_stages.id', ondelete='CASCADE'),
        nullable=False, index=True
    )
    crm_type = db.Column(db.String(20), nullable=False)
    crm_id = db.Column(db.String(255))  # None until created remotely
    crm_club_id = db.Column(db.String(255))  # club the promotion was last sent with
    kind = db.Column(db.String(20), nullable=False, default='promotion')
    title = db.Column(db.String(255))
    discount_snapshot = db.Column(db.JSON)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<StagePromotion {self.kind}:{self.crm_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'club_stage_id': self.club_stage_id,
            'crm_id': self.crm_id,
            'crm_club_id': self.crm_club_id,
            'kind': self.kind,
            'title': self.title,
            'discount': self.discount_snapshot,
        }


class TierLoyaltyConfig(db.Model):
    """Per-tier loyalty earn rate and welcome bonus."""
    __tablename__ = 'tier_loyalty_configs'

    id = db.Column(db.Integer, primary_key=True)
    club_stage_id = db.Column(
        db.String(36), db.ForeignKey('club_stages.id', ondelete='CASCADE'),
        nullable=False, unique=True
    )
    crm_loyalty_tier_id = db.Column(db.String(255))
    tier_title = db.Column(db.String(255))
    earn_rate = db.Column(db.Numeric(5, 4), nullable=False, default=Decimal('0'))  # 0.02 = 2%
    initial_points_bonus = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<TierLoyaltyConfig {self.tier_title}>'

    def to_dict(self):
        return {
            'crm_loyalty_tier_id': self.crm_loyalty_tier_id,
            'tier_title': self.tier_title,
            'earn_rate': float(self.earn_rate or 0),
            'initial_points_bonus': self.initial_points_bonus or 0,
        }


class LoyaltyRules(db.Model):
    """Program-wide loyalty rules. One row per tenant."""
    __tablename__ = 'loyalty_rules'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'),
        nullable=False, unique=True
    )
    points_per_dollar = db.Column(db.Numeric(6, 2), default=Decimal('1'))
    min_membership_days = db.Column(db.Integer, default=365)
    point_dollar_value = db.Column(db.Numeric(6, 4), default=Decimal('0.01'))
    min_points_for_redemption = db.Column(db.Integer, default=100)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<LoyaltyRules tenant={self.tenant_id}>'

    def to_dict(self):
        return {
            'points_per_dollar': float(self.points_per_dollar or 0),
            'min_membership_days': self.min_membership_days,
            'point_dollar_value': float(self.point_dollar_value or 0),
            'min_points_for_redemption': self.min_points_for_redemption,
        }
