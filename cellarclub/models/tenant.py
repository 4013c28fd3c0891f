"""
Tenant model for the multi-tenant console.
"""
from datetime import datetime
from ..extensions import db


class Tenant(db.Model):
    """
    A winery that installed the console from its CRM's app store.

    Every tenant-owned table references this row with ON DELETE CASCADE,
    so uninstalling deletes a single parent record.
    """
    __tablename__ = 'tenants'

    id = db.Column(db.Integer, primary_key=True)

    # 'commerce7' or 'shopify'
    crm_type = db.Column(db.String(20), nullable=False)
    # Commerce7 tenant id or Shopify shop domain
    crm_identifier = db.Column(db.String(255), unique=True, nullable=False)
    org_name = db.Column(db.String(255))

    access_token = db.Column(db.Text)  # Shopify only
    webhook_secret = db.Column(db.String(100))

    setup_complete = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    club_programs = db.relationship(
        'ClubProgram', backref='tenant', cascade='all, delete-orphan'
    )
    customers = db.relationship(
        'Customer', backref='tenant', cascade='all, delete-orphan'
    )
    enrollment_drafts = db.relationship(
        'EnrollmentDraftRecord', backref='tenant', cascade='all, delete-orphan'
    )
    side_effect_events = db.relationship(
        'SideEffectEvent', backref='tenant', cascade='all, delete-orphan'
    )
    loyalty_rules = db.relationship(
        'LoyaltyRules', backref='tenant', uselist=False, cascade='all, delete-orphan'
    )

    @property
    def club_program(self):
        return self.club_programs[0] if self.club_programs else None

    def __repr__(self):
        return f'<Tenant {self.crm_type}:{self.crm_identifier}>'

    def to_dict(self):
        return {
            'id': self.id,
            'crm_type': self.crm_type,
            'crm_identifier': self.crm_identifier,
            'org_name': self.org_name,
            'setup_complete': self.setup_complete,
        }
