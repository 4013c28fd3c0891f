"""
Customer and club enrollment models.
"""
from datetime import datetime
from ..extensions import db


class Customer(db.Model):
    """A CRM customer known to the console, keyed by external id."""
    __tablename__ = 'customers'
    __table_args__ = (
        db.UniqueConstraint('tenant_id', 'crm_id', name='uq_customer_tenant_crm_id'),
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True
    )
    crm_id = db.Column(db.String(255), nullable=False)

    email = db.Column(db.String(255))
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    phone = db.Column(db.String(50))
    ltv = db.Column(db.Numeric(12, 2))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    enrollments = db.relationship(
        'ClubEnrollment', backref='customer', cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f'<Customer {self.crm_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'crm_id': self.crm_id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'phone': self.phone,
            'ltv': float(self.ltv) if self.ltv is not None else None,
        }


class ClubEnrollment(db.Model):
    """
    A customer's membership in one tier.

    crm_membership_id is nullable: it stays empty if the local row is
    written before the remote membership id is known.
    """
    __tablename__ = 'club_enrollments'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(
        db.Integer, db.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False, index=True
    )
    club_stage_id = db.Column(
        db.String(36), db.ForeignKey('club_stages.id', ondelete='CASCADE'), nullable=False, index=True
    )
    status = db.Column(db.String(20), default='active')  # active, cancelled, expired
    enrolled_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    expires_at = db.Column(db.DateTime)
    crm_membership_id = db.Column(db.String(255), index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    stage = db.relationship('ClubStage')

    def __repr__(self):
        return f'<ClubEnrollment customer={self.customer_id} stage={self.club_stage_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'club_stage_id': self.club_stage_id,
            'status': self.status,
            'enrolled_at': self.enrolled_at.isoformat() if self.enrolled_at else None,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'crm_membership_id': self.crm_membership_id,
        }
