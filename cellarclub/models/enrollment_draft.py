"""
Persisted enrollment wizard draft, one row per browser session.
"""
from datetime import datetime
from ..extensions import db


class EnrollmentDraftRecord(db.Model):
    __tablename__ = 'enrollment_drafts'
    __table_args__ = (
        db.UniqueConstraint('tenant_id', 'session_id', name='uq_enrollment_draft_tenant_session'),
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True
    )
    session_id = db.Column(db.String(255), nullable=False)

    customer = db.Column(db.JSON)
    tier = db.Column(db.JSON)
    address = db.Column(db.JSON)
    payment = db.Column(db.JSON)
    preferences = db.Column(db.JSON)
    address_verified = db.Column(db.Boolean, default=False, nullable=False)
    payment_verified = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<EnrollmentDraftRecord {self.session_id}>'
