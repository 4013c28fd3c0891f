"""
Structured log of best-effort side effects (loyalty bonus, welcome email).

One row per attempt, so operators can find and replay missed effects.
"""
from datetime import datetime
from ..extensions import db


class SideEffectEvent(db.Model):
    __tablename__ = 'side_effect_events'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True
    )
    kind = db.Column(db.String(50), nullable=False)  # loyalty_bonus, welcome_email
    status = db.Column(db.String(20), nullable=False)  # succeeded, failed, skipped
    reference = db.Column(db.String(255), index=True)  # customer external id
    detail = db.Column(db.JSON)
    error = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<SideEffectEvent {self.kind}:{self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'kind': self.kind,
            'status': self.status,
            'reference': self.reference,
            'detail': self.detail,
            'error': self.error,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
