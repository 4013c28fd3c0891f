"""
Database models for the CellarClub console.
"""
from .tenant import Tenant
from .club import ClubProgram, ClubStage, StagePromotion, TierLoyaltyConfig, LoyaltyRules
from .member import Customer, ClubEnrollment
from .enrollment_draft import EnrollmentDraftRecord
from .side_effect import SideEffectEvent

__all__ = [
    'Tenant',
    'ClubProgram',
    'ClubStage',
    'StagePromotion',
    'TierLoyaltyConfig',
    'LoyaltyRules',
    'Customer',
    'ClubEnrollment',
    'EnrollmentDraftRecord',
    'SideEffectEvent',
]
