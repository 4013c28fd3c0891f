"""
Business logic services.
"""
from .tier_reconciler import TierPromotionReconciler, ReconcileResult
from .club_setup import ClubSetupService
from .enrollment_draft import EnrollmentDraftStore, EnrollmentWizard, DraftState
from .enrollment_service import EnrollmentService
from .side_effects import LoyaltyBonusDispatcher, WelcomeNotifier

__all__ = [
    'TierPromotionReconciler',
    'ReconcileResult',
    'ClubSetupService',
    'EnrollmentDraftStore',
    'EnrollmentWizard',
    'DraftState',
    'EnrollmentService',
    'LoyaltyBonusDispatcher',
    'WelcomeNotifier',
]
