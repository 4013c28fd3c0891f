"""
Club Program API.

Provides REST endpoints for the club setup and tier editing screens:
- Initial program setup
- Tier/promotion reconciliation
- Per-tier loyalty toggles
- Promotion detail fetched live from the CRM
"""
from flask import Blueprint, jsonify, g, current_app

from ..crm.factory import get_provider_factory
from ..discounts.commerce7 import PromotionKind
from ..models import ClubProgram, ClubStage, LoyaltyRules
from ..middleware import require_tenant
from ..services.club_setup import ClubSetupService, parse_setup_payload
from ..services.tier_reconciler import TierPromotionReconciler
from ..utils.errors import bad_request, json_object, not_found
from ..utils.exceptions import NotFoundError, RemoteCallError, TierNotFoundError


club_bp = Blueprint('club', __name__, url_prefix='/api/club')


def get_provider():
    return get_provider_factory().for_tenant(g.tenant)


# ==================== Program ====================

@club_bp.route('', methods=['GET'])
@require_tenant
def get_program():
    """Program, active tiers (with cached promotions) and loyalty rules."""
    program = ClubProgram.query.filter_by(tenant_id=g.tenant.id).first()
    if not program:
        return not_found('Club program has not been set up')

    rules = LoyaltyRules.query.filter_by(tenant_id=g.tenant.id).first()
    data = program.to_dict(include_stages=False)
    data['tiers'] = [
        stage.to_dict(include_promotions=True)
        for stage in program.stages if stage.is_active
    ]
    data['loyalty_rules'] = rules.to_dict() if rules else None
    data['setup_complete'] = g.tenant.setup_complete
    return jsonify(data)


@club_bp.route('/setup', methods=['POST'])
@require_tenant
def setup_program():
    """
    Create the club program.

    Request body:
    {
        "club_name": "Cellar Club",
        "club_description": "...",
        "tiers": [{"id": "tmp-1", "name": "Bronze", "duration_months": 12,
                   "promotions": [{"discount": {...}}]}],
        "loyalty_rules": {"points_per_dollar": 1, ...}
    }
    """
    data = json_object(required=True)

    payload = parse_setup_payload(data)
    service = ClubSetupService(g.tenant, get_provider())
    result = service.create_program(
        payload['name'], payload['description'], payload['tiers'], payload['loyalty_rules']
    )
    if data.get('complete', True):
        service.mark_setup_complete()

    current_app.logger.info(f"Club setup for tenant {g.tenant.id}: {result.message}")
    return jsonify(result.to_dict()), 201


@club_bp.route('/setup/complete', methods=['POST'])
@require_tenant
def complete_setup():
    ClubSetupService(g.tenant, None).mark_setup_complete()
    return jsonify({'success': True, 'setup_complete': True})


# ==================== Tiers ====================

@club_bp.route('/tiers', methods=['PUT'])
@require_tenant
def reconcile_tiers():
    """
    Replace the tier set.

    Request body:
    {
        "tiers": [...],            # full list, in display order
        "loyalty_rules": {...}     # optional
    }

    Promotion failures come back as warnings with a 200.
    """
    data = json_object()
    if 'tiers' not in data:
        return bad_request('tiers is required')

    reconciler = TierPromotionReconciler(g.tenant, get_provider())
    result = reconciler.reconcile(data['tiers'], loyalty_rules=data.get('loyalty_rules'))
    return jsonify(result.to_dict())


@club_bp.route('/tiers/<stage_id>/loyalty', methods=['POST'])
@require_tenant
def toggle_loyalty(stage_id):
    """
    Enable or disable loyalty for a tier.

    Request body:
    {
        "enabled": true,
        "earn_rate": 2,          # percent
        "bonus_points": 500
    }
    """
    data = json_object()
    service = ClubSetupService(g.tenant, get_provider())

    if data.get('enabled', True):
        if data.get('earn_rate') is None:
            return bad_request('earn_rate is required')
        config = service.enable_loyalty(stage_id, data['earn_rate'], data.get('bonus_points', 0))
        return jsonify({'success': True, 'loyalty': config.to_dict()})

    removed = service.disable_loyalty(stage_id)
    return jsonify({'success': True, 'removed': removed})


@club_bp.route('/tiers/<stage_id>/promotions', methods=['GET'])
@require_tenant
def list_tier_promotions(stage_id):
    """Tier promotions, each enriched with its live CRM state."""
    stage = ClubStage.query.filter_by(id=stage_id, tenant_id=g.tenant.id).first()
    if not stage:
        raise TierNotFoundError(stage_id)

    provider = get_provider()
    promotions = []
    for record in stage.promotions:
        view = record.to_dict()
        view['remote'] = None
        view['missing'] = False
        if record.crm_id:
            try:
                discount = provider.get_promotion(record.crm_id, kind=PromotionKind(record.kind))
                view['remote'] = discount.to_dict()
                view['display_value'] = discount.format_value()
                view['status'] = discount.calculate_status().value
            except NotFoundError:
                view['missing'] = True
            except RemoteCallError as e:
                current_app.logger.warning(
                    f"Could not load promotion {record.crm_id} for tier '{stage.name}': {e.message}"
                )
                view['error'] = e.message
        promotions.append(view)

    return jsonify({'tier': stage.to_dict(), 'promotions': promotions})
