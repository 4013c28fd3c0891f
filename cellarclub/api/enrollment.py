"""
Enrollment Wizard API.

Each wizard step posts to its own endpoint and gets the updated draft
back. The browser session is identified by the X-Session-ID header.
"""
from functools import wraps

from flask import Blueprint, request, jsonify, g

from ..crm.factory import get_provider_factory
from ..middleware import require_tenant
from ..services.enrollment_draft import EnrollmentWizard
from ..services.enrollment_service import EnrollmentService
from ..services.tier_qualification import find_qualifying_tier
from ..utils.errors import bad_request, json_object


enrollment_bp = Blueprint('enrollment', __name__, url_prefix='/api/enrollment')


def require_session(f):
    """Load the wizard session id into ``g.session_id``."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        session_id = request.headers.get('X-Session-ID')
        if not session_id:
            return bad_request('X-Session-ID header required')
        g.session_id = session_id
        return f(*args, **kwargs)
    return decorated_function


def _json() -> dict:
    return json_object()


@enrollment_bp.route('', methods=['GET'])
@require_tenant
@require_session
def get_draft():
    draft = EnrollmentWizard(g.tenant).store.get(g.session_id)
    return jsonify(draft.to_dict())


@enrollment_bp.route('', methods=['DELETE'])
@require_tenant
@require_session
def reset_draft():
    draft = EnrollmentWizard(g.tenant).reset(g.session_id)
    return jsonify(draft.to_dict())


@enrollment_bp.route('/start', methods=['POST'])
@require_tenant
@require_session
def start():
    draft = EnrollmentWizard(g.tenant).start(g.session_id)
    return jsonify(draft.to_dict()), 201


@enrollment_bp.route('/customer', methods=['POST'])
@require_tenant
@require_session
def select_customer():
    """
    Request body:
    {
        "customer": {"crm_id": "...", "email": "...", "first_name": "...", "ltv": 1250.0}
    }
    """
    data = _json()
    draft = EnrollmentWizard(g.tenant).select_customer(g.session_id, data.get('customer'))
    return jsonify(draft.to_dict())


@enrollment_bp.route('/tier', methods=['POST'])
@require_tenant
@require_session
def select_tier():
    """
    Request body:
    {
        "tier_id": "...",           # omit to pick the highest qualifying tier
        "purchase_amount": 150.00
    }
    """
    data = _json()
    tier_id = data.get('tier_id')
    wizard = EnrollmentWizard(g.tenant)

    if not tier_id:
        ltv = (wizard.store.get(g.session_id).customer or {}).get('ltv')
        stage = find_qualifying_tier(g.tenant.id, data.get('purchase_amount'), ltv)
        if stage is None:
            return bad_request('No tier qualifies for this customer')
        tier_id = stage.id

    draft = wizard.select_tier(g.session_id, tier_id, data.get('purchase_amount'))
    return jsonify(draft.to_dict())


@enrollment_bp.route('/address', methods=['POST'])
@require_tenant
@require_session
def verify_address():
    """
    Request body:
    {
        "billing_address_id": "...",
        "shipping_address_id": "...",   # optional, defaults to billing
        "billing": {...},
        "shipping": {...}
    }
    """
    data = _json()
    draft = EnrollmentWizard(g.tenant).verify_address(
        g.session_id,
        data.get('billing_address_id'),
        data.get('shipping_address_id'),
        billing=data.get('billing'),
        shipping=data.get('shipping'),
    )
    return jsonify(draft.to_dict())


@enrollment_bp.route('/payment', methods=['POST'])
@require_tenant
@require_session
def verify_payment():
    data = _json()
    draft = EnrollmentWizard(g.tenant).verify_payment(
        g.session_id, data.get('payment_method_id'), data.get('summary')
    )
    return jsonify(draft.to_dict())


@enrollment_bp.route('/preferences', methods=['POST'])
@require_tenant
@require_session
def set_preferences():
    data = _json()
    draft = EnrollmentWizard(g.tenant).set_preferences(g.session_id, data.get('preferences', {}))
    return jsonify(draft.to_dict())


@enrollment_bp.route('/complete', methods=['POST'])
@require_tenant
@require_session
def complete():
    provider = get_provider_factory().for_tenant(g.tenant)
    result = EnrollmentService(g.tenant, provider).complete_enrollment(g.session_id)
    return jsonify(result.to_dict()), 201
