"""
App lifecycle and CRM change webhooks.

Uninstall deletes the tenant row; every tenant-owned table goes with it.
Change webhooks are validate-and-delete only: a club, membership or
customer deleted in the CRM is removed (or frozen) locally, and every
other topic is acknowledged without processing.
"""
from flask import Blueprint, request, jsonify, current_app

from ..crm.factory import get_provider_factory
from ..extensions import db
from ..models import ClubEnrollment, ClubStage, Customer, Tenant
from ..utils.exceptions import ConfigurationError
from . import verify_basic_auth, verify_shopify_webhook_signature


webhooks_bp = Blueprint('webhooks', __name__, url_prefix='/webhooks')

CLUB_DELETE = 'club/delete'
MEMBERSHIP_DELETE = 'club-membership/delete'
CUSTOMER_DELETE = 'customers/delete'

# Commerce7 sends {object, action}; normalized to the topic names above
C7_TOPICS = {
    ('club', 'delete'): CLUB_DELETE,
    ('club membership', 'delete'): MEMBERSHIP_DELETE,
    ('customer', 'delete'): CUSTOMER_DELETE,
}


def _delete_tenant(tenant: Tenant) -> None:
    current_app.logger.info(f'Deleting tenant {tenant.crm_type}:{tenant.crm_identifier}')
    db.session.delete(tenant)
    db.session.commit()


# ==================== Uninstall ====================

@webhooks_bp.route('/uninstall/commerce7', methods=['POST'])
def uninstall_commerce7():
    """
    Commerce7 uninstall callback (Basic auth with the app's credentials).

    Request body:
    {
        "tenantId": "my-winery"
    }
    """
    if not verify_basic_auth(
        request.headers.get('Authorization', ''),
        current_app.config.get('COMMERCE7_USER'),
        current_app.config.get('COMMERCE7_PASSWORD'),
    ):
        current_app.logger.warning('Rejected Commerce7 uninstall: bad credentials')
        return jsonify({'error': 'Unauthorized'}), 401

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Invalid JSON in uninstall payload'}), 400
    tenant_id = data.get('tenantId')
    if not tenant_id:
        return jsonify({'error': 'tenantId is required'}), 400

    tenant = Tenant.query.filter_by(crm_type='commerce7', crm_identifier=tenant_id).first()
    if not tenant:
        return jsonify({'success': True, 'message': 'Tenant not found'})

    _delete_tenant(tenant)
    return jsonify({'success': True, 'tenant': tenant_id, 'action': 'deleted'})


@webhooks_bp.route('/uninstall/shopify', methods=['POST'])
def uninstall_shopify():
    """Shopify APP_UNINSTALLED webhook (HMAC signed with the app secret)."""
    shop_domain = request.headers.get('X-Shopify-Shop-Domain', '')

    if not verify_shopify_webhook_signature(
        request.get_data(),
        request.headers.get('X-Shopify-Hmac-Sha256', ''),
        current_app.config.get('SHOPIFY_API_SECRET'),
    ):
        current_app.logger.warning(f'Rejected Shopify uninstall for {shop_domain}: invalid signature')
        return jsonify({'error': 'Invalid signature'}), 401

    tenant = Tenant.query.filter_by(crm_type='shopify', crm_identifier=shop_domain).first()
    if not tenant:
        return jsonify({'success': True, 'message': 'Tenant not found'})

    _delete_tenant(tenant)
    return jsonify({'success': True, 'shop': shop_domain, 'action': 'deleted'})


# ==================== CRM change webhooks ====================

def _read_commerce7(body: dict):
    """(tenant identifier, topic, object payload) from a Commerce7 webhook."""
    key = ((body.get('object') or '').strip().lower(), (body.get('action') or '').strip().lower())
    return body.get('tenantId'), C7_TOPICS.get(key), body.get('payload') or {}


def _read_shopify(body: dict):
    """(tenant identifier, topic, object payload) from a Shopify webhook."""
    return (
        request.headers.get('X-Shopify-Shop-Domain'),
        (request.headers.get('X-Shopify-Topic') or '').lower() or None,
        body,
    )


def _object_ids(payload: dict):
    ids = {str(payload[key]) for key in ('id', 'admin_graphql_api_id') if payload.get(key)}
    return list(ids)


def _handle_club_delete(tenant: Tenant, ids) -> int:
    stages = ClubStage.query.filter(
        ClubStage.tenant_id == tenant.id, ClubStage.crm_club_id.in_(ids)
    ).all()
    for stage in stages:
        stage.is_active = False
        stage.stage_order = None
        stage.crm_club_id = None
    return len(stages)


def _handle_membership_delete(tenant: Tenant, ids) -> int:
    enrollments = ClubEnrollment.query.join(Customer).filter(
        Customer.tenant_id == tenant.id, ClubEnrollment.crm_membership_id.in_(ids)
    ).all()
    for enrollment in enrollments:
        db.session.delete(enrollment)
    return len(enrollments)


def _handle_customer_delete(tenant: Tenant, ids) -> int:
    customers = Customer.query.filter(
        Customer.tenant_id == tenant.id, Customer.crm_id.in_(ids)
    ).all()
    for customer in customers:
        db.session.delete(customer)
    return len(customers)


TOPIC_HANDLERS = {
    CLUB_DELETE: _handle_club_delete,
    MEMBERSHIP_DELETE: _handle_membership_delete,
    CUSTOMER_DELETE: _handle_customer_delete,
}


@webhooks_bp.route('/<crm_type>', methods=['POST'])
def handle_crm_webhook(crm_type):
    """
    Signed change notifications from either CRM.

    Commerce7 body: {"object": "Club", "action": "Delete", "tenantId": "...", "payload": {"id": "..."}}
    Shopify: topic in X-Shopify-Topic, shop in X-Shopify-Shop-Domain, body is the object.
    """
    if crm_type not in ('commerce7', 'shopify'):
        return jsonify({'error': f'Unknown platform {crm_type}'}), 404

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({'error': 'Invalid JSON in webhook payload'}), 400

    if crm_type == 'commerce7':
        identifier, topic, payload = _read_commerce7(body)
    else:
        identifier, topic, payload = _read_shopify(body)

    if not identifier:
        return jsonify({'error': 'Missing tenant information'}), 400

    tenant = Tenant.query.filter_by(crm_type=crm_type, crm_identifier=identifier).first()
    if not tenant:
        current_app.logger.warning(f'Webhook from unknown {crm_type} tenant {identifier}')
        return jsonify({'error': 'Unauthorized tenant'}), 403

    try:
        provider = get_provider_factory().for_tenant(tenant)
    except ConfigurationError as e:
        current_app.logger.error(f'Cannot validate webhook for {identifier}: {e.message}')
        return jsonify({'error': 'Webhook validation unavailable'}), 401

    if not provider.validate_webhook(request.get_data(), request.headers):
        current_app.logger.warning(f'Invalid {crm_type} webhook signature for {identifier}')
        return jsonify({'error': 'Invalid signature'}), 401

    handler = TOPIC_HANDLERS.get(topic)
    if handler is None:
        return jsonify({'success': True, 'topic': topic, 'action': 'ignored'})

    ids = _object_ids(payload)
    if not ids:
        return jsonify({'error': 'Webhook payload has no object id'}), 400

    affected = handler(tenant, ids)
    db.session.commit()

    current_app.logger.info(f'{crm_type} webhook {topic} for {identifier}: {affected} local row(s) updated')
    return jsonify({'success': True, 'topic': topic, 'affected': affected})
