"""
Webhook Subscription API.

Lists, registers and removes the tenant's CRM webhook subscriptions. Every
subscription points at this app's signed change endpoint.
"""
from typing import Dict, List

from flask import Blueprint, jsonify, g, url_for, current_app

from ..crm.factory import get_provider_factory
from ..middleware import require_tenant
from ..utils.errors import bad_request, json_object
from ..utils.exceptions import NotFoundError


webhook_admin_bp = Blueprint('webhook_admin', __name__, url_prefix='/api/webhooks')

# Topics each platform can deliver to the change endpoint. Club topics only
# exist on Commerce7; Shopify clubs are customer segments.
PLATFORM_TOPICS = {
    'commerce7': {
        'available': [
            'customers/create',
            'customers/update',
            'customers/delete',
            'club/update',
            'club/delete',
            'club-membership/update',
            'club-membership/delete',
        ],
        'recommended': ['customers/delete', 'club/delete', 'club-membership/delete'],
    },
    'shopify': {
        'available': ['customers/create', 'customers/update', 'customers/delete'],
        'recommended': ['customers/delete'],
    },
}


def topics_for(crm_type: str) -> Dict[str, List[str]]:
    return PLATFORM_TOPICS.get(crm_type, {'available': [], 'recommended': []})


def format_topic(topic: str) -> str:
    """'club-membership/delete' -> 'Club-membership Delete'"""
    resource, _, action = topic.partition('/')
    return f'{resource.capitalize()} {action.capitalize()}'.strip()


def webhook_endpoint(crm_type: str) -> str:
    return url_for('webhooks.handle_crm_webhook', crm_type=crm_type, _external=True)


def get_provider():
    return get_provider_factory().for_tenant(g.tenant)


@webhook_admin_bp.route('', methods=['GET'])
@require_tenant
def list_webhooks():
    """Registered subscriptions plus the topics that can be added."""
    provider = get_provider()
    topics = topics_for(provider.crm_type)
    return jsonify({
        'webhooks': provider.list_webhooks(),
        'endpoint': webhook_endpoint(g.tenant.crm_type),
        'available_topics': [
            {'topic': topic, 'label': format_topic(topic), 'recommended': topic in topics['recommended']}
            for topic in topics['available']
        ],
    })


@webhook_admin_bp.route('', methods=['POST'])
@require_tenant
def register_webhook():
    """
    Request body:
    {
        "topic": "club/delete",
        "address": "https://..."     # optional, defaults to this app's endpoint
    }
    """
    data = json_object()
    provider = get_provider()
    available = topics_for(provider.crm_type)['available']
    topic = data.get('topic')
    if topic not in available:
        return bad_request(f'topic must be one of: {", ".join(available)}')

    address = data.get('address') or webhook_endpoint(g.tenant.crm_type)
    webhook_id = provider.register_webhook(topic, address)
    current_app.logger.info(f'Registered {topic} webhook {webhook_id} for tenant {g.tenant.id}')
    return jsonify({'success': True, 'id': webhook_id, 'topic': topic, 'address': address}), 201


@webhook_admin_bp.route('/recommended', methods=['POST'])
@require_tenant
def register_recommended():
    """Register every recommended topic not already subscribed."""
    provider = get_provider()
    address = webhook_endpoint(g.tenant.crm_type)
    existing = {
        (w.get('topic') or '').lower().replace('_', '/')
        for w in provider.list_webhooks()
    }

    registered = []
    for topic in topics_for(provider.crm_type)['recommended']:
        if topic in existing:
            continue
        registered.append({'topic': topic, 'id': provider.register_webhook(topic, address)})
    return jsonify({'success': True, 'registered': registered})


@webhook_admin_bp.route('/<webhook_id>', methods=['DELETE'])
@require_tenant
def delete_webhook(webhook_id):
    try:
        get_provider().delete_webhook(webhook_id)
    except NotFoundError:
        current_app.logger.info(f'Webhook {webhook_id} already removed')
    return jsonify({'success': True, 'deleted': webhook_id})
