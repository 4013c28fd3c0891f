"""
Tenant resolution for console API requests.

Session-cookie authentication happens upstream; by the time a request
reaches these endpoints it carries the tenant's CRM identifier.
"""
from functools import wraps
from typing import Optional

from flask import g, request

from ..models import Tenant
from ..utils.errors import ErrorCode, error_response, unauthorized


def get_tenant_identifier() -> Optional[str]:
    """
    Get the tenant identifier from the request.

    Priority:
    1. X-Tenant-ID header (Commerce7 tenant id)
    2. X-Shop-Domain header (Shopify shop domain)
    3. tenantId / shop query parameter
    """
    return (
        request.headers.get('X-Tenant-ID')
        or request.headers.get('X-Shop-Domain')
        or request.args.get('tenantId')
        or request.args.get('shop')
    )


def require_tenant(f):
    """
    Decorator that loads the request's tenant into ``g.tenant``.

    Usage:
        @require_tenant
        def my_endpoint():
            tenant = g.tenant
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        identifier = get_tenant_identifier()
        if not identifier:
            return unauthorized('Tenant identifier required')

        tenant = Tenant.query.filter_by(crm_identifier=identifier).first()
        if not tenant:
            return error_response(
                f'Tenant {identifier} not found', ErrorCode.TENANT_NOT_FOUND, 404, log_error=False
            )

        g.tenant = tenant
        g.tenant_id = tenant.id
        return f(*args, **kwargs)

    return decorated_function
