"""
Request middleware.
"""
from .tenant_auth import require_tenant, get_tenant_identifier

__all__ = ['require_tenant', 'get_tenant_identifier']
