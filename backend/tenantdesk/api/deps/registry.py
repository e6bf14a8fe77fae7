from tenantdesk.crud.tenants import TenantRegistry, tenant_registry


def get_tenant_registry() -> TenantRegistry:
    """Overridable in tests to inject a different plan table."""
    return tenant_registry
