# Import models here so Alembic can discover metadata.
from tenantdesk.models.tenant import Tenant  # noqa: F401
from tenantdesk.models.user import User  # noqa: F401
from tenantdesk.models.project import Project  # noqa: F401
from tenantdesk.models.task import Task  # noqa: F401

# Operational tables
from tenantdesk.models.audit_log import AuditLog  # noqa: F401
from tenantdesk.models.app_status import AppStatus  # noqa: F401
