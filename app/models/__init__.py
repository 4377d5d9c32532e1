from app.models.base import Base  # noqa: F401

from app.models.organization import Organization  # noqa: F401
from app.models.property import Property  # noqa: F401
from app.models.unit import Unit  # noqa: F401
from app.models.listing import Listing  # noqa: F401
from app.models.lease import Lease  # noqa: F401
from app.models.tenant_application import TenantApplication  # noqa: F401
from app.models.maintenance_request import MaintenanceRequest  # noqa: F401
from app.models.audit_log import ListingAuditEntry  # noqa: F401
