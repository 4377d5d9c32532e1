from enum import Enum


class ListingStatus(str, Enum):
    PRIVATE = "PRIVATE"            # unit exists, never listed (implicit initial state)
    PENDING = "PENDING"
    COMING_SOON = "COMING_SOON"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    MAINTENANCE = "MAINTENANCE"
    EXPIRED = "EXPIRED"


class ListingAction(str, Enum):
    CREATE = "CREATE"
    REMOVE = "REMOVE"
    SUSPEND = "SUSPEND"
    ACTIVATE = "ACTIVATE"
    UPDATE = "UPDATE"
    EXPIRE = "EXPIRE"
    MAINTENANCE_START = "MAINTENANCE_START"
    MAINTENANCE_END = "MAINTENANCE_END"
    AUTO_ACTIVATE = "AUTO_ACTIVATE"
    AUTO_EXPIRE = "AUTO_EXPIRE"
    SET_COMING_SOON = "SET_COMING_SOON"
    BULK_OPERATION = "BULK_OPERATION"


class BulkActionType(str, Enum):
    LIST = "LIST"
    UNLIST = "UNLIST"
    SUSPEND = "SUSPEND"
    MAINTENANCE_START = "MAINTENANCE_START"
    MAINTENANCE_END = "MAINTENANCE_END"


class ApplicationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class LeaseStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"
    TERMINATED = "TERMINATED"


# leases in these states keep a unit off the marketplace
BLOCKING_LEASE_STATUSES = (LeaseStatus.ACTIVE.value, LeaseStatus.PENDING_APPROVAL.value)


class MaintenancePriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class MaintenanceRequestStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


OPEN_MAINTENANCE_STATUSES = (
    MaintenanceRequestStatus.OPEN.value,
    MaintenanceRequestStatus.IN_PROGRESS.value,
    MaintenanceRequestStatus.ON_HOLD.value,
)
