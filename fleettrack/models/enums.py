from enum import Enum


class DeviceStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    ASSIGNED = "ASSIGNED"
    TRANSFER_AVAILABLE = "TRANSFER_AVAILABLE"  # OWNED device held back for internal redeployment


class SimStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    ASSIGNED = "ASSIGNED"


class DeviceOwnership(str, Enum):
    OWNED = "OWNED"
    LEASING = "LEASING"


class JobType(str, Enum):
    NEW_INSTALLATION = "NEW_INSTALLATION"
    TRANSFER_INSTALLATION = "TRANSFER_INSTALLATION"
    DEVICE_REPLACEMENT = "DEVICE_REPLACEMENT"
    REMOVAL = "REMOVAL"
    RENEWAL = "RENEWAL"


# Job types whose assignment takes the device (and SIM) out of inventory
ACQUIRING_JOB_TYPES = frozenset({JobType.NEW_INSTALLATION, JobType.DEVICE_REPLACEMENT})


class RenewalStatus(str, Enum):
    UPCOMING = "UPCOMING"
    RENEWED = "RENEWED"
    EXPIRED = "EXPIRED"


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    SUPPORT = "SUPPORT"
    SALES = "SALES"
    ACCOUNTS = "ACCOUNTS"
    TECHNICIAN = "TECHNICIAN"


class ActivityAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RENEW = "RENEW"


class ActivityEntity(str, Enum):
    DEVICE = "DEVICE"
    SIM = "SIM"
    VEHICLE = "VEHICLE"
    CLIENT = "CLIENT"
    ASSIGNMENT = "ASSIGNMENT"
    REPLACEMENT = "REPLACEMENT"
    REMOVAL = "REMOVAL"
    RENEWAL = "RENEWAL"
    TASK = "TASK"
    USER = "USER"
