# File: portal/models/enums.py

import enum


class Role(str, enum.Enum):
    CITIZEN = "citizen"
    STAFF = "staff"
    ADMIN = "admin"


class IssueStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    WORKING = "working"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REJECTED = "rejected"


class IssuePriority(str, enum.Enum):
    NORMAL = "normal"
    HIGH = "high"


class PaymentPurpose(str, enum.Enum):
    BOOST = "boost"
    PREMIUM = "premium"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


def enum_values(enum_cls):
    """Persist enum values ("in-progress") rather than member names."""
    return [member.value for member in enum_cls]
