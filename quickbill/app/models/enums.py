"""
User roles enumeration.

Defines the role types for the revenue administration system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        SUPER_ADMIN: System owner
        ADMIN: Full access to revenue administration
        OFFICER: Manages accounts, billing and payments
        REVENUE_OFFICER: Records and views payments
        DATA_COLLECTOR: Captures business and property records only
    """
    SUPER_ADMIN = "Super Admin"
    ADMIN = "Admin"
    OFFICER = "Officer"
    REVENUE_OFFICER = "Revenue Officer"
    DATA_COLLECTOR = "Data Collector"
