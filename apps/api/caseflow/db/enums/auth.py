"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Tenant membership roles.

    - ADMINISTRATOR: Tenant admin (rules, hierarchy, manual reassignment)
    - MANAGER: Coordinator management and review
    - SERVICE_COORDINATOR: Owns and works assigned cases
    - UM_NURSE / QM_STAFF / COMMUNICATIONS_TEAM: Supporting staff
    """

    ADMINISTRATOR = "administrator"
    MANAGER = "manager"
    SERVICE_COORDINATOR = "service_coordinator"
    UM_NURSE = "um_nurse"
    QM_STAFF = "qm_staff"
    COMMUNICATIONS_TEAM = "communications_team"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
