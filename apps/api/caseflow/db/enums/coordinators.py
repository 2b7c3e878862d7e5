"""Service coordinator enums."""

from enum import Enum


class Zone(str, Enum):
    """Geographic service area."""

    SW = "SW"
    SE = "SE"
    NE = "NE"
    NW = "NW"
    LC = "LC"


class CoordinatorRole(str, Enum):
    """Position of a coordinator in the supervisory tree (target of role-based rules)."""

    COORDINATOR = "coordinator"
    SUPERVISOR = "supervisor"
    MANAGER = "manager"
    DIRECTOR = "director"


# SQL literal list for CHECK constraints on zone columns
ZONE_SQL_VALUES = "(" + ", ".join(f"'{zone.value}'" for zone in Zone) + ")"
