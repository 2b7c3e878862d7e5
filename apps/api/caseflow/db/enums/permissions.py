"""Role permission helper sets."""

from caseflow.db.enums.auth import Role

# Roles that can manually reassign or close cases
ROLES_CAN_ASSIGN = {Role.ADMINISTRATOR, Role.MANAGER}

# Roles that can edit the supervisory hierarchy
ROLES_CAN_MANAGE_HIERARCHY = {Role.ADMINISTRATOR}

# Roles that can approve/reject any pending form instance in the tenant
ROLES_WITH_REVIEW_AUTHORITY = {Role.ADMINISTRATOR, Role.MANAGER, Role.QM_STAFF}

# Roles that can view audit events
ROLES_CAN_VIEW_AUDIT = {Role.ADMINISTRATOR, Role.MANAGER}
