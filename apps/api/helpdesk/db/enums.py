"""Enum definitions for application constants."""

from enum import Enum


class Role(str, Enum):
    """
    User roles with increasing privilege levels.
    
    - CUSTOMER: Files tickets and sees only their own
    - AGENT: Triage, replies, internal notes
    - MANAGER: Teams, routing tags, audit trail
    - ADMIN: Role changes, user deletion, test data
    """
    CUSTOMER = "CUSTOMER"
    AGENT = "AGENT"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"
    
    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


class TicketStatus(str, Enum):
    """Ticket lifecycle status."""
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class TicketPriority(str, Enum):
    """Ticket priority level."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"
    
    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


# Sort rank: higher is more urgent
PRIORITY_RANK = {
    TicketPriority.LOW: 0,
    TicketPriority.MEDIUM: 1,
    TicketPriority.HIGH: 2,
    TicketPriority.URGENT: 3,
}


class AuditAction(str, Enum):
    """Mutation recorded by an audit row."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditEntity(str, Enum):
    """Kind of entity an audit row describes."""
    TICKET = "TICKET"
    USER = "USER"
    TEAM = "TEAM"
    MESSAGE = "MESSAGE"
    MARKETPLACE_CONVERSATION = "MARKETPLACE_CONVERSATION"


class ConversationStatus(str, Enum):
    """Processing state of a pasted marketplace conversation."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class SortField(str, Enum):
    """Ticket list sort criteria."""
    ASSIGNED_TO_ME = "assigned_to_me"
    PRIORITY = "priority"
    UPDATED_AT = "updated_at"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# =============================================================================
# Role sets for permission guards
# =============================================================================

# Staff roles: see all tickets, internal notes, can be assigned
STAFF_ROLES = {Role.AGENT, Role.MANAGER, Role.ADMIN}

# Roles that can create/edit/delete teams and routing tags
ROLES_CAN_MANAGE_TEAMS = {Role.MANAGER, Role.ADMIN}

# Roles that can change another user's role
ROLES_CAN_CHANGE_ROLES = {Role.ADMIN}

# Roles that can delete users
ROLES_CAN_DELETE_USERS = {Role.ADMIN}

# Roles that can list users by role (team management pickers)
ROLES_CAN_LIST_BY_ROLE = {Role.MANAGER, Role.ADMIN}

# Roles that can view audit logs
ROLES_CAN_VIEW_AUDIT = {Role.MANAGER, Role.ADMIN}

# Roles that can provision/cleanup synthetic test data
ROLES_CAN_MANAGE_TEST_DATA = {Role.ADMIN}

# Roles that can process conversations they did not upload
ROLES_CAN_PROCESS_ANY_CONVERSATION = {Role.MANAGER, Role.ADMIN}
