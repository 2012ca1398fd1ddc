"""ORM models. Importing this package registers every table on `Base.metadata`."""

from helpdesk.models.hour_banks import HourBank, HourBankRequest, HourBankRequestStatus
from helpdesk.models.security import Permission, Role, User, UserRole, role_permissions, user_roles
from helpdesk.models.tenancy import Company, Department, Organization, OrganizationType
from helpdesk.models.tickets import Ticket, TicketPriority, TicketStatus, TicketType

__all__ = [
    "Company",
    "Department",
    "HourBank",
    "HourBankRequest",
    "HourBankRequestStatus",
    "Organization",
    "OrganizationType",
    "Permission",
    "Role",
    "Ticket",
    "TicketPriority",
    "TicketStatus",
    "TicketType",
    "User",
    "UserRole",
    "role_permissions",
    "user_roles",
]
