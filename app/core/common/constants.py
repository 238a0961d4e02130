from enum import Enum


class Roles(str, Enum):
    USER = "user"
    ADMIN = "admin"
    OWNER = "owner"


ADMIN_ROLES = frozenset({Roles.ADMIN, Roles.OWNER})
