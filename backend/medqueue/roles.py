from enum import Enum
from typing import Optional, Type, Union
from medqueue.models.role_data import AdminData, PatientData, RoleDataMixin, StaffData


class Role(str, Enum):
    PATIENT = "patient"
    STAFF = "staff"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value) -> Optional["Role"]:
        """Return the matching Role, or None for anything unrecognised."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


DEFAULT_ROLE = Role.PATIENT

ROLE_TABLES: dict[Role, Type[RoleDataMixin]] = {
    Role.PATIENT: PatientData,
    Role.STAFF: StaffData,
    Role.ADMIN: AdminData,
}


def table_for(role: Union[Role, str, None]) -> Optional[Type[RoleDataMixin]]:
    """Role → role-data model. None means "no role data available", not an error."""
    parsed = Role.parse(role)
    if parsed is None:
        return None
    return ROLE_TABLES[parsed]
