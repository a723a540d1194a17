"""Fixed lookup tables for the ClasseViva REST API.

Regions map to the hostname serving that country's instance, apps to the
identifier embedded in the ``User-Agent`` header, and user types to the
one-letter codes found in card records.
"""

from enum import Enum


class Region(str, Enum):
    """Country instance of the ClasseViva platform."""

    ITALY = "IT"
    SAN_MARINO = "SM"
    ARGENTINA = "AR"


HOSTS: dict[Region, str] = {
    Region.ITALY: "web.spaggiari.eu",
    Region.SAN_MARINO: "web.spaggiari.sm",
    Region.ARGENTINA: "ar.spaggiari.eu",
}


class App(str, Enum):
    """Client application identifiers accepted by the API."""

    STUDENTS = "CVVS/studente/4.1.7"
    FAMILY = "CVVS/famiglia/4.1.7"
    TEACHERS = "CVVS/docente/4.1.7"


class UserType(str, Enum):
    """Account type reported by the ``usrType`` card field."""

    STUDENT = "Student"
    PARENT = "Parent"
    TEACHER = "Teacher"


USER_TYPE_CODES: dict[str, UserType] = {
    "S": UserType.STUDENT,
    "G": UserType.PARENT,
    "D": UserType.TEACHER,
}


def user_type_from_code(code: str | None) -> UserType:
    """Map a one-letter card code to a UserType, defaulting to STUDENT."""
    return USER_TYPE_CODES.get(code or "S", UserType.STUDENT)
