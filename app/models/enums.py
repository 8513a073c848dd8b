"""Enumeration types for the appraisal workflow."""

from __future__ import annotations

from enum import StrEnum


class AppraisalStatus(StrEnum):
    """Lifecycle states of an appraisal record."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    VERIFIED = "VERIFIED"
    APPROVED = "APPROVED"


class Role(StrEnum):
    """System roles carried by an authenticated identity."""

    FACULTY = "faculty"
    HOD = "hod"
    DEAN = "dean"
    ASSOCIATE_DEAN = "associate_dean"
    DIRECTOR = "director"
    ADMIN = "admin"


class Department(StrEnum):
    """Institute departments."""

    COMPUTER = "computer"
    IT = "it"
    MECHANICAL = "mechanical"
    CIVIL = "civil"
    ENTC = "entc"
    COMPUTER_REGIONAL = "computer_regional"
    AIML = "aiml"
    ASH = "ash"


class Designation(StrEnum):
    """Academic cadres."""

    PROFESSOR = "Professor"
    ASSOCIATE_PROFESSOR = "Associate Professor"
    ASSISTANT_PROFESSOR = "Assistant Professor"


class UserStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# Roles that act as evaluators on Part D and may hold an administrative portfolio
EVALUATOR_ROLES: tuple[Role, ...] = (
    Role.ASSOCIATE_DEAN,
    Role.DIRECTOR,
    Role.HOD,
    Role.DEAN,
)

DEPARTMENT_LABELS: dict[Department, str] = {
    Department.COMPUTER: "Computer Engineering",
    Department.IT: "Information Technology",
    Department.MECHANICAL: "Mechanical Engineering",
    Department.CIVIL: "Civil Engineering",
    Department.ENTC: "Electronics and Telecommunication Engineering",
    Department.COMPUTER_REGIONAL: "Computer Engineering (Regional)",
    Department.AIML: "Artificial Intelligence and Machine Learning",
    Department.ASH: "Applied Sciences and Humanities",
}
