"""Class Schemas — Pydantic models with field-level validation for API boundaries.

Invariants:
    - InitializeRequest.class_names: 1-10000 names, each 1-200 chars after stripping
    - seats_per_class >= 0

Design Decisions:
    - field_validator for side-effect-free transforms (strip) — keeps models pure
"""

from pydantic import BaseModel, Field, field_validator

from scheduling.core.domain_types import EnrollmentState


class InitializeRequest(BaseModel):
    """Full reset of the class catalogue."""
    class_names: list[str] = Field(min_length=1, max_length=10_000)
    seats_per_class: int = Field(ge=0)

    @field_validator("class_names")
    @classmethod
    def strip_names(cls, v: list[str]) -> list[str]:
        names = [n.strip() for n in v]
        if any(not n or len(n) > 200 for n in names):
            raise ValueError("class names must be 1-200 non-blank characters")
        return names


class InitializeResponse(BaseModel):
    classes_created: int
    seats_per_class: int


class ClassSummary(BaseModel):
    name: str
    seats_available: int


class ClassListResponse(BaseModel):
    classes: list[ClassSummary]


class EnrollmentResponse(BaseModel):
    """Outcome of signup/drop; changed=False for idempotent no-ops."""
    student_id: str
    class_name: str
    state: EnrollmentState
    changed: bool
