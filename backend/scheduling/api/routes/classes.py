"""Class Routes — initialize, list, signup and drop over HTTP.

Invariants:
    - Exactly the four scheduling operations are exposed
    - SchedulingError subclasses propagate to the global handler (typed JSON envelope)
    - Signup/drop are idempotent: repeating a call returns 200 with changed=false

Design Decisions:
    - Student/class identity in the path: both verbs act on the same resource,
      /classes/{class_name}/students/{student_id}
"""

import logging

from fastapi import APIRouter, Depends, status

from scheduling.api.deps import SchedulingRuntime, get_runtime
from scheduling.core.domain_types import EnrollmentChange
from scheduling.schemas.classes import (
    ClassListResponse,
    ClassSummary,
    EnrollmentResponse,
    InitializeRequest,
    InitializeResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/classes", tags=["classes"])


@router.get("", response_model=ClassListResponse)
async def list_classes(runtime: SchedulingRuntime = Depends(get_runtime)):
    """All classes in ascending name order with their free seats."""
    records = await runtime.scheduler.list_class_records(runtime.transactor)
    return ClassListResponse(
        classes=[
            ClassSummary(name=r.name, seats_available=r.seats_available)
            for r in records
        ],
    )


@router.post(
    "/initialize", response_model=InitializeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def initialize_classes(
    body: InitializeRequest, runtime: SchedulingRuntime = Depends(get_runtime),
):
    """Reset the catalogue: every class and enrollment is replaced."""
    count = await runtime.scheduler.initialize(
        runtime.transactor, body.class_names, body.seats_per_class,
    )
    return InitializeResponse(
        classes_created=count, seats_per_class=body.seats_per_class,
    )


@router.post(
    "/{class_name}/students/{student_id}", response_model=EnrollmentResponse,
)
async def signup(
    class_name: str,
    student_id: str,
    runtime: SchedulingRuntime = Depends(get_runtime),
):
    change = await runtime.scheduler.signup(
        runtime.transactor, student_id, class_name,
    )
    return _to_response(change)


@router.delete(
    "/{class_name}/students/{student_id}", response_model=EnrollmentResponse,
)
async def drop(
    class_name: str,
    student_id: str,
    runtime: SchedulingRuntime = Depends(get_runtime),
):
    change = await runtime.scheduler.drop(
        runtime.transactor, student_id, class_name,
    )
    return _to_response(change)


def _to_response(change: EnrollmentChange) -> EnrollmentResponse:
    return EnrollmentResponse(
        student_id=change.student_id,
        class_name=change.class_name,
        state=change.state,
        changed=change.changed,
    )
