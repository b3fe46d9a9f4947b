from __future__ import annotations

from sqlalchemy.orm import Session, joinedload

from coursetrack.domain.deadline_scanner import AllocationContext
from coursetrack.models import ActivityLog, Allocation, Facilitator, Role, User


def to_allocation_context(allocation: Allocation) -> AllocationContext:
    facilitator = allocation.facilitator
    user = facilitator.user if facilitator else None
    return AllocationContext(
        allocation_id=allocation.id,
        trimester=allocation.trimester,
        year=int(allocation.year),
        facilitator_email=user.email if user else '',
        facilitator_name=user.name if user else '',
        module_name=allocation.module.name if allocation.module else 'N/A',
        class_name=allocation.course_class.name if allocation.course_class else 'N/A',
    )


def list_allocation_contexts(db: Session) -> list[AllocationContext]:
    rows = (
        db.query(Allocation)
        .options(
            joinedload(Allocation.facilitator).joinedload(Facilitator.user),
            joinedload(Allocation.module),
            joinedload(Allocation.course_class),
        )
        .order_by(Allocation.id.asc())
        .all()
    )
    return [to_allocation_context(row) for row in rows]


def find_log(db: Session, allocation_id: int, week_number: int) -> ActivityLog | None:
    return (
        db.query(ActivityLog)
        .filter(ActivityLog.allocation_id == allocation_id, ActivityLog.week_number == week_number)
        .order_by(ActivityLog.id.asc())
        .first()
    )


def list_manager_emails(db: Session) -> list[str]:
    rows = (
        db.query(User.email)
        .filter(User.role == Role.MANAGER.value)
        .order_by(User.id.asc())
        .all()
    )
    return [email for (email,) in rows if email]
