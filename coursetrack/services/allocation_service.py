from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from coursetrack.core.time_provider import TimeProvider, default_time_provider
from coursetrack.models import Allocation, CourseClass, Facilitator, Mode, Module, Role
from coursetrack.schemas import AllocationCreateRequest, AllocationUpdateRequest
from coursetrack.services.activity_log_service import facilitator_profile_for
from coursetrack.services.errors import RecordNotFoundError


logger = logging.getLogger(__name__)

_REFERENCES = (
    ('module_id', Module, 'Module'),
    ('class_id', CourseClass, 'Class'),
    ('facilitator_id', Facilitator, 'Facilitator'),
    ('mode_id', Mode, 'Mode'),
)


def _require_manager(user: dict) -> None:
    if str(user.get('role') or '').lower() != Role.MANAGER.value:
        raise PermissionError('Only managers can manage course allocations.')


def _check_references(db: Session, values: dict) -> None:
    for field, model, label in _REFERENCES:
        if field in values and db.get(model, values[field]) is None:
            raise RecordNotFoundError(f'{label} {values[field]} not found.')


def create_allocation(
    db: Session,
    user: dict,
    payload: AllocationCreateRequest,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> Allocation:
    _require_manager(user)
    values = payload.model_dump()
    _check_references(db, values)
    row = Allocation(**values, created_at=time_provider.utc_now())
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('allocation_created allocation_id=%s trimester=%s year=%s', row.id, row.trimester, row.year)
    return row


def list_allocations(
    db: Session,
    user: dict,
    *,
    trimester: str | None = None,
    year: int | None = None,
    facilitator_id: int | None = None,
    module_id: int | None = None,
    class_id: int | None = None,
    mode_id: int | None = None,
) -> list[Allocation]:
    query = db.query(Allocation)
    role = str(user.get('role') or '').lower()
    if role == Role.FACILITATOR.value:
        profile = facilitator_profile_for(db, user)
        if profile is None:
            raise RecordNotFoundError('Facilitator profile not found for this user.')
        query = query.filter(Allocation.facilitator_id == profile.id)
    elif role == Role.MANAGER.value:
        if facilitator_id:
            query = query.filter(Allocation.facilitator_id == facilitator_id)
    else:
        raise PermissionError('You do not have permission to view allocations.')

    if trimester:
        query = query.filter(Allocation.trimester == trimester)
    if year:
        query = query.filter(Allocation.year == year)
    if module_id:
        query = query.filter(Allocation.module_id == module_id)
    if class_id:
        query = query.filter(Allocation.class_id == class_id)
    if mode_id:
        query = query.filter(Allocation.mode_id == mode_id)
    return query.order_by(Allocation.year.desc(), Allocation.trimester.asc(), Allocation.id.asc()).all()


def get_allocation(db: Session, user: dict, allocation_id: int) -> Allocation:
    row = db.get(Allocation, allocation_id)
    if row is None:
        raise RecordNotFoundError('Allocation not found.')
    role = str(user.get('role') or '').lower()
    if role == Role.FACILITATOR.value:
        profile = facilitator_profile_for(db, user)
        if profile is None or row.facilitator_id != profile.id:
            raise PermissionError('You can only view your own allocations.')
    elif role != Role.MANAGER.value:
        raise PermissionError('You do not have permission to view allocations.')
    return row


def update_allocation(db: Session, user: dict, allocation_id: int, payload: AllocationUpdateRequest) -> Allocation:
    _require_manager(user)
    row = db.get(Allocation, allocation_id)
    if row is None:
        raise RecordNotFoundError('Allocation not found.')
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    _check_references(db, updates)
    for name, value in updates.items():
        setattr(row, name, value)
    db.commit()
    db.refresh(row)
    logger.info('allocation_updated allocation_id=%s fields=%s', row.id, ','.join(sorted(updates)))
    return row


def delete_allocation(db: Session, user: dict, allocation_id: int) -> None:
    _require_manager(user)
    row = db.get(Allocation, allocation_id)
    if row is None:
        raise RecordNotFoundError('Allocation not found.')
    db.delete(row)
    db.commit()
    logger.info('allocation_deleted allocation_id=%s', allocation_id)
