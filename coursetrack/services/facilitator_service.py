from __future__ import annotations

import logging

from sqlalchemy.orm import Session, joinedload

from coursetrack.models import Allocation, Facilitator, Role, User
from coursetrack.schemas import FacilitatorCreateRequest, FacilitatorOut, FacilitatorUpdateRequest
from coursetrack.services.errors import RecordConflictError, RecordNotFoundError


logger = logging.getLogger(__name__)

_PROFILE_FIELDS = ('qualification', 'location')


def _role(user: dict) -> str:
    return str(user.get('role') or '').strip().lower()


def to_out(row: Facilitator) -> FacilitatorOut:
    return FacilitatorOut(
        id=row.id,
        user_id=row.user_id,
        email=row.user.email if row.user else '',
        name=row.user.name if row.user else '',
        qualification=row.qualification or '',
        location=row.location or '',
        manager_id=row.manager_id,
    )


def _check_manager(db: Session, manager_id: int | None) -> None:
    if manager_id is None:
        return
    manager = db.get(User, manager_id)
    if manager is None or manager.role != Role.MANAGER.value:
        raise RecordNotFoundError(f'Manager {manager_id} not found.')


def ensure_user(db: Session, email: str, name: str, role: Role) -> User:
    """Existing account for ``email`` or a new one with ``role``; role clashes are conflicts."""
    clean_email = (email or '').strip().lower()
    if '@' not in clean_email:
        raise ValueError('A valid email is required.')
    user = db.query(User).filter(User.email == clean_email).first()
    if user is None:
        user = User(email=clean_email, name=(name or '').strip(), role=role.value)
        db.add(user)
        db.flush()
        return user
    if user.role != role.value:
        raise RecordConflictError(f'User {clean_email} already exists with role {user.role}.')
    return user


def create_facilitator(db: Session, payload: FacilitatorCreateRequest) -> Facilitator:
    _check_manager(db, payload.manager_id)
    user = ensure_user(db, payload.email, payload.name, Role.FACILITATOR)
    if db.query(Facilitator.id).filter(Facilitator.user_id == user.id).first() is not None:
        db.rollback()
        raise RecordConflictError('Facilitator profile already exists for this user.')
    row = Facilitator(
        user_id=user.id,
        manager_id=payload.manager_id,
        qualification=payload.qualification.strip(),
        location=payload.location.strip(),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('facilitator_created facilitator_id=%s user_id=%s', row.id, user.id)
    return row


def list_facilitators(db: Session, user: dict) -> list[Facilitator]:
    if _role(user) not in {role.value for role in Role}:
        raise PermissionError('You do not have permission to view facilitators.')
    return (
        db.query(Facilitator)
        .join(User, Facilitator.user_id == User.id)
        .options(joinedload(Facilitator.user))
        .order_by(User.name.asc(), Facilitator.id.asc())
        .all()
    )


def _load(db: Session, facilitator_id: int) -> Facilitator:
    row = db.query(Facilitator).options(joinedload(Facilitator.user)).filter(Facilitator.id == facilitator_id).first()
    if row is None:
        raise RecordNotFoundError('Facilitator not found.')
    return row


def _assert_owner_or_manager(user: dict, row: Facilitator, action: str) -> None:
    role = _role(user)
    if role == Role.MANAGER.value:
        return
    if role == Role.FACILITATOR.value and row.user_id == int(user.get('user_id') or 0):
        return
    raise PermissionError(f'You can only {action} your own facilitator profile.')


def get_facilitator(db: Session, user: dict, facilitator_id: int) -> Facilitator:
    row = _load(db, facilitator_id)
    _assert_owner_or_manager(user, row, 'view')
    return row


def update_facilitator(db: Session, user: dict, facilitator_id: int, payload: FacilitatorUpdateRequest) -> Facilitator:
    row = _load(db, facilitator_id)
    _assert_owner_or_manager(user, row, 'update')
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if 'manager_id' in updates:
        if _role(user) != Role.MANAGER.value:
            raise PermissionError('Only managers can reassign a facilitator.')
        _check_manager(db, updates['manager_id'])
        row.manager_id = updates['manager_id']
    if 'name' in updates:
        row.user.name = updates['name'].strip()
    for field in _PROFILE_FIELDS:
        if field in updates:
            setattr(row, field, updates[field].strip())
    db.commit()
    db.refresh(row)
    logger.info('facilitator_updated facilitator_id=%s fields=%s', row.id, ','.join(sorted(updates)))
    return row


def delete_facilitator(db: Session, facilitator_id: int) -> None:
    row = _load(db, facilitator_id)
    if db.query(Allocation.id).filter(Allocation.facilitator_id == row.id).first() is not None:
        raise RecordConflictError('Facilitator has course allocations; remove them first.')
    db.delete(row)
    db.commit()
    logger.info('facilitator_deleted facilitator_id=%s', facilitator_id)
