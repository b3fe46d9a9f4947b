from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from coursetrack.models import Allocation, CourseClass, Module, Student
from coursetrack.schemas import ClassCreateRequest, ClassUpdateRequest, ModuleCreateRequest, ModuleUpdateRequest
from coursetrack.services.errors import RecordConflictError, RecordNotFoundError


logger = logging.getLogger(__name__)


def _normalize_name(value: str | None) -> str:
    return (value or '').strip()


def _name_taken(db: Session, model, name: str, *, exclude_id: int | None = None) -> bool:
    query = db.query(model.id).filter(func.lower(model.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    return query.first() is not None


def _assert_unallocated(db: Session, column, row_id: int, label: str) -> None:
    if db.query(Allocation.id).filter(column == row_id).first() is not None:
        raise RecordConflictError(f'{label} is used by course allocations; remove them first.')


def create_module(db: Session, payload: ModuleCreateRequest) -> Module:
    name = _normalize_name(payload.name)
    if not name:
        raise ValueError('Module name is required.')
    if _name_taken(db, Module, name):
        raise RecordConflictError('Module with this name already exists.')
    row = Module(name=name, half=payload.half.value)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('module_created module_id=%s half=%s', row.id, row.half)
    return row


def list_modules(db: Session) -> list[Module]:
    return db.query(Module).order_by(Module.name.asc()).all()


def get_module(db: Session, module_id: int) -> Module:
    row = db.get(Module, module_id)
    if row is None:
        raise RecordNotFoundError('Module not found.')
    return row


def update_module(db: Session, module_id: int, payload: ModuleUpdateRequest) -> Module:
    row = get_module(db, module_id)
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if 'name' in updates:
        name = _normalize_name(updates['name'])
        if not name:
            raise ValueError('Module name is required.')
        if _name_taken(db, Module, name, exclude_id=row.id):
            raise RecordConflictError('Module with this name already exists.')
        row.name = name
    if 'half' in updates:
        row.half = payload.half.value
    db.commit()
    db.refresh(row)
    logger.info('module_updated module_id=%s fields=%s', row.id, ','.join(sorted(updates)))
    return row


def delete_module(db: Session, module_id: int) -> None:
    row = get_module(db, module_id)
    _assert_unallocated(db, Allocation.module_id, row.id, 'Module')
    db.delete(row)
    db.commit()
    logger.info('module_deleted module_id=%s', module_id)


def _check_dates(start_date, graduation_date) -> None:
    if start_date and graduation_date and graduation_date < start_date:
        raise ValueError('graduation_date must not be before start_date.')


def create_class(db: Session, payload: ClassCreateRequest) -> CourseClass:
    name = _normalize_name(payload.name)
    if not name:
        raise ValueError('Class name is required.')
    _check_dates(payload.start_date, payload.graduation_date)
    if _name_taken(db, CourseClass, name):
        raise RecordConflictError('Class with this name already exists.')
    row = CourseClass(name=name, start_date=payload.start_date, graduation_date=payload.graduation_date)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('class_created class_id=%s name=%s', row.id, row.name)
    return row


def list_classes(db: Session) -> list[CourseClass]:
    return db.query(CourseClass).order_by(CourseClass.name.asc()).all()


def get_class(db: Session, class_id: int) -> CourseClass:
    row = db.get(CourseClass, class_id)
    if row is None:
        raise RecordNotFoundError('Class not found.')
    return row


def update_class(db: Session, class_id: int, payload: ClassUpdateRequest) -> CourseClass:
    row = get_class(db, class_id)
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if 'name' in updates:
        name = _normalize_name(updates['name'])
        if not name:
            raise ValueError('Class name is required.')
        if _name_taken(db, CourseClass, name, exclude_id=row.id):
            raise RecordConflictError('Class with this name already exists.')
        updates['name'] = name
    _check_dates(updates.get('start_date', row.start_date), updates.get('graduation_date', row.graduation_date))
    for field, value in updates.items():
        setattr(row, field, value)
    db.commit()
    db.refresh(row)
    logger.info('class_updated class_id=%s fields=%s', row.id, ','.join(sorted(updates)))
    return row


def delete_class(db: Session, class_id: int) -> None:
    row = get_class(db, class_id)
    _assert_unallocated(db, Allocation.class_id, row.id, 'Class')
    db.query(Student).filter(Student.class_id == row.id).update({Student.class_id: None}, synchronize_session=False)
    db.delete(row)
    db.commit()
    logger.info('class_deleted class_id=%s', class_id)
