from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from coursetrack.models import CourseClass, Role, Student
from coursetrack.schemas import StudentCreateRequest, StudentUpdateRequest
from coursetrack.services.errors import RecordConflictError, RecordNotFoundError
from coursetrack.services.facilitator_service import ensure_user


logger = logging.getLogger(__name__)


def _role(user: dict) -> str:
    return str(user.get('role') or '').strip().lower()


def _user_id(user: dict) -> int:
    return int(user.get('user_id') or 0)


def _check_class(db: Session, class_id: int | None) -> None:
    if class_id is not None and db.get(CourseClass, class_id) is None:
        raise RecordNotFoundError(f'Class {class_id} not found.')


def create_student(db: Session, payload: StudentCreateRequest) -> Student:
    _check_class(db, payload.class_id)
    user = ensure_user(db, payload.email, payload.name, Role.STUDENT)
    if db.query(Student.id).filter(Student.user_id == user.id).first() is not None:
        db.rollback()
        raise RecordConflictError('Student record already exists for this user.')
    row = Student(user_id=user.id, name=payload.name.strip(), class_id=payload.class_id)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('student_created student_id=%s class_id=%s', row.id, row.class_id)
    return row


def list_students(db: Session, user: dict, *, class_id: int | None = None) -> list[Student]:
    role = _role(user)
    query = db.query(Student)
    if role == Role.STUDENT.value:
        query = query.filter(Student.user_id == _user_id(user))
    elif role != Role.MANAGER.value:
        raise PermissionError('You do not have permission to view students.')
    if class_id is not None:
        query = query.filter(Student.class_id == class_id)
    return query.order_by(Student.name.asc(), Student.id.asc()).all()


def _load(db: Session, user: dict, student_id: int, action: str) -> Student:
    row = db.get(Student, student_id)
    if row is None:
        raise RecordNotFoundError('Student not found.')
    role = _role(user)
    if role == Role.MANAGER.value:
        return row
    if role == Role.STUDENT.value and row.user_id == _user_id(user):
        return row
    raise PermissionError(f'You can only {action} your own student record.')


def get_student(db: Session, user: dict, student_id: int) -> Student:
    return _load(db, user, student_id, 'view')


def update_student(db: Session, user: dict, student_id: int, payload: StudentUpdateRequest) -> Student:
    row = _load(db, user, student_id, 'update')
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if 'class_id' in updates:
        if _role(user) != Role.MANAGER.value:
            raise PermissionError('Only managers can move a student between classes.')
        _check_class(db, updates['class_id'])
        row.class_id = updates['class_id']
    if 'name' in updates:
        row.name = updates['name'].strip()
    db.commit()
    db.refresh(row)
    logger.info('student_updated student_id=%s fields=%s', row.id, ','.join(sorted(updates)))
    return row


def delete_student(db: Session, student_id: int) -> None:
    row = db.get(Student, student_id)
    if row is None:
        raise RecordNotFoundError('Student not found.')
    db.delete(row)
    db.commit()
    logger.info('student_deleted student_id=%s', student_id)
