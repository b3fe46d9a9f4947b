from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from coursetrack.core.router_guard import require_auth_user, require_role
from coursetrack.db import get_db
from coursetrack.models import Role
from coursetrack.route_logging import EndpointNameRoute
from coursetrack.routers.http_errors import to_http
from coursetrack.schemas import StudentCreateRequest, StudentOut, StudentUpdateRequest
from coursetrack.services import student_service


router = APIRouter(prefix='/api/students', tags=['Students'], route_class=EndpointNameRoute)


def _out(row) -> dict:
    return StudentOut.model_validate(row).model_dump(mode='json')


@router.post('', status_code=201)
def create_student(payload: StudentCreateRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    require_role(user, {Role.MANAGER.value})
    try:
        row = student_service.create_student(db, payload)
    except (ValueError, LookupError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Student created successfully', 'student': _out(row)}


@router.get('')
def list_students(request: Request, class_id: int | None = Query(default=None), db: Session = Depends(get_db)):
    user = require_auth_user(request)
    try:
        rows = student_service.list_students(db, user, class_id=class_id)
    except PermissionError as exc:
        raise to_http(exc) from exc
    return {'count': len(rows), 'students': [_out(row) for row in rows]}


@router.get('/{student_id}')
def get_student(student_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    try:
        row = student_service.get_student(db, user, student_id)
    except (LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {'student': _out(row)}


@router.put('/{student_id}')
def update_student(student_id: int, payload: StudentUpdateRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    try:
        row = student_service.update_student(db, user, student_id, payload)
    except (ValueError, LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Student updated successfully', 'student': _out(row)}


@router.delete('/{student_id}')
def delete_student(student_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    require_role(user, {Role.MANAGER.value})
    try:
        student_service.delete_student(db, student_id)
    except LookupError as exc:
        raise to_http(exc) from exc
    return {'message': 'Student deleted successfully.'}
