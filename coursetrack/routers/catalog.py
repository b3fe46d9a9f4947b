from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from coursetrack.core.router_guard import require_auth_user, require_role
from coursetrack.db import get_db
from coursetrack.models import Role
from coursetrack.route_logging import EndpointNameRoute
from coursetrack.routers.http_errors import to_http
from coursetrack.schemas import (
    ClassCreateRequest,
    ClassOut,
    ClassUpdateRequest,
    ModuleCreateRequest,
    ModuleOut,
    ModuleUpdateRequest,
)
from coursetrack.services import catalog_service


router = APIRouter(prefix='/api', tags=['Catalog'], route_class=EndpointNameRoute)


def _require_manager(request: Request) -> dict:
    user = require_auth_user(request)
    require_role(user, {Role.MANAGER.value})
    return user


def _module(row) -> dict:
    return ModuleOut.model_validate(row).model_dump(mode='json')


def _class(row) -> dict:
    return ClassOut.model_validate(row).model_dump(mode='json')


@router.post('/modules', status_code=201)
def create_module(payload: ModuleCreateRequest, request: Request, db: Session = Depends(get_db)):
    _require_manager(request)
    try:
        row = catalog_service.create_module(db, payload)
    except (ValueError, LookupError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Module created successfully', 'module': _module(row)}


@router.get('/modules')
def list_modules(request: Request, db: Session = Depends(get_db)):
    require_auth_user(request)
    rows = catalog_service.list_modules(db)
    return {'count': len(rows), 'modules': [_module(row) for row in rows]}


@router.get('/modules/{module_id}')
def get_module(module_id: int, request: Request, db: Session = Depends(get_db)):
    require_auth_user(request)
    try:
        row = catalog_service.get_module(db, module_id)
    except LookupError as exc:
        raise to_http(exc) from exc
    return {'module': _module(row)}


@router.put('/modules/{module_id}')
def update_module(module_id: int, payload: ModuleUpdateRequest, request: Request, db: Session = Depends(get_db)):
    _require_manager(request)
    try:
        row = catalog_service.update_module(db, module_id, payload)
    except (ValueError, LookupError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Module updated successfully', 'module': _module(row)}


@router.delete('/modules/{module_id}')
def delete_module(module_id: int, request: Request, db: Session = Depends(get_db)):
    _require_manager(request)
    try:
        catalog_service.delete_module(db, module_id)
    except (ValueError, LookupError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Module deleted successfully.'}


@router.post('/classes', status_code=201)
def create_class(payload: ClassCreateRequest, request: Request, db: Session = Depends(get_db)):
    _require_manager(request)
    try:
        row = catalog_service.create_class(db, payload)
    except (ValueError, LookupError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Class created successfully', 'class': _class(row)}


@router.get('/classes')
def list_classes(request: Request, db: Session = Depends(get_db)):
    require_auth_user(request)
    rows = catalog_service.list_classes(db)
    return {'count': len(rows), 'classes': [_class(row) for row in rows]}


@router.get('/classes/{class_id}')
def get_class(class_id: int, request: Request, db: Session = Depends(get_db)):
    require_auth_user(request)
    try:
        row = catalog_service.get_class(db, class_id)
    except LookupError as exc:
        raise to_http(exc) from exc
    return {'class': _class(row)}


@router.put('/classes/{class_id}')
def update_class(class_id: int, payload: ClassUpdateRequest, request: Request, db: Session = Depends(get_db)):
    _require_manager(request)
    try:
        row = catalog_service.update_class(db, class_id, payload)
    except (ValueError, LookupError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Class updated successfully', 'class': _class(row)}


@router.delete('/classes/{class_id}')
def delete_class(class_id: int, request: Request, db: Session = Depends(get_db)):
    _require_manager(request)
    try:
        catalog_service.delete_class(db, class_id)
    except (ValueError, LookupError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Class deleted successfully.'}
