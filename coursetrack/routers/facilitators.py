from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from coursetrack.core.router_guard import require_auth_user, require_role
from coursetrack.db import get_db
from coursetrack.models import Role
from coursetrack.route_logging import EndpointNameRoute
from coursetrack.routers.http_errors import to_http
from coursetrack.schemas import FacilitatorCreateRequest, FacilitatorUpdateRequest
from coursetrack.services import facilitator_service


router = APIRouter(prefix='/api/facilitators', tags=['Facilitators'], route_class=EndpointNameRoute)


def _out(row) -> dict:
    return facilitator_service.to_out(row).model_dump(mode='json')


@router.post('', status_code=201)
def create_facilitator(payload: FacilitatorCreateRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    require_role(user, {Role.MANAGER.value})
    try:
        row = facilitator_service.create_facilitator(db, payload)
    except (ValueError, LookupError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Facilitator created successfully', 'facilitator': _out(row)}


@router.get('')
def list_facilitators(request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    try:
        rows = facilitator_service.list_facilitators(db, user)
    except PermissionError as exc:
        raise to_http(exc) from exc
    return {'count': len(rows), 'facilitators': [_out(row) for row in rows]}


@router.get('/{facilitator_id}')
def get_facilitator(facilitator_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    require_role(user, {Role.MANAGER.value, Role.FACILITATOR.value})
    try:
        row = facilitator_service.get_facilitator(db, user, facilitator_id)
    except (LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {'facilitator': _out(row)}


@router.put('/{facilitator_id}')
def update_facilitator(facilitator_id: int, payload: FacilitatorUpdateRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    require_role(user, {Role.MANAGER.value, Role.FACILITATOR.value})
    try:
        row = facilitator_service.update_facilitator(db, user, facilitator_id, payload)
    except (ValueError, LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Facilitator updated successfully', 'facilitator': _out(row)}


@router.delete('/{facilitator_id}')
def delete_facilitator(facilitator_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    require_role(user, {Role.MANAGER.value})
    try:
        facilitator_service.delete_facilitator(db, facilitator_id)
    except (ValueError, LookupError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Facilitator deleted successfully.'}
