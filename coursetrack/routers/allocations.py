from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from coursetrack.core.router_guard import require_auth_user
from coursetrack.db import get_db
from coursetrack.domain.week_resolver import Trimester
from coursetrack.route_logging import EndpointNameRoute
from coursetrack.routers.http_errors import to_http
from coursetrack.schemas import AllocationCreateRequest, AllocationOut, AllocationUpdateRequest
from coursetrack.services import allocation_service


router = APIRouter(prefix='/api/allocations', tags=['Allocations'], route_class=EndpointNameRoute)


@router.post('', status_code=201)
def create_allocation(payload: AllocationCreateRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    try:
        row = allocation_service.create_allocation(db, user, payload)
    except (ValueError, LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Allocation created successfully', 'allocation': AllocationOut.model_validate(row).model_dump(mode='json')}


@router.get('')
def list_allocations(
    request: Request,
    trimester: str | None = Query(default=None),
    year: int | None = Query(default=None),
    facilitator_id: int | None = Query(default=None),
    module_id: int | None = Query(default=None),
    class_id: int | None = Query(default=None),
    mode_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    user = require_auth_user(request)
    trimester_label = None
    if trimester:
        parsed = Trimester.parse(trimester)
        if parsed is None:
            raise HTTPException(status_code=400, detail='trimester must be one of T1, T2, T3')
        trimester_label = parsed.value
    try:
        rows = allocation_service.list_allocations(
            db,
            user,
            trimester=trimester_label,
            year=year,
            facilitator_id=facilitator_id,
            module_id=module_id,
            class_id=class_id,
            mode_id=mode_id,
        )
    except (ValueError, LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {
        'count': len(rows),
        'allocations': [AllocationOut.model_validate(row).model_dump(mode='json') for row in rows],
    }


@router.get('/{allocation_id}')
def get_allocation(allocation_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    try:
        row = allocation_service.get_allocation(db, user, allocation_id)
    except (ValueError, LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {'allocation': AllocationOut.model_validate(row).model_dump(mode='json')}


@router.put('/{allocation_id}')
def update_allocation(allocation_id: int, payload: AllocationUpdateRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    try:
        row = allocation_service.update_allocation(db, user, allocation_id, payload)
    except (ValueError, LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Allocation updated successfully', 'allocation': AllocationOut.model_validate(row).model_dump(mode='json')}


@router.delete('/{allocation_id}')
def delete_allocation(allocation_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    try:
        allocation_service.delete_allocation(db, user, allocation_id)
    except (ValueError, LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Allocation deleted successfully.'}
