from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from coursetrack.app_state import get_context
from coursetrack.core.router_guard import require_auth_user
from coursetrack.db import get_db
from coursetrack.models import TaskStatus
from coursetrack.notifications.core.dispatcher import NotificationDispatcher
from coursetrack.route_logging import EndpointNameRoute
from coursetrack.routers.http_errors import to_http
from coursetrack.schemas import ActivityLogCreateRequest, ActivityLogOut, ActivityLogUpdateRequest
from coursetrack.services import activity_log_service


router = APIRouter(prefix='/api/activity-tracker', tags=['Activity Tracker'], route_class=EndpointNameRoute)


def get_dispatcher() -> NotificationDispatcher:
    return get_context().dispatcher


@router.post('', status_code=201)
def create_activity_log(
    payload: ActivityLogCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    user = require_auth_user(request)
    try:
        row = activity_log_service.create_activity_log(db, user, payload, dispatcher)
    except (ValueError, LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {
        'message': 'Activity log created successfully',
        'activity_log': ActivityLogOut.model_validate(row).model_dump(mode='json'),
    }


@router.get('')
def list_activity_logs(
    request: Request,
    allocation_id: int | None = Query(default=None),
    week_number: int | None = Query(default=None),
    status: TaskStatus | None = Query(default=None),
    facilitator_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    user = require_auth_user(request)
    try:
        rows = activity_log_service.list_activity_logs(
            db,
            user,
            allocation_id=allocation_id,
            week_number=week_number,
            status=status,
            facilitator_id=facilitator_id,
        )
    except (ValueError, LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {
        'message': 'Activity logs fetched successfully',
        'count': len(rows),
        'activity_logs': [ActivityLogOut.model_validate(row).model_dump(mode='json') for row in rows],
    }


@router.get('/{log_id}')
def get_activity_log(log_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request)
    try:
        row = activity_log_service.get_activity_log(db, user, log_id)
    except (ValueError, LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {'activity_log': ActivityLogOut.model_validate(row).model_dump(mode='json')}


@router.put('/{log_id}')
def update_activity_log(
    log_id: int,
    payload: ActivityLogUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    user = require_auth_user(request)
    try:
        row = activity_log_service.update_activity_log(db, user, log_id, payload, dispatcher)
    except (ValueError, LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {
        'message': 'Activity log updated successfully',
        'activity_log': ActivityLogOut.model_validate(row).model_dump(mode='json'),
    }


@router.delete('/{log_id}')
def delete_activity_log(
    log_id: int,
    request: Request,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    user = require_auth_user(request)
    try:
        activity_log_service.delete_activity_log(db, user, log_id, dispatcher)
    except (ValueError, LookupError, PermissionError) as exc:
        raise to_http(exc) from exc
    return {'message': 'Activity log deleted successfully.'}
