from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Query, Request

from coursetrack.app_state import get_context
from coursetrack.core.router_guard import require_auth_user, require_role
from coursetrack.domain.jobs import missing_activity_logs
from coursetrack.metrics import event_counts
from coursetrack.models import NotificationJobStatus, Role
from coursetrack.route_logging import EndpointNameRoute


router = APIRouter(prefix='/api/notifications', tags=['Notifications'], route_class=EndpointNameRoute)
logger = logging.getLogger(__name__)


def _require_manager(request: Request) -> dict:
    user = require_auth_user(request)
    require_role(user, {Role.MANAGER.value})
    return user


@router.get('/jobs')
def list_jobs(
    request: Request,
    status: NotificationJobStatus | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
):
    _require_manager(request)
    jobs = get_context().queue.list_jobs(status, limit=limit)
    return {'count': len(jobs), 'jobs': [job.model_dump(mode='json') for job in jobs]}


@router.post('/jobs/{job_id}/requeue')
def requeue_job(job_id: int, request: Request):
    user = _require_manager(request)
    job = get_context().queue.requeue(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail='Dead-letter job not found')
    logger.info('notification_requeue_requested job_id=%s by_user=%s', job_id, user.get('user_id'))
    return {'job': job.model_dump(mode='json')}


@router.get('/stats')
def queue_stats(request: Request):
    _require_manager(request)
    return {'stats': get_context().queue.stats(), 'events': event_counts()}


@router.post('/scan')
async def run_scan(request: Request):
    user = _require_manager(request)
    logger.info('missing_logs_scan_requested by_user=%s', user.get('user_id'))
    summary = await asyncio.to_thread(get_context().run_scan)
    if summary is None:
        raise HTTPException(status_code=409, detail='A scan is already running')
    return {'summary': summary}


@router.get('/scan/last')
def last_scan(request: Request):
    _require_manager(request)
    return {'summary': missing_activity_logs.last_summary()}
