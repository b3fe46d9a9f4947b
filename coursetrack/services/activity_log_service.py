from __future__ import annotations

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from coursetrack.config import settings
from coursetrack.core.time_provider import TimeProvider, default_time_provider
from coursetrack.domain.week_resolver import resolve_current_week
from coursetrack.metrics import timed_service
from coursetrack.models import ACTIVITY_STATUS_FIELDS, ActivityLog, Allocation, Facilitator, Role, TaskStatus
from coursetrack.notifications.core.dispatcher import NotificationDispatcher
from coursetrack.notifications.models import AlertType
from coursetrack.schemas import ActivityLogCreateRequest, ActivityLogUpdateRequest
from coursetrack.services.errors import RecordConflictError, RecordNotFoundError
from coursetrack.services.read_model import list_manager_emails, to_allocation_context


logger = logging.getLogger(__name__)


class ActivityLogConflictError(RecordConflictError):
    pass


def facilitator_profile_for(db: Session, user: dict) -> Facilitator | None:
    return db.query(Facilitator).filter(Facilitator.user_id == int(user.get('user_id') or 0)).first()


def _role(user: dict) -> str:
    return str(user.get('role') or '').strip().lower()


def _assert_can_write(db: Session, user: dict, allocation: Allocation, action: str) -> None:
    role = _role(user)
    if role == Role.MANAGER.value:
        return
    if role != Role.FACILITATOR.value:
        raise PermissionError(f'Only facilitators or managers can {action} activity logs.')
    profile = facilitator_profile_for(db, user)
    if profile is None or allocation.facilitator_id != profile.id:
        raise PermissionError(f'You can only {action} activity logs for your assigned allocations.')


def validate_week_number(
    allocation: Allocation,
    week_number: int,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> None:
    max_weeks = settings.reminder_max_weeks
    if week_number < 1 or week_number > max_weeks:
        raise ValueError(f'week_number must be between 1 and {max_weeks}.')
    if settings.allow_future_week_logs:
        return
    current_week = resolve_current_week(allocation.trimester, allocation.year, time_provider.now())
    if current_week is not None and week_number > current_week:
        raise ValueError(f'Week {week_number} has not started yet (current week is {current_week}).')


def _load_allocation(db: Session, allocation_id: int) -> Allocation | None:
    return (
        db.query(Allocation)
        .options(
            joinedload(Allocation.facilitator).joinedload(Facilitator.user),
            joinedload(Allocation.module),
            joinedload(Allocation.course_class),
        )
        .filter(Allocation.id == allocation_id)
        .first()
    )


def _load_log(db: Session, log_id: int) -> ActivityLog:
    row = (
        db.query(ActivityLog)
        .options(
            joinedload(ActivityLog.allocation).joinedload(Allocation.facilitator).joinedload(Facilitator.user),
            joinedload(ActivityLog.allocation).joinedload(Allocation.module),
            joinedload(ActivityLog.allocation).joinedload(Allocation.course_class),
        )
        .filter(ActivityLog.id == log_id)
        .first()
    )
    if row is None:
        raise RecordNotFoundError('Activity log not found.')
    return row


def _alert_data(log_id: int, allocation: Allocation, week_number: int) -> dict:
    context = to_allocation_context(allocation)
    return {
        'log_id': log_id,
        'allocation_id': allocation.id,
        'week_number': week_number,
        'facilitator_email': context.facilitator_email,
        'facilitator_name': context.facilitator_name,
        'module_name': context.module_name,
        'class_name': context.class_name,
    }


def _notify_managers(db: Session, dispatcher: NotificationDispatcher, alert_type: AlertType, data: dict) -> None:
    dispatcher.dispatch_alert(list_manager_emails(db), alert_type, data)


@timed_service('activity_log_create')
def create_activity_log(
    db: Session,
    user: dict,
    payload: ActivityLogCreateRequest,
    dispatcher: NotificationDispatcher,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> ActivityLog:
    allocation = _load_allocation(db, payload.allocation_id)
    if allocation is None:
        raise RecordNotFoundError('Allocation not found.')
    _assert_can_write(db, user, allocation, 'create')
    validate_week_number(allocation, payload.week_number, time_provider=time_provider)

    existing = (
        db.query(ActivityLog.id)
        .filter(ActivityLog.allocation_id == allocation.id, ActivityLog.week_number == payload.week_number)
        .first()
    )
    if existing is not None:
        raise ActivityLogConflictError(
            f'Activity log for allocation {allocation.id} and week {payload.week_number} already exists. '
            'Please update it instead.'
        )

    now = time_provider.utc_now()
    row = ActivityLog(
        allocation_id=allocation.id,
        week_number=payload.week_number,
        attendance=list(payload.attendance or []),
        created_at=now,
        updated_at=now,
        **{name: getattr(payload, name).value for name in ACTIVITY_STATUS_FIELDS},
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('activity_log_created log_id=%s allocation_id=%s week=%s', row.id, allocation.id, row.week_number)

    _notify_managers(db, dispatcher, AlertType.log_submitted, _alert_data(row.id, allocation, row.week_number))
    return row


def list_activity_logs(
    db: Session,
    user: dict,
    *,
    allocation_id: int | None = None,
    week_number: int | None = None,
    status: TaskStatus | None = None,
    facilitator_id: int | None = None,
) -> list[ActivityLog]:
    query = db.query(ActivityLog).join(Allocation, ActivityLog.allocation_id == Allocation.id)
    role = _role(user)
    if role == Role.FACILITATOR.value:
        profile = facilitator_profile_for(db, user)
        if profile is None:
            raise RecordNotFoundError('Facilitator profile not found for this user.')
        query = query.filter(Allocation.facilitator_id == profile.id)
    elif role == Role.MANAGER.value:
        if facilitator_id:
            query = query.filter(Allocation.facilitator_id == facilitator_id)
    else:
        raise PermissionError('You do not have permission to view activity logs.')

    if allocation_id:
        query = query.filter(ActivityLog.allocation_id == allocation_id)
    if week_number:
        query = query.filter(ActivityLog.week_number == week_number)
    if status is not None:
        value = TaskStatus(status).value
        query = query.filter(or_(*[getattr(ActivityLog, name) == value for name in ACTIVITY_STATUS_FIELDS]))
    return query.order_by(ActivityLog.week_number.asc(), ActivityLog.created_at.desc()).all()


def get_activity_log(db: Session, user: dict, log_id: int) -> ActivityLog:
    row = _load_log(db, log_id)
    if _role(user) == Role.FACILITATOR.value:
        profile = facilitator_profile_for(db, user)
        if profile is None or row.allocation is None or row.allocation.facilitator_id != profile.id:
            raise PermissionError('You can only view your own activity logs.')
    elif _role(user) != Role.MANAGER.value:
        raise PermissionError('You do not have permission to view activity logs.')
    return row


@timed_service('activity_log_update')
def update_activity_log(
    db: Session,
    user: dict,
    log_id: int,
    payload: ActivityLogUpdateRequest,
    dispatcher: NotificationDispatcher,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> ActivityLog:
    row = _load_log(db, log_id)
    allocation = row.allocation
    _assert_can_write(db, user, allocation, 'update')

    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if 'week_number' in updates and updates['week_number'] != row.week_number:
        validate_week_number(allocation, updates['week_number'], time_provider=time_provider)
        clash = (
            db.query(ActivityLog.id)
            .filter(
                ActivityLog.allocation_id == allocation.id,
                ActivityLog.week_number == updates['week_number'],
                ActivityLog.id != row.id,
            )
            .first()
        )
        if clash is not None:
            raise ActivityLogConflictError(
                f'Activity log for allocation {allocation.id} and week {updates["week_number"]} already exists.'
            )

    for name, value in updates.items():
        setattr(row, name, value.value if isinstance(value, TaskStatus) else value)
    row.updated_at = time_provider.utc_now()
    db.commit()
    db.refresh(row)
    logger.info('activity_log_updated log_id=%s fields=%s', row.id, ','.join(sorted(updates)))

    data = _alert_data(row.id, allocation, row.week_number)
    data['updated_fields'] = sorted(updates)
    _notify_managers(db, dispatcher, AlertType.log_updated, data)
    return row


@timed_service('activity_log_delete')
def delete_activity_log(db: Session, user: dict, log_id: int, dispatcher: NotificationDispatcher) -> None:
    row = _load_log(db, log_id)
    allocation = row.allocation
    _assert_can_write(db, user, allocation, 'delete')

    data = _alert_data(row.id, allocation, row.week_number)
    db.delete(row)
    db.commit()
    logger.info('activity_log_deleted log_id=%s allocation_id=%s', data['log_id'], allocation.id)

    _notify_managers(db, dispatcher, AlertType.log_deleted, data)
