from datetime import date, datetime
from enum import Enum

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coursetrack.db import Base


class Role(str, Enum):
    MANAGER = 'manager'
    FACILITATOR = 'facilitator'
    STUDENT = 'student'


class TaskStatus(str, Enum):
    DONE = 'Done'
    PENDING = 'Pending'
    NOT_STARTED = 'Not Started'


class ModuleHalf(str, Enum):
    HT1 = 'HT1'
    HT2 = 'HT2'
    FT = 'FT'


class ModeName(str, Enum):
    ONLINE = 'Online'
    HYBRID = 'Hybrid'
    IN_PERSON = 'Inperson'


class NotificationJobStatus(str, Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    DEAD_LETTER = 'dead_letter'


ACTIVITY_STATUS_FIELDS = (
    'formative_one_grading',
    'formative_two_grading',
    'summative_grading',
    'course_moderation',
    'intranet_sync',
    'grade_book_status',
)


class User(Base):
    __tablename__ = 'users'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(180), default='')
    role: Mapped[str] = mapped_column(String(20), default=Role.STUDENT.value, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Facilitator(Base):
    __tablename__ = 'facilitators'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), unique=True, index=True)
    manager_id: Mapped[int | None] = mapped_column(ForeignKey('users.id'), nullable=True, index=True)
    qualification: Mapped[str] = mapped_column(String(120), default='')
    location: Mapped[str] = mapped_column(String(120), default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user: Mapped['User'] = relationship('User', foreign_keys=[user_id])
    allocations: Mapped[list['Allocation']] = relationship('Allocation', back_populates='facilitator')


class Module(Base):
    __tablename__ = 'modules'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(180), unique=True)
    half: Mapped[str] = mapped_column(String(5), default=ModuleHalf.FT.value)


class CourseClass(Base):
    __tablename__ = 'classes'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(40))
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    graduation_date: Mapped[date | None] = mapped_column(Date, nullable=True)


class Mode(Base):
    __tablename__ = 'modes'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(20), default=ModeName.ONLINE.value)


class Student(Base):
    __tablename__ = 'students'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(180))
    class_id: Mapped[int | None] = mapped_column(ForeignKey('classes.id'), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Allocation(Base):
    __tablename__ = 'allocations'
    __table_args__ = (
        Index('ix_allocations_trimester_year', 'trimester', 'year'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    module_id: Mapped[int] = mapped_column(ForeignKey('modules.id'), index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey('classes.id'), index=True)
    facilitator_id: Mapped[int] = mapped_column(ForeignKey('facilitators.id'), index=True)
    mode_id: Mapped[int] = mapped_column(ForeignKey('modes.id'), index=True)
    trimester: Mapped[str] = mapped_column(String(4))
    year: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    module: Mapped['Module'] = relationship('Module')
    course_class: Mapped['CourseClass'] = relationship('CourseClass')
    mode: Mapped['Mode'] = relationship('Mode')
    facilitator: Mapped['Facilitator'] = relationship('Facilitator', back_populates='allocations')
    activity_logs: Mapped[list['ActivityLog']] = relationship(
        'ActivityLog',
        back_populates='allocation',
        cascade='all, delete-orphan',
    )


class ActivityLog(Base):
    __tablename__ = 'activity_trackers'
    # (allocation_id, week_number) uniqueness is checked on create, not by the schema.
    __table_args__ = (
        Index('ix_activity_trackers_allocation_week', 'allocation_id', 'week_number'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    allocation_id: Mapped[int] = mapped_column(ForeignKey('allocations.id'), index=True)
    week_number: Mapped[int] = mapped_column(Integer)
    attendance: Mapped[list] = mapped_column(JSON, default=list)
    formative_one_grading: Mapped[str] = mapped_column(String(20), default=TaskStatus.NOT_STARTED.value)
    formative_two_grading: Mapped[str] = mapped_column(String(20), default=TaskStatus.NOT_STARTED.value)
    summative_grading: Mapped[str] = mapped_column(String(20), default=TaskStatus.NOT_STARTED.value)
    course_moderation: Mapped[str] = mapped_column(String(20), default=TaskStatus.NOT_STARTED.value)
    intranet_sync: Mapped[str] = mapped_column(String(20), default=TaskStatus.NOT_STARTED.value)
    grade_book_status: Mapped[str] = mapped_column(String(20), default=TaskStatus.NOT_STARTED.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    allocation: Mapped['Allocation'] = relationship('Allocation', back_populates='activity_logs')


class NotificationJob(Base):
    __tablename__ = 'notification_jobs'
    __table_args__ = (
        Index('ix_notification_jobs_status_next_attempt', 'status', 'next_attempt_at'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    kind: Mapped[str] = mapped_column(String(20), index=True)
    dedupe_key: Mapped[str] = mapped_column(String(512), unique=True, index=True)
    recipients: Mapped[list] = mapped_column(JSON, default=list)
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(20), default=NotificationJobStatus.PENDING.value, index=True)
    attempt_count: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    backoff_base_ms: Mapped[int] = mapped_column(Integer, default=1000)
    next_attempt_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    claimed_by: Mapped[str] = mapped_column(String(80), default='')
    last_error: Mapped[str] = mapped_column(Text, default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
