import tempfile
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from coursetrack.db import Base
from coursetrack.models import (
    ActivityLog,
    Allocation,
    CourseClass,
    Facilitator,
    Mode,
    Module,
    NotificationJob,
    Role,
    Student,
    TaskStatus,
    User,
)


KIGALI = ZoneInfo('Africa/Kigali')


def kigali(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=KIGALI)


class TempDatabase:
    def __init__(self, name: str) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tmpdir.name) / f'{name}.db'
        self.engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        Base.metadata.create_all(bind=self.engine)

    def reset(self) -> None:
        db = self.session_factory()
        try:
            for table in (NotificationJob, ActivityLog, Allocation, Student, Facilitator, Module, CourseClass, Mode, User):
                db.query(table).delete()
            db.commit()
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()
        self._tmpdir.cleanup()


def seed_user(db, email, *, role=Role.FACILITATOR.value, name='') -> User:
    user = User(email=email, name=name or email.split('@')[0].title(), role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def seed_allocation(
    db,
    *,
    facilitator_email='fac@example.com',
    facilitator_name='Fiona Facilitator',
    module_name='Web Dev',
    class_name='J2025',
    trimester='T1',
    year=2025,
    facilitator=None,
) -> Allocation:
    if facilitator is None:
        user = seed_user(db, facilitator_email, name=facilitator_name)
        facilitator = Facilitator(user_id=user.id)
        db.add(facilitator)
        db.commit()
        db.refresh(facilitator)
    module = db.query(Module).filter(Module.name == module_name).first()
    if module is None:
        module = Module(name=module_name, half='HT1')
        db.add(module)
    course_class = CourseClass(name=class_name)
    mode = Mode(name='Online')
    db.add_all([course_class, mode])
    db.commit()
    allocation = Allocation(
        module_id=module.id,
        class_id=course_class.id,
        facilitator_id=facilitator.id,
        mode_id=mode.id,
        trimester=trimester,
        year=year,
    )
    db.add(allocation)
    db.commit()
    db.refresh(allocation)
    return allocation


def seed_log(db, allocation_id, week_number, *, status=TaskStatus.DONE.value, **overrides) -> ActivityLog:
    values = {
        'formative_one_grading': status,
        'formative_two_grading': status,
        'summative_grading': status,
        'course_moderation': status,
        'intranet_sync': status,
        'grade_book_status': status,
    }
    values.update(overrides)
    log = ActivityLog(allocation_id=allocation_id, week_number=week_number, attendance=[], **values)
    db.add(log)
    db.commit()
    db.refresh(log)
    return log
