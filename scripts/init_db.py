from pathlib import Path
import sys


# Ensure imports work when running this file directly: `python scripts/init_db.py`.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from coursetrack.core.security import issue_token
from coursetrack.core.time_provider import default_time_provider
from coursetrack.db import Base, SessionLocal, engine
from coursetrack.domain.week_resolver import Trimester
from coursetrack.models import Allocation, CourseClass, Facilitator, Mode, ModeName, Module, Role, User
from coursetrack.services.bootstrap_service import run_bootstrap


Base.metadata.create_all(bind=engine)

db = SessionLocal()
try:
    run_bootstrap(db)
    if not db.query(User).first():
        manager = User(email='manager@example.com', name='Alice Manager', role=Role.MANAGER.value)
        facilitator_user = User(email='facilitator@example.com', name='Bob Facilitator', role=Role.FACILITATOR.value)
        db.add_all([manager, facilitator_user])
        db.commit()

        facilitator = Facilitator(user_id=facilitator_user.id, manager_id=manager.id, qualification='Masters', location='Kigali')
        module = Module(name='Intro to Programming', half='HT1')
        course_class = CourseClass(name='J2025')
        db.add_all([facilitator, module, course_class])
        db.commit()

        mode = db.query(Mode).filter(Mode.name == ModeName.ONLINE.value).first()
        today = default_time_provider.today()
        trimester = Trimester.T1 if today.month < 5 else Trimester.T2 if today.month < 9 else Trimester.T3
        db.add(
            Allocation(
                module_id=module.id,
                class_id=course_class.id,
                facilitator_id=facilitator.id,
                mode_id=mode.id,
                trimester=trimester.value,
                year=today.year,
            )
        )
        db.commit()

        print('Seeded demo users, module, class and allocation.')
        print('Manager token:', issue_token(manager.id, Role.MANAGER.value, manager.email))
        print('Facilitator token:', issue_token(facilitator_user.id, Role.FACILITATOR.value, facilitator_user.email))
    else:
        print('Database already has users; nothing seeded.')
finally:
    db.close()
