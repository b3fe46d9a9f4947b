import logging

from sqlalchemy.orm import Session

from coursetrack.config import settings
from coursetrack.models import Mode, ModeName, Role, User


logger = logging.getLogger(__name__)


def _seed_modes(db: Session) -> dict:
    existing = {name for (name,) in db.query(Mode.name).all()}
    missing = [mode.value for mode in ModeName if mode.value not in existing]
    for name in missing:
        db.add(Mode(name=name))
    if missing:
        db.commit()
        logger.info('delivery_modes_seeded names=%s', ','.join(missing))
    return {'seeded': missing}


def _ensure_bootstrap_manager(db: Session) -> dict:
    email = (settings.bootstrap_manager_email or '').strip().lower()
    if not email:
        return {'ensured': False, 'reason': 'no_bootstrap_manager_email'}
    row = db.query(User).filter(User.email == email).first()
    if row is None:
        row = User(email=email, name=settings.bootstrap_manager_name, role=Role.MANAGER.value)
        db.add(row)
        db.commit()
        logger.warning('bootstrap_manager_created email=%s', email)
        return {'ensured': True, 'created': True}
    if row.role != Role.MANAGER.value:
        logger.warning('bootstrap_manager_role_mismatch email=%s role=%s', email, row.role)
        return {'ensured': False, 'reason': 'role_mismatch'}
    return {'ensured': True, 'created': False}


def run_bootstrap(db: Session) -> dict:
    return {
        'modes': _seed_modes(db),
        'manager': _ensure_bootstrap_manager(db),
    }
