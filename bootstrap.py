import logging

from coursetrack.db import Base, SessionLocal, engine
from coursetrack.services.bootstrap_service import run_bootstrap


logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s %(message)s')
logger = logging.getLogger('bootstrap')


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        result = run_bootstrap(db)
        logger.info('Bootstrap executed: %s', result)
    finally:
        db.close()


if __name__ == '__main__':
    main()
