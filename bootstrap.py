import logging

from academy.db import Base, SessionLocal, engine
from academy.services.bootstrap_service import run_bootstrap


logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s %(message)s')
logger = logging.getLogger('bootstrap')


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        result = run_bootstrap(db)
        logger.info('Bootstrap executed: roles_repaired=%s admin=%s', result['roles_repaired'], result['admin'])
    finally:
        db.close()


if __name__ == '__main__':
    main()
