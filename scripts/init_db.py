from datetime import time, timedelta
from pathlib import Path
import sys


# Ensure imports work when running this file directly: `python scripts/init_db.py`.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from academy import models  # noqa: E402,F401
from academy.core.time_provider import default_time_provider  # noqa: E402
from academy.db import Base, SessionLocal, engine  # noqa: E402
from academy.models import Branch, PackageType, Role  # noqa: E402
from academy.services.access_scope_service import ActorContext  # noqa: E402
from academy.services.branch_service import create_branch  # noqa: E402
from academy.services.provisioning_service import create_coach_account  # noqa: E402
from academy.services.student_service import create_student  # noqa: E402
from academy.services.training_session_service import create_session  # noqa: E402


Base.metadata.create_all(bind=engine)

db = SessionLocal()
try:
    if not db.query(Branch).first():
        makati = create_branch(db, name='Makati Court', address='Ayala Ave', city='Makati')
        create_branch(db, name='Quezon City Gym', address='Katipunan Ave', city='Quezon City')

        admin = create_coach_account(
            db,
            name='Academy Admin',
            email='admin@academy.local',
            password='AdminPass!1',
            role=Role.ADMIN.value,
        )
        camp_coach = create_coach_account(
            db,
            name='Coach Rivera',
            email='rivera@academy.local',
            package_type=PackageType.CAMP_TRAINING.value,
            availability=['monday', 'wednesday', 'friday'],
        )
        pt_coach = create_coach_account(
            db,
            name='Coach Santos',
            email='santos@academy.local',
            package_type=PackageType.PERSONAL_TRAINING.value,
            availability=['tuesday', 'thursday'],
        )

        campers = [
            create_student(
                db,
                name=name,
                email=f'{name.lower()}@example.com',
                sessions=12,
                remaining_sessions=12,
                package_type=PackageType.CAMP_TRAINING.value,
                coach_id=camp_coach.id,
            )
            for name in ('Miguel', 'Andrea', 'Paolo')
        ]
        trainee = create_student(
            db,
            name='Bea',
            email='bea@example.com',
            sessions=8,
            remaining_sessions=8,
            package_type=PackageType.PERSONAL_TRAINING.value,
            coach_id=pt_coach.id,
        )

        actor = ActorContext(identity_id=admin.auth_id, email=admin.email, role=Role.ADMIN.value, coach_id=admin.id)
        tomorrow = default_time_provider.today() + timedelta(days=1)
        create_session(
            db,
            actor,
            session_date=tomorrow,
            start_time=time(9, 0),
            end_time=time(11, 0),
            branch_id=makati.id,
            coach_id=camp_coach.id,
            package_type=PackageType.CAMP_TRAINING.value,
            student_ids=[row.id for row in campers],
        )
        create_session(
            db,
            actor,
            session_date=tomorrow,
            start_time=time(14, 0),
            end_time=time(15, 0),
            branch_id=makati.id,
            coach_id=pt_coach.id,
            package_type=PackageType.PERSONAL_TRAINING.value,
            student_ids=[trainee.id],
        )
finally:
    db.close()

print('DB initialized with sample data.')
