from __future__ import annotations

from sqlalchemy.orm import Session

from academy.models import Coach, PackageType, Student


def package_types_for_coach(coach_package_type: str | None) -> list[str]:
    """Package types a coach may run; camp-specialised coaches also run personal training."""
    if coach_package_type == PackageType.CAMP_TRAINING.value:
        return [PackageType.CAMP_TRAINING.value, PackageType.PERSONAL_TRAINING.value]
    if coach_package_type == PackageType.PERSONAL_TRAINING.value:
        return [PackageType.PERSONAL_TRAINING.value]
    return []


def is_coach_eligible(coach_package_type: str | None, session_package_type: str | None) -> bool:
    if not session_package_type:
        return True
    return session_package_type in package_types_for_coach(coach_package_type)


def list_eligible_coaches(db: Session, package_type: str | None = None) -> list[Coach]:
    query = db.query(Coach)
    if package_type == PackageType.PERSONAL_TRAINING.value:
        query = query.filter(Coach.package_type.in_(package_types_for_coach(PackageType.CAMP_TRAINING.value)))
    elif package_type == PackageType.CAMP_TRAINING.value:
        query = query.filter(Coach.package_type == PackageType.CAMP_TRAINING.value)
    return query.order_by(Coach.name.asc(), Coach.id.asc()).all()


def is_student_compatible(student: Student, coach_id: int, package_type: str | None) -> bool:
    if int(student.coach_id or 0) != int(coach_id or 0):
        return False
    if package_type and student.package_type != package_type:
        return False
    return True


def list_eligible_students(db: Session, coach_id: int, package_type: str | None = None) -> list[Student]:
    query = db.query(Student).filter(Student.coach_id == coach_id)
    if package_type:
        query = query.filter(Student.package_type == package_type)
    return query.order_by(Student.name.asc(), Student.id.asc()).all()
