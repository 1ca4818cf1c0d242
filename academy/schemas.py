from datetime import date, time
from typing import Literal

from pydantic import BaseModel, Field


PackageTypeValue = Literal['Personal Training', 'Camp Training']
DayValue = Literal['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']


class LoginRequest(BaseModel):
    email: str
    password: str
    next: str = '/dashboard'


class SignUpRequest(BaseModel):
    name: str
    email: str
    password: str
    phone: str | None = None


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class BranchRequest(BaseModel):
    name: str
    address: str = ''
    city: str = ''
    contact_phone: str | None = None
    contact_email: str | None = None


class CoachCreateRequest(BaseModel):
    name: str
    email: str
    phone: str | None = None
    package_type: PackageTypeValue | None = None
    availability: list[DayValue] = Field(default_factory=list)


class CoachUpdateRequest(BaseModel):
    name: str
    email: str
    phone: str | None = None
    package_type: PackageTypeValue | None = None
    role: Literal['admin', 'coach'] | None = None
    availability: list[DayValue] | None = None


class AvailabilityRequest(BaseModel):
    days: list[DayValue]


class StudentRequest(BaseModel):
    name: str
    email: str = ''
    phone: str | None = None
    sessions: int = Field(default=0, ge=0)
    remaining_sessions: int = Field(default=0, ge=0)
    package_type: PackageTypeValue | None = None
    coach_id: int | None = None


class SessionRequest(BaseModel):
    date: date
    start_time: time
    end_time: time
    branch_id: int
    coach_id: int
    package_type: PackageTypeValue | None = None
    status: Literal['scheduled', 'completed', 'cancelled'] = 'scheduled'
    notes: str | None = None
    student_ids: list[int] | None = None


class SessionStatusRequest(BaseModel):
    status: Literal['scheduled', 'completed', 'cancelled']


class ParticipantsRequest(BaseModel):
    student_ids: list[int]


class ConflictCheckRequest(BaseModel):
    date: date
    start_time: time
    end_time: time
    coach_id: int
    student_ids: list[int] = Field(default_factory=list)
    exclude_session_id: int | None = None


class AttendanceStatusRequest(BaseModel):
    status: Literal['present', 'absent', 'pending']
