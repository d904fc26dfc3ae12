from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .database import iso_now, new_id


class Role(str, Enum):
    ADMIN = "admin"
    COORDINATOR = "coordinator"
    TEACHER = "teacher"
    STUDENT = "student"


# Role -> collection holding its profile. Admins keep name/contact on the account itself.
PROFILE_COLLECTIONS: Dict[Role, Optional[str]] = {
    Role.ADMIN: None,
    Role.COORDINATOR: "coordinators",
    Role.TEACHER: "teachers",
    Role.STUDENT: "students",
}

ATTENDANCE_STATUSES = ["present", "absent", "half-day", "leave", "other"]
ATTENDANCE_SESSIONS = ["morning", "afternoon"]
ASSESSMENT_TYPES = ["quiz", "assignment", "midterm", "final", "project", "practical", "viva"]
DOCUMENT_TYPES = ["cnic", "educational", "other"]
DOCUMENT_STATUSES = ["pending", "verified", "rejected"]
RECIPIENT_TYPES = ["admin", "principals", "teachers", "both", "all"]
LESSON_PLAN_SLOTS = 5
LESSON_PLAN_CELLS = 10


class Actor(BaseModel):
    """The authenticated caller, resolved from the bearer token."""

    id: str
    role: Role
    email: str
    campus_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Identity store
# ---------------------------------------------------------------------------

class AccountRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    email: str
    role: Role
    name: Optional[str] = None
    contact_number: Optional[str] = None
    active: bool = True
    campus_id: Optional[str] = None
    created_at: str = Field(default_factory=iso_now)
    password_hash: Optional[str] = Field(default=None, exclude=True)


class AdminRegister(BaseModel):
    email: str
    password: str
    name: str
    contact_number: str


class AuthLogin(BaseModel):
    email: str
    password: str


class AccountUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    campus_id: Optional[str] = None
    active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

class CoordinatorRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    account_id: str
    name: str
    contact_number: Optional[str] = None
    campus_id: Optional[str] = None
    created_by: str
    created_at: str = Field(default_factory=iso_now)
    updated_at: str = Field(default_factory=iso_now)


class CoordinatorCreate(BaseModel):
    email: str
    password: str
    name: str
    contact_number: Optional[str] = None
    campus_id: str


class CoordinatorUpdate(BaseModel):
    name: Optional[str] = None
    contact_number: Optional[str] = None


class TeacherRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    account_id: str
    name: str
    contact_number: str
    subject_specialization: str
    qualifications: str
    campus_ids: List[str] = []
    created_by: str
    created_at: str = Field(default_factory=iso_now)
    updated_at: str = Field(default_factory=iso_now)


class TeacherCreate(BaseModel):
    email: str
    password: str
    name: str
    contact_number: str
    subject_specialization: str
    qualifications: str
    campus_id: Optional[str] = None


class TeacherUpdate(BaseModel):
    name: Optional[str] = None
    contact_number: Optional[str] = None
    subject_specialization: Optional[str] = None
    qualifications: Optional[str] = None


class StudentRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    account_id: str
    name: str
    cnic: str
    email: str
    phone: str
    city: Optional[str] = None
    pnc_no: Optional[str] = None
    passport: Optional[str] = None
    qualifications: Optional[str] = None
    campus_id: Optional[str] = None
    course_ids: List[str] = []
    document_status: str = "notverified"
    created_by: str
    created_at: str = Field(default_factory=iso_now)
    updated_at: str = Field(default_factory=iso_now)


class StudentCreate(BaseModel):
    email: str
    password: str
    name: str
    cnic: str
    phone: str
    city: Optional[str] = None
    pnc_no: Optional[str] = None
    passport: Optional[str] = None
    qualifications: Optional[str] = None
    campus_id: Optional[str] = None


class StudentUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    pnc_no: Optional[str] = None
    passport: Optional[str] = None
    qualifications: Optional[str] = None


class StudentSelfUpdate(BaseModel):
    phone: Optional[str] = None
    city: Optional[str] = None
    passport: Optional[str] = None
    qualifications: Optional[str] = None


# ---------------------------------------------------------------------------
# Organizational graph
# ---------------------------------------------------------------------------

class CampusBase(BaseModel):
    name: str
    location: Optional[str] = None
    address: Optional[str] = None
    contact_number: Optional[str] = None


class CampusRecord(CampusBase):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    coordinator_ids: List[str] = []
    student_ids: List[str] = []
    course_ids: List[str] = []
    teacher_ids: List[str] = []
    created_by: str
    created_at: str = Field(default_factory=iso_now)
    updated_at: str = Field(default_factory=iso_now)


class CampusUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    contact_number: Optional[str] = None


class CourseCreate(BaseModel):
    name: str
    code: str
    description: Optional[str] = None
    credit_hours: Optional[float] = None
    teacher_ids: List[str] = []
    campus_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class CourseRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    name: str
    code: str
    description: Optional[str] = None
    credit_hours: Optional[float] = None
    teacher_ids: List[str] = []
    student_ids: List[str] = []
    campus_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    created_by: str
    created_at: str = Field(default_factory=iso_now)
    updated_at: str = Field(default_factory=iso_now)


class CourseUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    credit_hours: Optional[float] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class CoordinatorAssignment(BaseModel):
    coordinator_id: str
    campus_id: str


class CourseAssignment(BaseModel):
    course_ids: List[str]
    campus_id: str


class TeacherAssignment(BaseModel):
    teacher_id: str
    course_ids: List[str]


class StudentAssignment(BaseModel):
    student_ids: List[str]
    campus_id: str
    course_ids: List[str] = []


class CourseEnrollment(BaseModel):
    student_ids: List[str]


class CourseOutlineSlot(BaseModel):
    time_start: Optional[str] = None
    time_end: Optional[str] = None
    topic: Optional[str] = None


class CourseOutlineDay(BaseModel):
    day_name: Optional[str] = None
    date: Optional[str] = None
    unit: Optional[str] = None
    instructor: Optional[str] = None
    slots: List[CourseOutlineSlot] = []


class CourseOutlineCreate(BaseModel):
    program_name: Optional[str] = None
    week_title: Optional[str] = None
    location: Optional[str] = None
    days: List[CourseOutlineDay] = []
    references: List[str] = []


class CourseOutlineRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    course_id: str
    program_name: str
    week_title: str
    location: str
    days: List[CourseOutlineDay]
    references: List[str] = []
    created_by: str
    created_at: str = Field(default_factory=iso_now)
    updated_at: str = Field(default_factory=iso_now)


# ---------------------------------------------------------------------------
# Record keeping
# ---------------------------------------------------------------------------

class AttendanceRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    student_id: str
    course_id: str
    date: str = Field(default_factory=iso_now)
    status: str
    session: Optional[str] = None
    marked_by: str
    marked_by_role: Role
    created_at: str = Field(default_factory=iso_now)


class AttendanceMark(BaseModel):
    student_id: str
    course_id: str
    status: str
    session: Optional[str] = None
    date: Optional[str] = None


class AttendanceEntry(BaseModel):
    student_id: str
    status: str


class BulkAttendance(BaseModel):
    course_id: str
    session: Optional[str] = None
    date: Optional[str] = None
    attendances: List[AttendanceEntry]


class AssessmentEntry(BaseModel):
    student_id: str
    marks: Optional[float] = 0
    remarks: Optional[str] = ""


class AssessmentBatchUpsert(BaseModel):
    batch_id: Optional[str] = None
    course_id: str
    type: str
    title: str
    description: Optional[str] = None
    date: Optional[str] = None
    total_marks: Any = None
    entries: List[AssessmentEntry] = []


class AssessmentMetaUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    date: Optional[str] = None
    total_marks: Any = None


class AssessmentMarksUpdate(BaseModel):
    entries: List[AssessmentEntry] = []


class DocumentRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    student_id: str
    document_type: str
    file_path: str
    mimetype: str
    size: int
    original_name: str
    status: str = "pending"
    remarks: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[str] = None
    created_at: str = Field(default_factory=iso_now)


class DocumentVerify(BaseModel):
    status: str
    remarks: Optional[str] = None


class LessonPlanCell(BaseModel):
    text: str = ""


class LessonPlanCreate(BaseModel):
    head: Dict[str, Any]
    times_sat: List[str]
    times_sun: List[str]
    cells: List[LessonPlanCell]


class LessonPlanUpdate(BaseModel):
    head: Optional[Dict[str, Any]] = None
    times_sat: Optional[List[str]] = None
    times_sun: Optional[List[str]] = None
    cells: Optional[List[LessonPlanCell]] = None


class LessonPlanRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    created_by: str
    head: Dict[str, Any]
    times_sat: List[str]
    times_sun: List[str]
    cells: List[LessonPlanCell]
    is_active: bool = True
    saved_at: str = Field(default_factory=iso_now)
    created_at: str = Field(default_factory=iso_now)
    updated_at: str = Field(default_factory=iso_now)


class NotificationCreate(BaseModel):
    recipient_type: str
    subject: str
    message: str
    schedule: Optional[str] = None


class NotificationRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=new_id)
    recipient_type: str
    subject: str
    message: str
    schedule: Optional[str] = None
    created_by: str
    created_by_role: Role
    created_at: str = Field(default_factory=iso_now)
