import re
from datetime import date, datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

ROLL_NUMBER_PATTERN = re.compile(r"^\d{2}[bB][dD]\d[aA]\d{2}[0-9A-Za-z]{2}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

SOCIAL_LINK_PATTERNS = {
    "instagram_url": re.compile(r"^https?://(www\.)?instagram\.com/.+", re.IGNORECASE),
    "youtube_url": re.compile(r"^https?://(www\.)?(youtube\.com|youtu\.be)/.+", re.IGNORECASE),
    "linkedin_url": re.compile(r"^https?://(www\.)?linkedin\.com/.+", re.IGNORECASE),
    "twitter_url": re.compile(r"^https?://(www\.)?(twitter\.com|x\.com)/.+", re.IGNORECASE),
    "whatsapp_url": re.compile(r"^https?://(www\.)?(whatsapp\.com|wa\.me)/.+", re.IGNORECASE),
    "website_url": re.compile(r"^https?://.+", re.IGNORECASE),
}

PASS_OUT_YEAR = "Pass Out"


def _required(value: str) -> str:
    cleaned = value.strip() if isinstance(value, str) else ""
    if not cleaned:
        raise ValueError("must not be empty")
    return cleaned


def _email(value: str) -> str:
    cleaned = _required(value).lower()
    if not EMAIL_PATTERN.match(cleaned):
        raise ValueError("Invalid email address")
    return cleaned


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # stored datetimes are naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ---------------------------------------------------------------------------
# Authentication


class StudentLoginRequest(BaseModel):
    roll_number: str
    password: str

    @field_validator("roll_number")
    @classmethod
    def normalize_roll_number(cls, value: str):
        return _required(value).upper()


class EmailLoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str):
        return _required(value).lower()


class StudentSessionOut(BaseModel):
    success: bool = True
    token: str
    roll_number: str
    message: str


class ClubSessionOut(BaseModel):
    success: bool = True
    token: str
    club_id: int
    message: str


class MentorSessionOut(BaseModel):
    success: bool = True
    token: str
    mentor_id: int
    message: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)


class ForgotPasswordRequest(BaseModel):
    roll_number: str

    @field_validator("roll_number")
    @classmethod
    def normalize_roll_number(cls, value: str):
        return _required(value).upper()


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(min_length=6)


class MessageOut(BaseModel):
    success: bool = True
    message: str


# ---------------------------------------------------------------------------
# Clubs


class ClubOut(BaseModel):
    id: int
    name: str
    short_description: Optional[str] = None
    detailed_description: Optional[str] = None
    logo_url: Optional[str] = None
    instagram_url: Optional[str] = None
    youtube_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_url: Optional[str] = None
    whatsapp_url: Optional[str] = None
    website_url: Optional[str] = None
    registration_open: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ClubUpdate(BaseModel):
    name: Optional[str] = None
    short_description: Optional[str] = None
    detailed_description: Optional[str] = None
    logo_url: Optional[str] = None
    registration_open: Optional[bool] = None
    instagram_url: Optional[str] = None
    youtube_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_url: Optional[str] = None
    whatsapp_url: Optional[str] = None
    website_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: Optional[str]):
        return None if value is None else _required(value)

    @field_validator(*SOCIAL_LINK_PATTERNS)
    @classmethod
    def validate_social_link(cls, value: Optional[str], info):
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            return ""
        if not SOCIAL_LINK_PATTERNS[info.field_name].match(cleaned):
            raise ValueError(f"invalid URL for {info.field_name}")
        return cleaned


class ClubMemberCreate(BaseModel):
    name: str
    role: str

    @field_validator("name", "role")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _required(value)


class ClubMemberOut(BaseModel):
    id: int
    club_id: int
    name: str
    role: str
    created_at: datetime


class AnnouncementCreate(BaseModel):
    title: str
    content: str

    @field_validator("title", "content")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _required(value)


class AnnouncementOut(BaseModel):
    id: int
    club_id: int
    title: str
    content: str
    created_at: datetime


class ClubRegistrationCreate(BaseModel):
    student_name: str = Field(max_length=100)
    student_email: str = Field(max_length=255)
    phone: Optional[str] = None
    roll_number: Optional[str] = None
    year: Optional[str] = None
    branch: Optional[str] = None
    why_join: Optional[str] = None
    past_experience: Optional[str] = None

    @field_validator("student_name")
    @classmethod
    def name_required(cls, value: str):
        return _required(value)

    @field_validator("student_email")
    @classmethod
    def valid_email(cls, value: str):
        return _email(value)

    @field_validator("roll_number")
    @classmethod
    def upper_roll_number(cls, value: Optional[str]):
        if value is None or not value.strip():
            return None
        return value.strip().upper()


class ClubRegistrationOut(BaseModel):
    id: int
    club_id: int
    student_name: str
    student_email: str
    phone: Optional[str] = None
    roll_number: Optional[str] = None
    year: Optional[str] = None
    branch: Optional[str] = None
    why_join: Optional[str] = None
    past_experience: Optional[str] = None
    status: str
    created_at: datetime


class RegistrationStatusUpdate(BaseModel):
    status: Literal["approved", "rejected"]


class RegistrationDecisionOut(BaseModel):
    success: bool = True
    status: str
    message: str
    account_created: bool = False


class PastMemberOut(BaseModel):
    id: int
    student_name: str
    roll_number: Optional[str] = None
    branch: Optional[str] = None


# ---------------------------------------------------------------------------
# Events


class EventImageCreate(BaseModel):
    image_url: str

    @field_validator("image_url")
    @classmethod
    def url_required(cls, value: str):
        return _required(value)


class EventImageOut(BaseModel):
    id: int
    event_id: int
    image_url: str
    created_at: datetime


class EventCreate(BaseModel):
    title: str
    description: str = ""
    event_date: Optional[datetime] = None
    venue: Optional[str] = None
    registration_open: bool = True

    @field_validator("title")
    @classmethod
    def title_required(cls, value: str):
        return _required(value)

    @field_validator("event_date")
    @classmethod
    def event_date_to_utc(cls, value: Optional[datetime]):
        return _naive_utc(value)


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    event_date: Optional[datetime] = None
    venue: Optional[str] = None
    registration_open: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: Optional[str]):
        return None if value is None else _required(value)

    @field_validator("event_date")
    @classmethod
    def event_date_to_utc(cls, value: Optional[datetime]):
        return _naive_utc(value)


class EventNotifyRequest(BaseModel):
    subject: str
    message: str

    @field_validator("subject", "message")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _required(value)


class EventOut(BaseModel):
    id: int
    club_id: int
    title: str
    description: str
    event_date: Optional[datetime] = None
    venue: Optional[str] = None
    registration_open: bool
    certificate_permission: bool
    created_at: datetime
    images: list[EventImageOut] = []


class EventDetail(EventOut):
    club_name: str
    registration_count: int = 0


class EventRegistrationCreate(BaseModel):
    student_name: str = Field(max_length=100)
    student_email: str = Field(max_length=255)
    roll_number: str
    branch: str
    year: str

    @field_validator("student_name", "branch", "year")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _required(value)

    @field_validator("student_email")
    @classmethod
    def valid_email(cls, value: str):
        return _email(value)

    @field_validator("roll_number")
    @classmethod
    def valid_roll_number(cls, value: str):
        cleaned = _required(value)
        if not ROLL_NUMBER_PATTERN.match(cleaned):
            raise ValueError("Roll number must follow format: e.g., 24BD1A2345 or 24BD1A23AB")
        return cleaned.upper()


class EventRegistrationOut(BaseModel):
    id: int
    event_id: int
    student_name: str
    student_email: str
    roll_number: str
    branch: str
    year: str
    created_at: datetime


class EventRegistrationResult(BaseModel):
    success: bool = True
    message: str
    registration: EventRegistrationOut


class AttendanceOut(BaseModel):
    id: int
    event_id: int
    registration_id: Optional[int] = None
    student_name: str
    student_email: str
    roll_number: str
    is_present: bool
    scanned_at: Optional[datetime] = None


class AttendanceScanRequest(BaseModel):
    token: str
    event_id: int


# ---------------------------------------------------------------------------
# Certificates


class CertificateRequestOut(BaseModel):
    id: int
    event_id: int
    club_id: int
    status: str
    requested_at: datetime
    reviewed_at: Optional[datetime] = None
    event_title: Optional[str] = None
    event_date: Optional[datetime] = None
    club_name: Optional[str] = None


class CertificateOut(BaseModel):
    id: int
    club_id: int
    event_id: Optional[int] = None
    certificate_number: str
    certificate_title: str
    description: Optional[str] = None
    roll_number: str
    student_name: str
    student_email: str
    issued_at: datetime
    event_title: Optional[str] = None


class IssueCertificatesOut(BaseModel):
    issued: int
    skipped: int
    message: str
    certificates: list[CertificateOut]


# ---------------------------------------------------------------------------
# Reports


class MinutesOfMeetingData(BaseModel):
    agenda: Optional[str] = None
    discussions: Optional[str] = None
    decisions: Optional[str] = None
    action_items: Optional[str] = None
    next_meeting_date: Optional[date] = None


class EventReportData(BaseModel):
    event_description: Optional[str] = None
    event_outcomes: Optional[str] = None
    attendance: Optional[int] = Field(default=None, ge=0)


class PeriodicReportData(BaseModel):
    summary: Optional[str] = None
    achievements: Optional[str] = None
    challenges: Optional[str] = None
    plans: Optional[str] = None


REPORT_DATA_MODELS: dict[str, type[BaseModel]] = {
    "mom": MinutesOfMeetingData,
    "event": EventReportData,
    "monthly": PeriodicReportData,
    "yearly": PeriodicReportData,
}

ReportType = Literal["mom", "event", "monthly", "yearly"]


class ClubReportCreate(BaseModel):
    title: str
    report_type: ReportType
    report_date: Optional[date] = None
    file_url: Optional[str] = None
    participants_roll_numbers: list[str] = []
    report_data: dict = {}

    @field_validator("title")
    @classmethod
    def title_required(cls, value: str):
        return _required(value)

    @field_validator("participants_roll_numbers")
    @classmethod
    def normalize_participants(cls, value: list[str]):
        seen: list[str] = []
        for roll in value:
            cleaned = roll.strip().upper()
            if cleaned and cleaned not in seen:
                seen.append(cleaned)
        return seen

    @model_validator(mode="after")
    def validate_report_data(self):
        data_model = REPORT_DATA_MODELS[self.report_type]
        payload = data_model.model_validate(self.report_data)
        self.report_data = payload.model_dump(mode="json", exclude_none=True)
        return self


class ClubReportOut(BaseModel):
    id: int
    club_id: int
    title: str
    report_type: str
    report_date: Optional[date] = None
    file_url: Optional[str] = None
    participants_roll_numbers: list[str] = []
    report_data: dict = {}
    created_at: datetime


# ---------------------------------------------------------------------------
# Institution events


class InstitutionEventCreate(BaseModel):
    name: str
    description: Optional[str] = None
    event_date: date
    venue: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str):
        return _required(value)


class InstitutionEventUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    event_date: Optional[date] = None
    venue: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: Optional[str]):
        return None if value is None else _required(value)


class InstitutionEventOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    event_date: date
    venue: Optional[str] = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Mentor


class ClubCreate(BaseModel):
    name: str
    short_description: Optional[str] = None
    registration_open: bool = True
    admin_email: Optional[str] = None
    admin_password: Optional[str] = Field(default=None, min_length=6)

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str):
        return _required(value)

    @field_validator("short_description")
    @classmethod
    def strip_description(cls, value: Optional[str]):
        if value is None:
            return None
        return value.strip() or None

    @field_validator("admin_email")
    @classmethod
    def valid_admin_email(cls, value: Optional[str]):
        return None if value is None else _email(value)

    @model_validator(mode="after")
    def admin_credentials_together(self):
        if bool(self.admin_email) != bool(self.admin_password):
            raise ValueError("admin_email and admin_password must be provided together")
        return self


class ClubCreatedOut(BaseModel):
    success: bool = True
    message: str
    club_id: int


class ClubStatusUpdate(BaseModel):
    is_active: bool


class MentorClubSummary(BaseModel):
    id: int
    name: str
    short_description: Optional[str] = None
    logo_url: Optional[str] = None
    is_active: bool
    registration_open: bool
    member_count: int
    pending_registrations: int
    roster_count: int
    report_count: int


class MentorClubDetail(BaseModel):
    club: ClubOut
    members: list[ClubMemberOut]
    registrations: list[ClubRegistrationOut]


class MentorCreate(BaseModel):
    name: str
    email: str
    password: str = Field(min_length=6)

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str):
        return _required(value)

    @field_validator("email")
    @classmethod
    def valid_email(cls, value: str):
        return _email(value)


class MentorOut(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Notice board & student dashboard


class NoticeItem(BaseModel):
    id: str
    type: Literal["announcement", "event"]
    title: str
    content: str
    club_id: Optional[int] = None
    club_name: str
    club_logo: Optional[str] = None
    created_at: datetime
    event_date: Optional[datetime] = None
    event_id: Optional[int] = None
    is_new: bool


class HasNewOut(BaseModel):
    has_new: bool


class StudentClubOut(BaseModel):
    registration_id: int
    club_id: int
    club_name: str
    short_description: Optional[str] = None
    logo_url: Optional[str] = None


class StudentAttendanceOut(BaseModel):
    id: int
    event_id: int
    event_title: str
    event_date: Optional[datetime] = None
    club_name: str
    scanned_at: Optional[datetime] = None


class StudentReportOut(BaseModel):
    id: int
    title: str
    report_type: str
    report_date: Optional[date] = None
    club_name: str
    created_at: datetime


class StudentProfileOut(BaseModel):
    roll_number: str
    student_email: Optional[str] = None
    phone: Optional[str] = None


class StudentProfileUpdate(BaseModel):
    student_email: str
    phone: Optional[str] = None

    @field_validator("student_email")
    @classmethod
    def valid_email(cls, value: str):
        return _email(value)

    @field_validator("phone")
    @classmethod
    def blank_phone_is_none(cls, value: Optional[str]):
        if value is None:
            return None
        return value.strip() or None
