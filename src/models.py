from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal, Union

UserStatus = Literal["pending", "approved", "rejected", "suspended"]
TemplateType = Literal["weekly", "bi-weekly"]
TemplateStatus = Literal["draft", "active", "archived"]
AssignmentType = Literal["permanent", "open", "cover_needed"]
CoverStatus = Literal["open", "accepted", "confirmed", "cancelled", "completed"]
Urgency = Literal["urgent", "normal", "advance_planned"]
PaymentStatus = Literal["pending", "approved", "paid"]
DocumentType = Literal["qualification", "insurance", "dbs_check"]
DocumentStatus = Literal["pending", "approved", "rejected", "expired"]
EmailDigest = Literal["immediate", "daily", "weekly", "off"]

TEMPLATE_TYPES = {"weekly", "bi-weekly"}
ASSIGNMENT_TYPES = {"permanent", "open", "cover_needed"}
URGENCIES = {"urgent", "normal", "advance_planned"}
PAYMENT_STATUSES = {"pending", "approved", "paid"}
DOCUMENT_TYPES = {"qualification", "insurance", "dbs_check"}

# covers in these states block another request for the same (session, date)
LIVE_COVER_STATUSES = ("open", "accepted", "confirmed")
# covers in these states count as worked hours once the session is over
WORKED_COVER_STATUSES = ("confirmed", "completed")


@dataclass
class InstructorPreferences:
    email_digest: EmailDigest = "immediate"
    cover_types: list[str] = field(default_factory=list)
    min_notice_hours: int = 24
    max_distance_from_venue: float | None = None


@dataclass
class InstructorStats:
    total_hours_worked: float = 0.0
    reliability_score: float = 5.0
    last_active: datetime | None = None


@dataclass
class Admin:
    user_id: int
    email: str
    first_name: str
    last_name: str
    status: UserStatus = "approved"
    phone: str | None = None
    created_at: datetime | None = None
    slack_user_id: str | None = None
    role: Literal["admin"] = "admin"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class Instructor:
    user_id: int
    email: str
    first_name: str
    last_name: str
    status: UserStatus = "pending"
    phone: str | None = None
    created_at: datetime | None = None
    qualifications: frozenset[str] = frozenset()
    hourly_rate: float | None = None
    max_hours_per_week: float | None = None
    slack_user_id: str | None = None
    preferences: InstructorPreferences = field(default_factory=InstructorPreferences)
    stats: InstructorStats = field(default_factory=InstructorStats)
    approved_at: datetime | None = None
    approved_by: int | None = None
    role: Literal["instructor"] = "instructor"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_approved(self) -> bool:
        return self.status == "approved"


User = Union[Admin, Instructor]


@dataclass
class TimetableTemplate:
    template_id: int
    name: str
    template_type: TemplateType
    status: TemplateStatus
    effective_from: date
    effective_to: date  # exclusive
    session_count: int
    created_by: int
    created_at: datetime


@dataclass
class Session:
    session_id: int
    template_id: int
    class_name: str
    day_of_week: int  # 0 = Sunday
    start_time: str  # HH:MM, zero padded
    end_time: str
    duration: int  # minutes
    venue: str
    assignment_type: AssignmentType
    created_by: int
    permanent_instructor_id: int | None = None
    required_qualifications: frozenset[str] = frozenset()
    description: str = ""
    max_participants: int | None = None
    is_active: bool = True


@dataclass
class CoverRequest:
    cover_id: str
    session_id: int
    cover_date: date
    session_datetime: datetime
    urgency: Urgency
    status: CoverStatus
    requested_by: int
    requested_at: datetime

    requested_for: int | None = None
    reason: str = ""
    accepted_by: int | None = None
    accepted_at: datetime | None = None
    confirmed_by: int | None = None
    confirmed_at: datetime | None = None
    payment_rate: float | None = None
    payment_status: PaymentStatus = "pending"


@dataclass
class Document:
    document_id: int
    instructor_id: int
    document_type: DocumentType
    file_name: str
    file_path: str
    file_size: int
    status: DocumentStatus
    uploaded_at: datetime

    qualification_type: str | None = None
    expiry_date: datetime | None = None
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    review_notes: str = ""


@dataclass
class AuditEvent:
    action: str
    entity_type: str
    entity_id: str
    performed_by: int | None
    details: dict = field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None
    performed_at: datetime | None = None
    retain_until: datetime | None = None
