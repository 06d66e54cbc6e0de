from __future__ import annotations

import re

ERROR_KINDS = (
    "not_found",
    "invalid_state",
    "conflict",
    "forbidden",
    "invalid_input",
    "temporal",
)

REASON_KINDS: dict[str, str] = {
    # not_found
    "template_not_found": "not_found",
    "session_not_found": "not_found",
    "cover_not_found": "not_found",
    "instructor_not_found": "not_found",
    "user_not_found": "not_found",
    "document_not_found": "not_found",
    # invalid_state
    "cover_not_open": "invalid_state",
    "cover_not_accepted": "invalid_state",
    "cover_not_cancellable": "invalid_state",
    "cover_not_confirmed": "invalid_state",
    "template_already_active": "invalid_state",
    "template_archived": "invalid_state",
    "document_not_pending": "invalid_state",
    # conflict
    "session_conflict": "conflict",
    "duplicate_request": "conflict",
    "email_taken": "conflict",
    "endless_overlaps_active": "conflict",
    # forbidden
    "not_your_session": "forbidden",
    "self_acceptance": "forbidden",
    "unqualified": "forbidden",
    "instructor_not_approved": "forbidden",
    "not_admin": "forbidden",
    "not_instructor": "forbidden",
    "not_your_acceptance": "forbidden",
    "is_requested_for": "forbidden",
    # invalid_input
    "past_date": "invalid_input",
    "invalid_time_range": "invalid_input",
    "invalid_time_format": "invalid_input",
    "session_too_short": "invalid_input",
    "invalid_day_of_week": "invalid_input",
    "cover_date_day_mismatch": "invalid_input",
    "invalid_date_range": "invalid_input",
    "invalid_urgency": "invalid_input",
    "invalid_payment_rate": "invalid_input",
    "invalid_payment_status": "invalid_input",
    "invalid_document": "invalid_input",
    "invalid_template_type": "invalid_input",
    "invalid_assignment_type": "invalid_input",
    # temporal
    "too_late": "temporal",
    "session_passed": "temporal",
}

_MESSAGES: dict[str, str] = {
    "template_not_found": "Timetable template not found.",
    "session_not_found": "Session not found.",
    "cover_not_found": "Cover request not found.",
    "instructor_not_found": "Instructor not found.",
    "user_not_found": "User not found.",
    "document_not_found": "Document not found.",
    "cover_not_open": "This cover request is no longer available.",
    "cover_not_accepted": "Only accepted cover requests can be confirmed or declined.",
    "cover_not_cancellable": "This cover request can no longer be cancelled.",
    "cover_not_confirmed": "Payment can only be updated on confirmed or completed covers.",
    "template_already_active": "Template is already active.",
    "template_archived": "Sessions can't be added to an archived template.",
    "document_not_pending": "That document has already been reviewed.",
    "session_conflict": "Session time conflicts with an existing session in the same venue.",
    "duplicate_request": "A cover request already exists for this session on this date.",
    "email_taken": "An account with that email already exists.",
    "endless_overlaps_active": (
        "Templates that overlap with the current active template must have an end date."
    ),
    "not_your_session": "Session not found or not assigned to you.",
    "self_acceptance": "You cannot accept your own cover request.",
    "is_requested_for": "This cover is for your own session.",
    "unqualified": "You do not meet the qualification requirements for this session.",
    "instructor_not_approved": "Your account has not been approved yet.",
    "not_admin": "Only administrators can do that.",
    "not_instructor": "User is not an instructor.",
    "not_your_acceptance": "You haven't accepted this cover request.",
    "past_date": "Cannot request cover for past dates.",
    "cover_date_day_mismatch": "The session doesn't run on that day of the week.",
    "invalid_document": "Document rejected.",
    "invalid_time_range": "End time must be after start time.",
    "invalid_time_format": "Times must be in HH:MM format.",
    "session_too_short": "Session is shorter than the minimum length.",
    "invalid_day_of_week": "Day of week must be between 0 (Sunday) and 6 (Saturday).",
    "invalid_date_range": "End date must be after start date.",
    "invalid_urgency": "Urgency must be urgent, normal or advance_planned.",
    "invalid_payment_rate": "Payment rate must be zero or more.",
    "invalid_payment_status": "Payment status must be pending, approved or paid.",
    "invalid_template_type": "Template type must be weekly or bi-weekly.",
    "invalid_assignment_type": "Assignment type must be permanent, open or cover_needed.",
    "too_late": "Cannot request cover for sessions that have already started or passed.",
    "session_passed": "This session has already passed.",
}


def base_code(code: str) -> str:
    # "session_conflict(12)" -> "session_conflict"
    return code.split("(", 1)[0]


def kind_of(code: str) -> str | None:
    return REASON_KINDS.get(base_code(code))


def match_reason(code: str) -> str:
    if code in _MESSAGES:
        return _MESSAGES[code]

    # Patterned codes
    m = re.match(r"session_conflict\((.+)\)", code)
    if m:
        return f"Session time conflicts with an existing session in the same venue ({m.group(1)})."

    m = re.match(r"duplicate_request\((.+)\)", code)
    if m:
        return f"Cover request {m.group(1)} already exists for this session on this date."

    m = re.match(r"cover_date_day_mismatch\((.+)\)", code)
    if m:
        return f"That date isn't a {m.group(1)}, so this session doesn't run then."

    m = re.match(r"session_too_short\((\d+)\)", code)
    if m:
        return f"Sessions must be at least {m.group(1)} minutes long."

    m = re.match(r"invalid_document\((.+)\)", code)
    if m:
        return f"Document rejected: {m.group(1)}."

    m = re.match(r"cover_not_open\((.+)\)", code)
    if m:
        return f"This cover request is {m.group(1)}, not open."

    m = re.match(r"cover_not_accepted\((.+)\)", code)
    if m:
        return f"This cover request is {m.group(1)}; only accepted requests can be confirmed or declined."

    m = re.match(r"cover_not_cancellable\((.+)\)", code)
    if m:
        return f"A {m.group(1)} cover request can't be cancelled."

    base = base_code(code)
    if base != code and base in _MESSAGES:
        return _MESSAGES[base]

    # Fallback
    return code


def match_reasons(codes: list[str]) -> list[str]:
    return [match_reason(c) for c in codes]

