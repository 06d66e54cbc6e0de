from __future__ import annotations

import json
from datetime import datetime

from cover_time import session_end_on
from eligibility import OpportunityBoard
from models import CoverRequest, Instructor, Session
from outcome import Outcome
from reason_library import match_reasons
from stats_service import InstructorEarnings
from time_fmt import fmt_duration, fmt_local_range, time_until

URGENCY_EMOJI = {"urgent": "🔴", "normal": "🟡", "advance_planned": "🟢"}


def frozen_blocks(text: str) -> list[dict]:
    return [{"type": "section", "text": {"type": "mrkdwn", "text": text}}]


def codes_to_bullets(codes: list[str]) -> str:
    if not codes:
        return "Not eligible."
    return "\n".join(f"• {m}" for m in match_reasons(codes))


def outcome_text(res: Outcome, done: str) -> str:
    return done if res.ok else res.message


def button(text: str, action_id: str, cover_id: str, style: str | None = None) -> dict:
    b = {
        "type": "button",
        "text": {"type": "plain_text", "text": text},
        "action_id": action_id,
        "value": json.dumps({"cover_id": cover_id}),
    }
    if style:
        b["style"] = style
    return b


def cover_id_from_action(body: dict) -> str:
    return json.loads(body["actions"][0]["value"])["cover_id"]


def format_cover_header(cover: CoverRequest, session: Session) -> str:
    when = fmt_local_range(cover.session_datetime, session_end_on(session, cover.cover_date))
    return f"*{cover.cover_id}* • {session.class_name} • {session.venue} • {when}"


def cover_dm_blocks(cover: CoverRequest, session: Session) -> list[dict]:
    when = fmt_local_range(cover.session_datetime, session_end_on(session, cover.cover_date))
    lines = [
        "*Cover available*",
        f"*Class:* {session.class_name}",
        f"*Venue:* {session.venue}",
        f"*When:* {when}",
        f"*Urgency:* {URGENCY_EMOJI.get(cover.urgency, '')} {cover.urgency.replace('_', ' ')}",
    ]
    if session.required_qualifications:
        lines.append(f"*Requires:* {', '.join(sorted(session.required_qualifications))}")
    return [
        {"type": "section", "text": {"type": "mrkdwn", "text": "\n".join(lines)}},
        {"type": "actions", "elements": [button("Accept", "accept_cover", cover.cover_id, "primary")]},
    ]


def opportunity_blocks(board: OpportunityBoard, now: datetime) -> list[dict]:
    blocks: list[dict] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"Open covers ({board.urgent_count} urgent)"},
        }
    ]

    if not board.open_requests:
        blocks += frozen_blocks("Nothing open for you right now.")
    for o in board.open_requests:
        emoji = URGENCY_EMOJI.get(o.cover.urgency, "")
        blocks.append(
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": (
                        f"{emoji} {format_cover_header(o.cover, o.session)}\n"
                        f"Starts in {time_until(o.cover.session_datetime, now)}"
                    ),
                },
                "accessory": button("Accept", "accept_cover", o.cover.cover_id, "primary"),
            }
        )

    if board.accepted_requests:
        blocks.append({"type": "divider"})
        blocks += frozen_blocks("*Awaiting confirmation*")
        for o in board.accepted_requests:
            blocks.append(
                {
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": format_cover_header(o.cover, o.session)},
                    "accessory": button("Withdraw", "withdraw_cover", o.cover.cover_id),
                }
            )
    return blocks


def queue_blocks(items: list[tuple[CoverRequest, Session, Instructor | None]]) -> list[dict]:
    """Coordinator view of accepted covers waiting for a decision."""
    blocks: list[dict] = [
        {"type": "header", "text": {"type": "plain_text", "text": f"Cover queue ({len(items)})"}}
    ]
    if not items:
        return blocks + frozen_blocks("No accepted covers waiting.")

    for cover, session, inst in items:
        who = inst.full_name if inst else f"user {cover.accepted_by}"
        blocks.append(
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"{format_cover_header(cover, session)}\nAccepted by *{who}*",
                },
            }
        )
        blocks.append(
            {
                "type": "actions",
                "elements": [
                    button("Confirm", "confirm_cover", cover.cover_id, "primary"),
                    button("Decline", "decline_cover", cover.cover_id),
                    button("Cancel cover", "cancel_cover", cover.cover_id, "danger"),
                ],
            }
        )
    return blocks


def hours_text(report: InstructorEarnings, max_months: int = 3) -> str:
    cur = report.current_month
    lines = [
        f"*{cur.month_name}*: {cur.hours:g}h over {cur.sessions} session(s) and "
        f"{cur.covers} cover(s), £{cur.earnings:.2f}",
    ]
    for item in cur.breakdown:
        tag = "cover" if item.kind == "cover" else "class"
        lines.append(
            f"• {item.date:%a %d %b} {item.class_name} ({tag}, "
            f"{fmt_duration(int(round(item.hours * 60)))}) £{item.earnings:.2f}"
        )

    for m in report.previous_months[:max_months]:
        lines.append(f"{m.month_name}: {m.hours:g}h, {m.covers} cover(s), £{m.earnings:.2f}")

    t = report.totals
    lines.append(f"_All time: {t.hours:g}h, £{t.earnings:.2f}_")
    return "\n".join(lines)
