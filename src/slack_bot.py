# src/slack_bot.py
from __future__ import annotations

import logging
import os
from contextlib import closing
from datetime import datetime

from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler

from audit import AuditContext
from config import CENTRE_TZ, COORDINATOR_SLACK_IDS, COVERS_CHANNEL_ID, LOG_LEVEL
from cover_repo import get_cover
from cover_service import (
    accept_cover,
    accepted_awaiting_confirmation,
    cancel_cover,
    confirm_cover,
    decline_cover,
    withdraw_acceptance,
)
from db import get_con, init_db
from eligibility import opportunity_board
from messages import (
    codes_to_bullets,
    cover_id_from_action,
    frozen_blocks,
    hours_text,
    opportunity_blocks,
    outcome_text,
    queue_blocks,
)
from models import Admin, Instructor
from notifications import SlackNotificationSender
from session_repo import get_session
from stats_service import instructor_earnings
from user_repo import get_user, get_user_by_slack

logger = logging.getLogger(__name__)


# ----------------------------
# Small helpers
# ----------------------------
def open_con():
    con = get_con()
    init_db(con)
    return con


def slack_ctx(user) -> AuditContext:
    return AuditContext(performed_by=user.user_id, user_agent="slack")


def is_coordinator(user, slack_user_id: str, coordinators=None) -> bool:
    """Admins, plus anyone listed in COORDINATOR_SLACK_IDS."""
    if coordinators is None:
        coordinators = COORDINATOR_SLACK_IDS
    return isinstance(user, Admin) or slack_user_id in coordinators


def notifier_for(client) -> SlackNotificationSender:
    return SlackNotificationSender(client, channel_id=COVERS_CHANNEL_ID)


def reply(client, body, respond, text: str) -> None:
    """Replace the DM card the button lives on, or answer ephemerally in a channel."""
    channel_id = body["channel"]["id"]
    if channel_id.startswith("D") and "message" in body:
        client.chat_update(channel=channel_id, ts=body["message"]["ts"], text=text, blocks=frozen_blocks(text))
    else:
        respond(text)


def not_linked_text() -> str:
    return "Your Slack account isn't linked to a leisure centre profile yet."


def queue_items(con) -> list:
    items = []
    for cover in accepted_awaiting_confirmation(con):
        session = get_session(con, cover.session_id)
        if session is None:
            continue
        inst = get_user(con, cover.accepted_by) if cover.accepted_by else None
        items.append((cover, session, inst if isinstance(inst, Instructor) else None))
    return items


def register_handlers(app: App) -> None:
    # ----------------------------
    # Slash commands
    # ----------------------------
    @app.command("/cover-open")
    def cover_open(ack, command, respond):
        ack()
        with closing(open_con()) as con:
            user = get_user_by_slack(con, command["user_id"])
            if not isinstance(user, Instructor):
                respond(not_linked_text())
                return
            if not user.is_approved:
                respond("Your account has not been approved yet.")
                return

            now = datetime.now(CENTRE_TZ)
            board = opportunity_board(con, user.user_id, now)
        respond(blocks=opportunity_blocks(board, now), text="Open covers")

    @app.command("/cover-queue")
    def cover_queue(ack, command, respond):
        ack()
        with closing(open_con()) as con:
            user = get_user_by_slack(con, command["user_id"])
            if not is_coordinator(user, command["user_id"]):
                respond("Only coordinators can see the cover queue.")
                return
            items = queue_items(con)
        respond(blocks=queue_blocks(items), text="Cover queue")

    @app.command("/my-hours")
    def my_hours(ack, command, respond):
        ack()
        with closing(open_con()) as con:
            user = get_user_by_slack(con, command["user_id"])
            if not isinstance(user, Instructor):
                respond(not_linked_text())
                return
            res = instructor_earnings(con, user.user_id)
        respond(hours_text(res.value) if res.ok else res.message)

    # ----------------------------
    # Instructor buttons
    # ----------------------------
    @app.action("accept_cover")
    def accept_action(ack, body, client, respond):
        ack()
        cover_id = cover_id_from_action(body)
        with closing(open_con()) as con:
            user = get_user_by_slack(con, body["user"]["id"])
            if user is None:
                reply(client, body, respond, not_linked_text())
                return
            res = accept_cover(con, cover_id, user.user_id, ctx=slack_ctx(user))

        logger.info("slack accept %s by %s: %s", cover_id, user.user_id, res.code or "ok")
        if res.ok:
            reply(client, body, respond, f"Accepted `{cover_id}`. A coordinator will confirm it shortly.")
        else:
            reply(client, body, respond, "Could not accept.\n" + codes_to_bullets([res.code]))

    @app.action("withdraw_cover")
    def withdraw_action(ack, body, client, respond):
        ack()
        cover_id = cover_id_from_action(body)
        with closing(open_con()) as con:
            user = get_user_by_slack(con, body["user"]["id"])
            if user is None:
                reply(client, body, respond, not_linked_text())
                return
            res = withdraw_acceptance(con, cover_id, user.user_id, notifier=notifier_for(client), ctx=slack_ctx(user))
        reply(client, body, respond, outcome_text(res, f"Withdrawn from `{cover_id}`."))

    # ----------------------------
    # Coordinator buttons
    # ----------------------------
    def coordinator_action(body, client, respond, run, done: str) -> None:
        cover_id = cover_id_from_action(body)
        with closing(open_con()) as con:
            # transitions are recorded against an admin account
            user = get_user_by_slack(con, body["user"]["id"])
            if not isinstance(user, Admin):
                respond("Only coordinators can do that.")
                return

            before = get_cover(con, cover_id)
            res = run(con, cover_id, user)
            logger.info("slack %s %s by %s: %s", done, cover_id, user.user_id, res.code or "ok")
            respond(outcome_text(res, f"`{cover_id}` {done}."))

            # let the instructor know what happened to their acceptance
            if res.ok and before is not None:
                notify_instructor(client, con, before.accepted_by, cover_id, done)

    @app.action("confirm_cover")
    def confirm_action(ack, body, client, respond):
        ack()
        coordinator_action(
            body,
            client,
            respond,
            lambda con, cid, u: confirm_cover(con, cid, u.user_id, ctx=slack_ctx(u)),
            "confirmed",
        )

    @app.action("decline_cover")
    def decline_action(ack, body, client, respond):
        ack()
        coordinator_action(
            body,
            client,
            respond,
            lambda con, cid, u: decline_cover(con, cid, u.user_id, notifier=notifier_for(client), ctx=slack_ctx(u)),
            "declined",
        )

    @app.action("cancel_cover")
    def cancel_action(ack, body, client, respond):
        ack()
        coordinator_action(
            body,
            client,
            respond,
            lambda con, cid, u: cancel_cover(con, cid, u.user_id, ctx=slack_ctx(u)),
            "cancelled",
        )


def notify_instructor(client, con, instructor_id: int | None, cover_id: str, done: str) -> None:
    if instructor_id is None:
        return
    inst = get_user(con, instructor_id)
    if not isinstance(inst, Instructor) or not inst.slack_user_id:
        return
    try:
        im = client.conversations_open(users=inst.slack_user_id)
        client.chat_postMessage(channel=im["channel"]["id"], text=f"Your cover `{cover_id}` was {done}.")
    except Exception:
        logger.exception("could not tell %s about %s", inst.slack_user_id, cover_id)


def create_app(token: str | None = None) -> App:
    app = App(token=token or os.environ["SLACK_BOT_TOKEN"])
    register_handlers(app)
    return app


def main() -> None:
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    SocketModeHandler(app, os.environ["SLACK_APP_TOKEN"]).start()


if __name__ == "__main__":
    main()
