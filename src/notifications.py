# src/notifications.py
from __future__ import annotations

import logging
from typing import Any, Protocol

from messages import cover_dm_blocks
from models import CoverRequest, Instructor, Session

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    def notify_eligible_instructors(
        self, cover: CoverRequest, session: Session, instructors: list[Instructor]
    ) -> None: ...


class NullNotificationSender:
    def notify_eligible_instructors(
        self, cover: CoverRequest, session: Session, instructors: list[Instructor]
    ) -> None:
        return None


class SlackNotificationSender:
    """
    DMs each eligible instructor that has a linked Slack user, and posts the
    same card to the covers channel when one is configured.
    `client` is a slack_sdk WebClient (app.client from slack_bolt).
    """

    def __init__(self, client: Any, channel_id: str = "") -> None:
        self.client = client
        self.channel_id = channel_id

    def notify_eligible_instructors(
        self, cover: CoverRequest, session: Session, instructors: list[Instructor]
    ) -> None:
        blocks = cover_dm_blocks(cover, session)
        text = f"Cover {cover.cover_id}: {session.class_name}"
        if self.channel_id:
            try:
                self.client.chat_postMessage(channel=self.channel_id, text=text, blocks=blocks)
            except Exception:
                logger.exception("could not post %s to %s", cover.cover_id, self.channel_id)

        for inst in instructors:
            if not inst.slack_user_id:
                continue
            try:
                im = self.client.conversations_open(users=inst.slack_user_id)
                self.client.chat_postMessage(
                    channel=im["channel"]["id"],
                    text=text,
                    blocks=blocks,
                )
            except Exception:
                logger.exception(
                    "could not notify %s about %s", inst.slack_user_id, cover.cover_id
                )
