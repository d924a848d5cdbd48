"""Audit trail of post mutations."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.orm import Session

from medpost.db.session import SessionLocal
from medpost.models import LogEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogEvent:
    """One audit record: what changed on which post and who changed it."""

    title: str
    change_description: str
    post_id: int | None
    actor_display_name: str


class AuditSink(Protocol):
    """Receiver of audit events, called once after each committed mutation."""

    def record(self, event: LogEvent) -> None: ...


class DatabaseAuditSink:
    """Persist audit events as ``LogEntry`` rows in a session of their own.

    The sink never shares the caller's session, so a failed audit write cannot
    undo the mutation it describes.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self.session_factory = session_factory

    def record(self, event: LogEvent) -> None:
        with self.session_factory() as db:
            db.add(
                LogEntry(
                    title=event.title,
                    changes=event.change_description,
                    id_of_changed_post=event.post_id,
                    name_of_changer=event.actor_display_name,
                )
            )
            db.commit()
        logger.debug("Recorded audit entry for post %s: %s", event.post_id, event.change_description)
