"""SQLAlchemy model for the post audit trail."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from medpost.db.session import Base
from medpost.db.time import utcnow


class LogEntry(Base):
    """One audit record per successful post mutation."""

    __tablename__ = "post_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    changes: Mapped[str] = mapped_column(Text, nullable=False)
    # Plain integer, not a foreign key: the audit trail outlives the post row.
    id_of_changed_post: Mapped[int | None] = mapped_column(Integer, nullable=True)
    name_of_changer: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
