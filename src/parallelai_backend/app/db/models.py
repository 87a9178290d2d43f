# src/parallelai_backend/app/db/models.py

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import relationship

from .session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationEntry(Base):
    """
    One completed exchange for one caller.

    mode:
      - "multi"  : fan-out across every configured model
      - "single" : one model, named in selected_model
    """

    __tablename__ = "conversation_entries"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # opaque caller identity handed over by the auth gate (JWT 'sub')
    user_id = Column(String, nullable=False, index=True)
    question = Column(Text, nullable=False)
    mode = Column(String(16), nullable=False)
    selected_model = Column(String, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    results = relationship(
        "EntryResult",
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="EntryResult.position",
        lazy="selectin",
    )


class EntryResult(Base):
    __tablename__ = "entry_results"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    entry_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("conversation_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # 'answer' rows keep registry order via position; at most one 'consensus' row
    role = Column(String(16), nullable=False)
    position = Column(Integer, nullable=False)

    model_id = Column(String, nullable=False)
    answer_text = Column(Text, nullable=False)
    status = Column(String(16), nullable=False)
    error_detail = Column(Text)
    latency_ms = Column(Integer)

    entry = relationship("ConversationEntry", back_populates="results")
