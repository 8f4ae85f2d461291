import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from messenger_crm.db.session import Base


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Remote participant id (PSID); the single upsert conflict key
    psid = Column(String, unique=True, index=True, nullable=False)
    customer_name = Column(String, nullable=True)
    # Stored through the status vocabulary, see service/status.py
    status = Column(String, nullable=False)
    last_interaction_at = Column(DateTime(timezone=True), nullable=True, index=True)
    # user | page
    last_message_by = Column(String(16), nullable=True)
    last_message_preview = Column(String, nullable=True)
    unread_count = Column(Integer, default=0, nullable=False)
    # Gates the follow-up drafting pipeline
    auto_reply_sent = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
