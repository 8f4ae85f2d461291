import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from messenger_crm.db.session import Base


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Parent conversation row
    conversation_id = Column(String(36), ForeignKey("conversations.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    # user | page
    sender_type = Column(String(16), nullable=False)
    # Remote message id; NULL for local drafts. Dedup key for everything remote.
    meta_message_id = Column(String, unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
