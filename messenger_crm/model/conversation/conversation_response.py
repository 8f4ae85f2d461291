from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ConversationItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    psid: str
    customer_name: Optional[str] = None
    status: str
    last_interaction_at: Optional[datetime] = None
    last_message_by: Optional[str] = None
    last_message_preview: Optional[str] = None
    unread_count: int = 0
    auto_reply_sent: bool = False


class MessageItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    conversation_id: str
    content: str
    sender_type: str
    meta_message_id: Optional[str] = None
    created_at: datetime


class ConversationListResponse(BaseModel):
    conversations: List[ConversationItem]


class MessageListResponse(BaseModel):
    conversation_id: str
    messages: List[MessageItem]


class SendMessageResponse(BaseModel):
    success: bool = True
    message_id: str
    meta_message_id: str
