from pydantic import BaseModel, Field

from messenger_crm.service.status import ConversationStatus


class SendMessageRequest(BaseModel):
    text: str = Field(..., min_length=1, description="Message body sent to the customer")


class UpdateStatusRequest(BaseModel):
    status: ConversationStatus = Field(..., description="active | archived | needs_follow_up")
