from typing import Optional

from pydantic import BaseModel, Field


class SettingsRequest(BaseModel):
    meta_page_access_token: Optional[str] = Field(None, description="Page access token used for Graph API calls")


class SettingsResponse(BaseModel):
    user_id: str
    has_access_token: bool
