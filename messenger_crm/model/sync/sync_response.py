from typing import List, Optional

from pydantic import BaseModel, Field


class SyncResponse(BaseModel):
    success: bool = True
    count: int = Field(..., description="Conversations reconciled in this pass")
    skipped: int = 0
    failed: int = 0
    pages: int = 0
    stop_reason: str = ""
    message: str = ""
    logs: Optional[List[str]] = None
