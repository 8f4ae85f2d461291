from typing import List

from pydantic import BaseModel


class ProcessedFollowUp(BaseModel):
    id: str
    response: str


class FollowUpResponse(BaseModel):
    success: bool = True
    candidates: int = 0
    failed: int = 0
    skipped: int = 0
    processed: List[ProcessedFollowUp]
