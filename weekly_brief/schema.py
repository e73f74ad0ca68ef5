from pydantic import BaseModel
from typing import List, Optional

class AssembleIn(BaseModel):
    edition_date: Optional[str] = None  # YYYY-MM-DD, defaults to today

class GenerateIn(BaseModel):
    edition_id: int
    sections: Optional[List[str]] = None  # editor_note | worth_watching | subject_lines | summaries

class EditionIn(BaseModel):
    edition_id: int

class SendIn(BaseModel):
    edition_id: int
    test_email: Optional[str] = None

class UnsubscribeIn(BaseModel):
    email: Optional[str] = None
    reason: Optional[str] = None
    feedback: Optional[str] = None

class ForwardIn(BaseModel):
    edition_id: Optional[int] = None
    sender_name: Optional[str] = None
    recipient_email: Optional[str] = None
