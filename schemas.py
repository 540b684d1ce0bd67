from pydantic import BaseModel
from typing import Any, Optional

from ai_utils import ResponseType
from models import CommentStatus


class CommentOut(BaseModel):
    id: int
    text: str
    status: str
    translated_text: Optional[str] = None
    detected_language: Optional[str] = None
    topic: Optional[str] = None
    sentiment: Optional[str] = None
    urgency: Optional[str] = None
    requires_response: Optional[str] = None
    inappropriate_content: Optional[str] = None
    explanation: Optional[Any] = None
    response_text: Optional[str] = None


# id во входных моделях необязательный: отсутствие проверяем в хэндлере (400)

class AnalyzeIn(BaseModel):
    id: Optional[int] = None


class GenerateResponseIn(BaseModel):
    id: Optional[int] = None
    type: ResponseType = "Custom"
    language: Optional[str] = None


class GeneratedResponseOut(BaseModel):
    response: str


class SubmitActionIn(BaseModel):
    id: Optional[int] = None
    status: Optional[CommentStatus] = None
    response: Optional[str] = None   # текст ответа, после редактирования


class TranslateIn(BaseModel):
    id: Optional[int] = None
