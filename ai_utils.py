import json
import logging
import os
import re
from typing import Any, Dict, List, Literal, NamedTuple, Optional

import requests
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from exceptions import LLMError, LLMParseError

load_dotenv()

OLLAMA_URL = os.getenv("OLLAMA_URL", "http://localhost:11434/api/chat")

# ⚠️ Модель можно сменить в .env, например на llama3 или qwen2.5
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "mistral")

# 🔹 локальная модель может думать минутами
OLLAMA_TIMEOUT = int(os.getenv("OLLAMA_TIMEOUT", "300"))

TRANSLATE_TO = os.getenv("TRANSLATE_TO", "German")
DEFAULT_RESPONSE_LANGUAGE = os.getenv("DEFAULT_RESPONSE_LANGUAGE", "English")

ANALYSIS_TEMPERATURE = 0.1
RESPONSE_TEMPERATURE = 0.7
TRANSLATION_TEMPERATURE = 0.2

RAW_EXCERPT_LENGTH = 200

ResponseType = Literal["Thank You", "Redirect", "Custom"]

logger = logging.getLogger(__name__)


# =========================================================================
# Схемы структурированного ответа
# =========================================================================

class CommentAnalysis(BaseModel):
    detected_language: str = Field(
        ...,
        description="ISO 639-1 language code of the comment (e.g., en, de, hr, tr, sr)",
    )
    topic: Literal[
        "Service Complaint",
        "Information Request",
        "Praise",
        "Policy Feedback",
        "Accessibility Issue",
        "Technical Problem",
        "Suggestion",
        "Other",
    ]
    sentiment: Literal["Positive", "Negative", "Neutral"]
    urgency: Literal["High", "Medium", "Low"]
    requires_response: Literal["Yes", "No", "Maybe"]
    inappropriate_content: Literal[
        "None", "Profanity", "Hate Speech", "Threatening", "Personal Attack", "Spam"
    ]
    explanation: str


class DraftedResponse(BaseModel):
    response_text: str = Field(..., description="The drafted response to the user")
    tone_used: Literal["Formal", "Friendly", "Empathetic", "Neutral"]
    follow_up_suggested: Literal["Yes", "No"]


class TranslationResult(BaseModel):
    source_language: str = Field(
        ..., description="Detected source language (ISO 639-1 code)"
    )
    translated_text: str


# ответ на анализ — объект {"<id комментария>": CommentAnalysis, ...}
ANALYSIS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": CommentAnalysis.model_json_schema(),
}
RESPONSE_SCHEMA: Dict[str, Any] = DraftedResponse.model_json_schema()
TRANSLATION_SCHEMA: Dict[str, Any] = TranslationResult.model_json_schema()


class Translation(NamedTuple):
    source_language: Optional[str]
    translated_text: str


# =========================================================================
# Промпты
# =========================================================================

ANALYSIS_SYSTEM_PROMPT = (
    "You analyze user feedback for a public institution. Detect the language first, "
    "then analyze content IN THAT LANGUAGE for inappropriate content.\n\n"
    "Topics: Service Complaint, Information Request, Praise, Policy Feedback, "
    "Accessibility Issue, Technical Problem, Suggestion, Other\n"
    "Urgency: High (safety/legal/vulnerable), Medium (needs follow-up), Low (general)"
)

RESPONSE_SYSTEM_PROMPT = (
    "Draft professional, empathetic responses for a public institution. "
    "Be warm but formal. Staff will review before sending."
)

TRANSLATION_SYSTEM_PROMPT = (
    "Translate accurately, preserving tone. "
    "If content is inappropriate, translate literally."
)


def build_analysis_prompt(comments: List[Dict[str, Any]]) -> str:
    comments_json = json.dumps(comments, ensure_ascii=False, indent=4)
    return (
        "Analyze the following user feedback comments. Each comment has an ID and text.\n\n"
        "For each comment, provide:\n"
        '- detected_language: ISO 639-1 code (e.g., "en", "de", "hr", "tr", "sr")\n'
        "- topic: Category from the allowed list\n"
        "- sentiment: Positive, Negative, or Neutral\n"
        "- urgency: High, Medium, or Low\n"
        "- requires_response: Whether this comment warrants a reply\n"
        '- inappropriate_content: Type of problematic content, or "None"\n'
        "- explanation: Brief reasoning for your assessment (2-3 sentences)\n\n"
        "IMPORTANT: Detect inappropriate content in ANY language, not just English. "
        "Analyze the text in its original language before categorizing.\n\n"
        "Comments to analyze:\n"
        f"{comments_json}"
    )


def build_response_prompt(
    comment: Dict[str, Any], response_type: str, language: str
) -> str:
    """
    Если комментарий уже анализировали, добавляем тему/тональность/срочность,
    чтобы модель подстроила тон. Без анализа эта строка просто пропускается.
    """
    analysis_context = ""
    if comment.get("topic"):
        analysis_context = (
            f"Prior Analysis: Topic={comment['topic']}, "
            f"Sentiment={comment.get('sentiment') or 'Unknown'}, "
            f"Urgency={comment.get('urgency') or 'Unknown'}\n"
        )

    return (
        "Draft a response to this user comment.\n\n"
        f"Original Comment: \"{comment['text']}\"\n"
        f"{analysis_context}\n"
        f"Response Type: {response_type}\n"
        '- "Thank You": Acknowledge and express appreciation\n'
        '- "Redirect": Politely direct to appropriate department/resource\n'
        '- "Custom": Address the specific concern or question\n\n'
        f"Output Language: {language}\n\n"
        "Guidelines:\n"
        "- Keep response concise but complete (2-4 sentences typically)\n"
        "- Use appropriate formality for a public institution\n"
        "- If the comment was negative, acknowledge the concern empathetically\n"
        "- Do not make promises beyond providing information or escalating"
    )


def build_translation_prompt(text: str, target_language: str) -> str:
    return (
        f"Translate the following text to {target_language}.\n\n"
        "Original text:\n"
        f"\"{text}\"\n\n"
        "Provide the translation and detect the source language."
    )


# =========================================================================
# HTTP и разбор ответа
# =========================================================================

def call_ollama(
    system_prompt: str,
    user_prompt: str,
    schema: Dict[str, Any],
    temperature: float,
) -> str:
    """
    Один синхронный запрос к Ollama /api/chat со схемой в поле format.
    Возвращает сырой текст ответа модели. Без ретраев: любая ошибка сети
    или таймаут сразу превращается в LLMError.
    """
    body = {
        "model": OLLAMA_MODEL,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "stream": False,
        "format": schema,
        "options": {"temperature": temperature},
    }

    try:
        response = requests.post(OLLAMA_URL, json=body, timeout=OLLAMA_TIMEOUT)
    except requests.RequestException as e:
        logger.error("Ollama request error: %s", e)
        raise LLMError(f"Ollama connection error: {e}") from e

    if response.status_code != 200:
        logger.error(
            "Ollama error (status=%s): %s",
            response.status_code,
            response.text[:RAW_EXCERPT_LENGTH],
        )
        raise LLMError(f"Ollama request failed with status {response.status_code}")

    try:
        return response.json()["message"]["content"]
    except (ValueError, KeyError, TypeError) as e:
        raise LLMError(
            f"Invalid response from Ollama: {response.text[:RAW_EXCERPT_LENGTH]}"
        ) from e


def parse_json_response(text: str) -> Dict[str, Any]:
    """
    Разбираем ответ модели. Ожидаем JSON, но на всякий случай:
    - сначала строгий json.loads;
    - если не вышло — выдёргиваем первую фигурную скобку {...} из текста
      (модель иногда заворачивает JSON в markdown или пояснения);
    - если и это не объект — LLMParseError с началом сырого ответа.
    """
    raw = text or ""

    try:
        data = json.loads(raw)
    except ValueError:
        data = None
        match = re.search(r"\{.*\}", raw, flags=re.S)
        if match:
            logger.warning("Ответ модели не чистый JSON, пробуем вырезать объект")
            try:
                data = json.loads(match.group(0))
            except ValueError:
                data = None

    if not isinstance(data, dict):
        raise LLMParseError(
            f"Failed to parse LLM response as JSON: {raw[:RAW_EXCERPT_LENGTH]}"
        )

    return data


# =========================================================================
# Операции
# =========================================================================

def analyze_comments(comments: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Анализ пачки комментариев [{id, text}, ...].
    Возвращает {"<id>": {...поля анализа...}}. Значения enum не перепроверяем —
    доверяем схеме; отсутствующие id просто не попадут в словарь.
    """
    raw = call_ollama(
        ANALYSIS_SYSTEM_PROMPT,
        build_analysis_prompt(comments),
        ANALYSIS_SCHEMA,
        ANALYSIS_TEMPERATURE,
    )
    return parse_json_response(raw)


def draft_response(
    comment: Dict[str, Any],
    response_type: str = "Custom",
    language: str = DEFAULT_RESPONSE_LANGUAGE,
) -> str:
    raw = call_ollama(
        RESPONSE_SYSTEM_PROMPT,
        build_response_prompt(comment, response_type, language),
        RESPONSE_SCHEMA,
        RESPONSE_TEMPERATURE,
    )
    parsed = parse_json_response(raw)
    return parsed.get("response_text") or "Failed to generate response."


def translate_text(text: str, target_language: str = TRANSLATE_TO) -> Translation:
    raw = call_ollama(
        TRANSLATION_SYSTEM_PROMPT,
        build_translation_prompt(text, target_language),
        TRANSLATION_SCHEMA,
        TRANSLATION_TEMPERATURE,
    )
    parsed = parse_json_response(raw)
    return Translation(
        source_language=parsed.get("source_language"),
        translated_text=parsed.get("translated_text") or "Failed to translate.",
    )
