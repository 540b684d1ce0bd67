import pytest
from fastapi.testclient import TestClient

import ai_utils
from main import create_app
from store import CommentStore


class FakeLLM:
    """Подменяет функции ai_utils и запоминает вызовы."""

    def __init__(self):
        self.analyze_calls = []
        self.draft_calls = []
        self.translate_calls = []
        self.analysis_result = None
        self.error = None

    def analyze_comments(self, comments):
        self.analyze_calls.append(comments)
        if self.error:
            raise self.error
        if self.analysis_result is not None:
            return self.analysis_result
        return {
            str(c["id"]): {
                "detected_language": "en",
                "topic": "Suggestion",
                "sentiment": "Neutral",
                "urgency": "Low",
                "requires_response": "Maybe",
                "inappropriate_content": "None",
                "explanation": f"Comment {c['id']} asks for a change.",
            }
            for c in comments
        }

    def draft_response(self, comment, response_type="Custom", language="English"):
        self.draft_calls.append((comment, response_type, language))
        if self.error:
            raise self.error
        return f"{response_type} reply in {language}"

    def translate_text(self, text, target_language="German"):
        self.translate_calls.append(text)
        if self.error:
            raise self.error
        return ai_utils.Translation(source_language="en", translated_text=f"DE: {text}")


@pytest.fixture
def store():
    comment_store = CommentStore("sqlite://")
    comment_store.open()
    yield comment_store
    comment_store.close()


@pytest.fixture
def fake_llm(monkeypatch):
    fake = FakeLLM()
    monkeypatch.setattr(ai_utils, "analyze_comments", fake.analyze_comments)
    monkeypatch.setattr(ai_utils, "draft_response", fake.draft_response)
    monkeypatch.setattr(ai_utils, "translate_text", fake.translate_text)
    return fake


@pytest.fixture
def client(store, fake_llm):
    app = create_app(store=store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def lenient_client(store, fake_llm):
    """Клиент, который отдаёт 500 как ответ, а не пробрасывает исключение."""
    app = create_app(store=store)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
