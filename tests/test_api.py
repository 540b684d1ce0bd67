from exceptions import LLMError, LLMParseError, PersistenceError
from models import Analysis


def analysis_count(store):
    with store.session() as db:
        return db.query(Analysis).count()


def test_list_comments_returns_seeded_set(client):
    response = client.get("/api/comments")

    assert response.status_code == 200
    comments = response.json()
    assert len(comments) == 17
    assert set(comments[0]) == {
        "id",
        "text",
        "status",
        "translated_text",
        "detected_language",
        "topic",
        "sentiment",
        "urgency",
        "requires_response",
        "inappropriate_content",
        "explanation",
        "response_text",
    }


def test_analyze_single_comment(client, fake_llm):
    response = client.post("/api/analyze", json={"id": 3})

    assert response.status_code == 200
    assert fake_llm.analyze_calls == [
        [{"id": 3, "text": "Can we get a dark mode? My eyes hurt after staring at this all day."}]
    ]
    comments = {c["id"]: c for c in response.json()}
    assert comments[3]["topic"] == "Suggestion"
    assert comments[3]["explanation"] == "Comment 3 asks for a change."
    assert comments[4]["topic"] is None


def test_analyze_all_without_body(client, fake_llm):
    response = client.post("/api/analyze")

    assert response.status_code == 200
    assert len(fake_llm.analyze_calls[0]) == 17
    assert all(c["topic"] == "Suggestion" for c in response.json())


def test_analyze_unknown_id_is_404_without_changes(client, store, fake_llm):
    response = client.post("/api/analyze", json={"id": 999})

    assert response.status_code == 404
    assert response.json() == {"error": "Comment not found"}
    assert fake_llm.analyze_calls == []
    assert analysis_count(store) == 0


def test_analyze_skips_keys_outside_request(client, store, fake_llm):
    fake_llm.analysis_result = {
        "3": {"topic": "Suggestion"},
        "abc": {"topic": "Other"},
        "5": {"topic": "Other"},
    }

    response = client.post("/api/analyze", json={"id": 3})

    assert response.status_code == 200
    assert analysis_count(store) == 1
    assert store.get_comment(5)["topic"] is None


def test_analyze_tolerates_missing_comment_keys(client, fake_llm):
    fake_llm.analysis_result = {"1": {"topic": "Praise"}}

    response = client.post("/api/analyze")

    assert response.status_code == 200
    topics = [c["topic"] for c in response.json()]
    assert topics[0] == "Praise"
    assert topics[1:] == [None] * 16


def test_analyze_twice_replaces(client, store, fake_llm):
    client.post("/api/analyze", json={"id": 3})
    fake_llm.analysis_result = {"3": {"topic": "Praise"}}
    client.post("/api/analyze", json={"id": 3})

    assert analysis_count(store) == 1
    assert store.get_comment(3)["topic"] == "Praise"


def test_llm_failure_is_500_with_message(client, fake_llm):
    fake_llm.error = LLMParseError("Failed to parse LLM response as JSON: Sorry, I")

    response = client.post("/api/analyze", json={"id": 3})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to parse LLM response as JSON: Sorry, I"}


def test_reset_restores_demo_state(client, store):
    store.save_analysis(1, {"topic": "Praise"})
    store.save_action(1, "published", "Thanks!")
    store.save_translation(1, "Danke")

    response = client.post("/api/reset")

    assert response.status_code == 200
    for comment in response.json():
        assert comment["status"] == "unreviewed"
        assert comment["translated_text"] is None
        assert comment["topic"] is None
        assert comment["response_text"] is None


def test_generate_response(client, fake_llm):
    response = client.post(
        "/api/generate-response",
        json={"id": 1, "type": "Thank You", "language": "German"},
    )

    assert response.status_code == 200
    assert response.json() == {"response": "Thank You reply in German"}
    comment, response_type, language = fake_llm.draft_calls[0]
    assert comment["id"] == 1
    assert response_type == "Thank You"
    assert language == "German"


def test_generate_response_defaults(client, fake_llm):
    response = client.post("/api/generate-response", json={"id": 2})

    assert response.status_code == 200
    assert response.json() == {"response": "Custom reply in English"}


def test_generate_response_missing_id(client, fake_llm):
    response = client.post("/api/generate-response", json={"type": "Custom"})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing comment ID"}
    assert fake_llm.draft_calls == []


def test_generate_response_unknown_id(client, fake_llm):
    response = client.post("/api/generate-response", json={"id": 404})

    assert response.status_code == 404
    assert fake_llm.draft_calls == []


def test_generate_response_rejects_unknown_type(client, fake_llm):
    response = client.post("/api/generate-response", json={"id": 1, "type": "Insult"})

    assert response.status_code == 400
    assert "error" in response.json()
    assert fake_llm.draft_calls == []


def test_submit_action_with_response(client):
    response = client.post(
        "/api/submit-action",
        json={"id": 4, "status": "blocked", "response": "thanks"},
    )

    assert response.status_code == 200
    comment = next(c for c in response.json() if c["id"] == 4)
    assert comment["status"] == "blocked"
    assert comment["response_text"] == "thanks"


def test_submit_action_status_only_keeps_response(client):
    client.post("/api/submit-action", json={"id": 4, "status": "published", "response": "hello"})
    response = client.post("/api/submit-action", json={"id": 4, "status": "blocked"})

    comment = next(c for c in response.json() if c["id"] == 4)
    assert comment["status"] == "blocked"
    assert comment["response_text"] == "hello"


def test_submit_action_missing_fields(client):
    assert client.post("/api/submit-action", json={"id": 4}).status_code == 400
    response = client.post("/api/submit-action", json={"status": "published"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields"}


def test_submit_action_unknown_status(client):
    response = client.post("/api/submit-action", json={"id": 4, "status": "archived"})
    assert response.status_code == 400


def test_submit_action_unknown_comment(client, store):
    response = client.post("/api/submit-action", json={"id": 999, "status": "published", "response": "x"})

    assert response.status_code == 404
    assert store.get_comment(999) is None


def test_translate(client, fake_llm):
    response = client.post("/api/translate", json={"id": 17})

    assert response.status_code == 200
    comment = next(c for c in response.json() if c["id"] == 17)
    assert comment["translated_text"] == "DE: Bu lanet uygulama çalışmıyor!"


def test_translate_missing_id(client, fake_llm):
    response = client.post("/api/translate", json={})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing comment ID"}
    assert fake_llm.translate_calls == []


def test_translate_unknown_id(client, fake_llm):
    response = client.post("/api/translate", json={"id": 99})

    assert response.status_code == 404
    assert fake_llm.translate_calls == []


def test_translate_llm_unreachable(client, store, fake_llm):
    fake_llm.error = LLMError("Ollama connection error: refused")

    response = client.post("/api/translate", json={"id": 1})

    assert response.status_code == 500
    assert "Ollama connection error" in response.json()["error"]
    assert store.get_comment(1)["translated_text"] is None


def test_unknown_route_is_404(client):
    response = client.get("/api/nothing")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


def test_wrong_method_is_404(client):
    response = client.get("/api/reset")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "service": "comment-triage"}


def test_persistence_failure_is_500_with_message(lenient_client, store, monkeypatch):
    def broken_save(comment_id, translated_text):
        raise PersistenceError("Database error: disk I/O error")

    monkeypatch.setattr(store, "save_translation", broken_save)

    response = lenient_client.post("/api/translate", json={"id": 1})

    assert response.status_code == 500
    assert response.json() == {"error": "Database error: disk I/O error"}


def test_unexpected_failure_is_500_with_message(lenient_client, store, monkeypatch):
    def broken_reset():
        raise KeyError("x")

    monkeypatch.setattr(store, "reset_demo", broken_reset)

    response = lenient_client.post("/api/reset")

    assert response.status_code == 500
    assert response.json() == {"error": "'x'"}


def test_analyze_batch_keeps_analyses_saved_before_failure(client, store, fake_llm, monkeypatch):
    fake_llm.analysis_result = {
        "1": {"topic": "Praise"},
        "2": {"topic": "Service Complaint"},
        "3": {"topic": "Suggestion"},
    }
    save_analysis = store.save_analysis

    def failing_on_second(comment_id, analysis):
        if comment_id == 2:
            raise PersistenceError("Database error: database is locked")
        save_analysis(comment_id, analysis)

    monkeypatch.setattr(store, "save_analysis", failing_on_second)

    response = client.post("/api/analyze")

    assert response.status_code == 500
    assert response.json() == {"error": "Database error: database is locked"}
    assert store.get_comment(1)["topic"] == "Praise"
    assert store.get_comment(2)["topic"] is None
    assert store.get_comment(3)["topic"] is None
