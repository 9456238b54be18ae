import pytest
from fastapi.testclient import TestClient

from note_triage.api.main import app, get_service
from tests.fakes import FakeProvider, keyword_model

CATEGORIES = ["Groceries", "To-do", "Reminders", "Movies", "Shows", "Other"]


@pytest.fixture
def gemini():
    return FakeProvider("gemini", keyword_model)


@pytest.fixture
def client(make_service, gemini):
    service = make_service(gemini, FakeProvider("openai", configured=False))
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "primary": "gemini", "fallback": "none", "cacheSize": 0}


def test_classify(client):
    response = client.post("/classify", json={"text": "cilantro x2", "categories": ["Groceries", "Movies", "Other"]})

    assert response.status_code == 200
    body = response.json()
    assert body["category"] == "Groceries"
    assert body["provider"] == "gemini"
    assert body["cached"] is False
    assert set(body) >= {
        "subcategory",
        "confidence",
        "reason",
        "suggestedNewCategory",
        "suggestedNewSubcategory",
        "alternativeCategory",
        "ms",
    }


def test_classify_second_call_is_cached(client, gemini):
    payload = {"text": "pick up Rishi at 4:30", "categories": ["Reminders", "To-do", "Other"]}

    first = client.post("/classify", json=payload).json()
    second = client.post("/classify", json={**payload, "categories": ["other", "to-do", "reminders"]}).json()

    assert second["cached"] is True
    assert first["category"] == "Reminders"
    # Same entry, re-cased for the second caller
    assert second["category"] == "reminders"
    assert gemini.calls == 1


def test_classify_accepts_legacy_field_names(client, gemini):
    response = client.post(
        "/classify",
        json={
            "text": "cilantro x2",
            "categories": CATEGORIES,
            "subcategoriesByCat": {"Groceries": ["Produce"]},
            "hints": {"Groceries": ["dhania"]},
            "preferredLanguages": ["hi"],
        },
    )

    assert response.status_code == 200
    prompt = gemini.prompts[0]
    assert '"Produce"' in prompt
    assert '"dhania"' in prompt
    assert '"hi"' in prompt


@pytest.mark.parametrize(
    "payload",
    [
        {"categories": CATEGORIES},
        {"text": "eggs"},
        {"text": "eggs", "categories": "Groceries"},
        {"text": "   ", "categories": CATEGORIES},
    ],
)
def test_classify_rejects_invalid_requests(client, gemini, payload):
    response = client.post("/classify", json=payload)

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"
    assert gemini.calls == 0


def test_classify_upstream_error(make_service):
    service = make_service(FakeProvider("gemini", configured=False), FakeProvider("openai", configured=False))
    app.dependency_overrides[get_service] = lambda: service
    try:
        response = TestClient(app).post("/classify", json={"text": "eggs", "categories": CATEGORIES})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 502
    assert response.json()["error"] == "Upstream error"


def test_classify_batch_aligns_with_non_empty_lines(client):
    text = "- cilantro x2\n\n   \n* call mom tomorrow\n[ ] watch Moana\n"

    response = client.post("/classify-batch", json={"text": text, "categories": CATEGORIES})

    assert response.status_code == 200
    items = response.json()["items"]
    assert len(items) == 3
    assert [i["text"] for i in items] == ["- cilantro x2", "* call mom tomorrow", "[ ] watch Moana"]
    assert [i["category"] for i in items] == ["Groceries", "Reminders", "To-do"]
    assert "alternativeCategory" not in items[0]


def test_classify_batch_accepts_items_array(client):
    response = client.post("/classify-batch", json={"items": ["Rocky", "", "eggs x2"], "categories": CATEGORIES})

    assert [i["text"] for i in response.json()["items"]] == ["Rocky", "eggs x2"]


def test_classify_batch_without_lines_is_invalid(client):
    assert client.post("/classify-batch", json={"categories": CATEGORIES}).status_code == 400
    assert client.post("/classify-batch", json={"text": "\n \n", "categories": CATEGORIES}).status_code == 400


def test_analyze(make_service):
    gemini = FakeProvider(
        "gemini",
        {"items": [{"category": "Groceries", "confidence": 0.9}, {"category": "Shows", "confidence": 0.8}]},
    )
    service = make_service(gemini)
    app.dependency_overrides[get_service] = lambda: service
    try:
        client = TestClient(app)
        payload = {"lines": ["- cilantro x2", "", "Friends", "Rambo"], "categories": CATEGORIES}
        first = client.post("/analyze", json=payload).json()
        second = client.post("/analyze", json=payload).json()
    finally:
        app.dependency_overrides.clear()

    assert [i["text"] for i in first["items"]] == ["- cilantro x2", "Friends", "Rambo"]
    assert [i["category"] for i in first["items"]] == ["Groceries", "Shows", "Other"]
    assert first["provider"] == "gemini"
    assert first["cached"] is False
    assert second["cached"] is True
    assert second["items"] == first["items"]
    assert gemini.calls == 1
