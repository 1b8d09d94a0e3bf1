# tests/test_endpoints.py
import os

import requests
from sqlmodel import select

from api.image_chain import build_default_chain
from models import FileUpload, GeneratedImage
from settings import get_settings


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_index_serves_ui(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "chatMessages" in r.text


def test_ui_script_builds_reply_images_as_elements(client):
    r = client.get("/static/script.js")

    assert r.status_code == 200
    script = r.text
    # reply text never reaches an HTML attribute through string interpolation
    assert 'alt="$1"' not in script
    assert 'src="${src}"' not in script
    assert "img.src = src;" in script
    assert "['/generated/', '/uploads/', 'https:']" in script


def test_chat_replies_and_persists(client, fake_agent):
    r = client.post("/api/chat", json={"message": "Hi", "sessionId": "abc"})

    assert r.status_code == 200
    assert r.json() == {"response": "Hello from the model", "sessionId": "abc"}
    assert fake_agent.prompts[0].endswith("User: Hi\nAssistant:")

    history = client.get("/api/history/abc").json()
    assert history["count"] == 2
    assert [m["role"] for m in history["messages"]] == ["user", "assistant"]


def test_chat_includes_previous_turns(client, fake_agent):
    client.post("/api/chat", json={"message": "My name is Ada", "sessionId": "abc"})
    client.post("/api/chat", json={"message": "What is my name?", "sessionId": "abc"})

    second_prompt = fake_agent.prompts[1]
    assert "User: My name is Ada" in second_prompt
    assert "Assistant: Hello from the model" in second_prompt
    assert second_prompt.endswith("User: What is my name?\nAssistant:")


def test_chat_defaults_session(client):
    r = client.post("/api/chat", json={"message": "Hi"})
    assert r.json()["sessionId"] == "default"


def test_chat_requires_message(client):
    r = client.post("/api/chat", json={"message": "   ", "sessionId": "abc"})
    assert r.status_code == 400
    assert r.json() == {"error": "Message is required"}

    r = client.post("/api/chat", json={"sessionId": "abc"})
    assert r.status_code == 400


def test_chat_model_failure_is_500_and_not_persisted(client, fake_agent):
    fake_agent.fail = True

    r = client.post("/api/chat", json={"message": "Hi", "sessionId": "abc"})

    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Sorry, I encountered an error. Please try again."
    assert "upstream unavailable" in body["details"]
    assert client.get("/api/history/abc").json()["count"] == 0


def test_chat_unknown_file_is_404(client):
    r = client.post(
        "/api/chat",
        json={"message": "What is this?", "sessionId": "abc", "fileUrl": "/uploads/nope.txt"},
    )
    assert r.status_code == 404
    assert "nope.txt" in r.json()["error"]


def test_chat_with_text_file(client, fake_agent):
    upload = client.post(
        "/api/upload",
        files={"file": ("notes.txt", b"The secret word is pineapple.", "text/plain")},
        data={"sessionId": "abc"},
    ).json()["file"]

    r = client.post(
        "/api/chat",
        json={"message": "What is the secret word?", "sessionId": "abc", "fileUrl": upload["url"]},
    )

    assert r.status_code == 200
    assert "pineapple" in fake_agent.prompts[0]
    history = client.get("/api/history/abc").json()["messages"]
    assert history[0]["content"] == "What is the secret word?\n[Attached file: notes.txt]"


def test_file_from_another_session_is_not_found(client):
    upload = client.post(
        "/api/upload",
        files={"file": ("notes.txt", b"private", "text/plain")},
        data={"sessionId": "owner"},
    ).json()["file"]

    r = client.post(
        "/api/chat",
        json={"message": "read it", "sessionId": "intruder", "fileUrl": upload["url"]},
    )
    assert r.status_code == 404


def test_upload_stores_file(client, db_session):
    r = client.post(
        "/api/upload",
        files={"file": ("data.csv", b"a,b\n1,2\n", "text/csv")},
        data={"sessionId": "abc"},
    )

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    stored = body["file"]
    assert stored["originalName"] == "data.csv"
    assert stored["size"] == 8
    assert stored["url"] == f"/uploads/{stored['filename']}"
    assert stored["filename"].endswith(".csv")

    served = client.get(stored["url"])
    assert served.status_code == 200
    assert served.content == b"a,b\n1,2\n"


def test_upload_too_large_is_rejected_before_storage(client, db_session):
    settings = get_settings()
    before = set(os.listdir(settings.uploads_dir))

    r = client.post(
        "/api/upload",
        files={"file": ("big.txt", b"x" * (settings.max_upload_bytes + 1), "text/plain")},
        data={"sessionId": "abc"},
    )

    assert r.status_code == 413
    assert r.json() == {"error": "File too large. Maximum size is 10MB."}
    assert db_session.exec(select(FileUpload)).all() == []
    assert set(os.listdir(settings.uploads_dir)) == before


def test_upload_storage_failure_removes_stored_file(client, monkeypatch):
    from datamanager.data_manager_interface import StorageError
    from datamanager.sqlite_data_manager import SQLiteDataManager

    async def failing_save(self, session_id, **kwargs):
        raise StorageError("Saving file upload failed: disk I/O error")

    monkeypatch.setattr(SQLiteDataManager, "save_file_upload", failing_save)
    settings = get_settings()
    before = set(os.listdir(settings.uploads_dir))

    r = client.post(
        "/api/upload",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        data={"sessionId": "abc"},
    )

    assert r.status_code == 500
    assert r.json() == {"error": "Saving file upload failed: disk I/O error"}
    assert set(os.listdir(settings.uploads_dir)) == before


def test_upload_rejects_disallowed_type(client):
    r = client.post(
        "/api/upload",
        files={"file": ("run.exe", b"MZ\x90\x00", "application/x-msdownload")},
        data={"sessionId": "abc"},
    )
    assert r.status_code == 400
    assert "not allowed" in r.json()["error"]


def test_upload_without_file(client):
    r = client.post("/api/upload", data={"sessionId": "abc"})
    assert r.status_code == 400
    assert r.json() == {"error": "No file uploaded"}


def test_clear_conversation(client):
    client.post("/api/chat", json={"message": "Hi", "sessionId": "abc"})
    client.post("/api/chat", json={"message": "Hi", "sessionId": "other"})

    r = client.post("/api/clear", json={"sessionId": "abc"})

    assert r.status_code == 200
    assert r.json() == {"message": "Conversation cleared", "deletedRows": 3}
    assert client.get("/api/history/abc").json()["count"] == 0
    assert client.get("/api/history/other").json()["count"] == 2


def test_history_limit(client):
    for i in range(3):
        client.post("/api/chat", json={"message": f"m{i}", "sessionId": "abc"})

    body = client.get("/api/history/abc?limit=2").json()

    assert body["sessionId"] == "abc"
    assert body["count"] == 2
    assert [m["content"] for m in body["messages"]] == ["m2", "Hello from the model"]


def test_unexpected_error_uses_error_shape(client, monkeypatch):
    import main
    from fastapi.testclient import TestClient

    async def broken_stats(self):
        raise ZeroDivisionError("division by zero")

    monkeypatch.setattr(main.ChatService, "get_stats", broken_stats)
    # the dependency overrides installed by the client fixture still apply
    quiet_client = TestClient(main.app, raise_server_exceptions=False)

    r = quiet_client.get("/api/stats")

    assert r.status_code == 500
    assert r.json() == {
        "error": "Sorry, I encountered an error. Please try again.",
        "details": "division by zero",
    }


def test_stats(client):
    client.post("/api/chat", json={"message": "Hi", "sessionId": "a"})
    client.post("/api/chat", json={"message": "Hi", "sessionId": "b"})

    stats = client.get("/api/stats").json()

    assert stats["total_users"] == 2
    assert stats["total_messages"] == 4
    assert stats["user_messages"] == 2
    assert stats["bot_responses"] == 2


def test_export_empty_session(client):
    r = client.get("/api/export/nobody")

    assert r.status_code == 200
    assert 'filename="chat-export-nobody.json"' in r.headers["content-disposition"]
    body = r.json()
    assert body["sessionId"] == "nobody"
    assert body["messageCount"] == 0
    assert body["conversations"] == []
    assert body["files"] == []
    assert body["images"] == []


def test_export_session_with_turns(client):
    client.post("/api/chat", json={"message": "Hi", "sessionId": "abc"})

    body = client.get("/api/export/abc").json()

    assert body["messageCount"] == 1
    assert body["conversations"][0]["message"] == "Hi"
    assert body["conversations"][0]["response"] == "Hello from the model"


def test_unknown_route_uses_error_shape(client):
    r = client.get("/api/nothing-here")
    assert r.status_code == 404
    assert "error" in r.json()


def test_image_generation_falls_back_to_local_placeholder(client, db_session, monkeypatch):
    import main

    def unreachable(*args, **kwargs):
        raise requests.ConnectionError("network down")

    monkeypatch.setattr(requests, "get", unreachable)
    main.app.dependency_overrides[main.get_image_chain] = lambda: build_default_chain(get_settings())

    r = client.post(
        "/api/chat",
        json={"message": "a lighthouse at dusk", "sessionId": "abc", "generateImage": True},
    )

    assert r.status_code == 200
    body = r.json()
    assert body["imageSource"] == "local_placeholder"
    assert body["imageUrl"].startswith("/generated/")
    assert body["imageUrl"].endswith(".svg")
    assert f"]({body['imageUrl']})" in body["response"]

    served = client.get(body["imageUrl"])
    assert served.status_code == 200
    assert b"a lighthouse at dusk" in served.content

    images = db_session.exec(select(GeneratedImage)).all()
    assert len(images) == 1
    assert images[0].source == "local_placeholder"
    assert images[0].image_url == body["imageUrl"]

    history = client.get("/api/history/abc").json()["messages"]
    assert [(m["role"], m["content"]) for m in history] == [
        ("user", "a lighthouse at dusk"),
        ("assistant", body["response"]),
    ]
    exported = client.get("/api/export/abc").json()
    assert exported["messageCount"] == 1
    assert exported["imageCount"] == 1
    assert exported["conversations"][0]["response"] == body["response"]


def test_image_generation_without_any_image_describes_it(client, fake_agent):
    import main
    from api.image_chain import ImageFallbackChain

    main.app.dependency_overrides[main.get_image_chain] = lambda: ImageFallbackChain([])

    r = client.post(
        "/api/chat",
        json={"message": "a red balloon", "sessionId": "abc", "generateImage": True},
    )

    body = r.json()
    assert r.status_code == 200
    assert body["imageUrl"] is None
    assert body["imageSource"] == "description"
    assert "Hello from the model" in body["response"]
    assert fake_agent.prompts == ["Describe: a red balloon"]

    history = client.get("/api/history/abc").json()["messages"]
    assert [(m["role"], m["content"]) for m in history] == [
        ("user", "a red balloon"),
        ("assistant", body["response"]),
    ]
    exported = client.get("/api/export/abc").json()
    assert exported["messageCount"] == 1
    assert exported["imageCount"] == 0
    assert exported["conversations"][0]["message"] == "a red balloon"
