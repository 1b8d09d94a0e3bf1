# tests/conftest.py
import os
import tempfile

import pytest

# settings and the engine are read at import time, so the environment
# has to point at throwaway locations before any app module is imported
_TMP_ROOT = tempfile.mkdtemp(prefix="chat-tests-")
os.environ["MODEL_PROVIDER"] = "gemini"
os.environ["GEMINI_API_KEY"] = "test-key"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_ROOT, 'test.db')}"
os.environ["UPLOADS_DIR"] = os.path.join(_TMP_ROOT, "uploads")
os.environ["GENERATED_IMAGES_DIR"] = os.path.join(_TMP_ROOT, "generated_images")

from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import SQLModel, Session  # noqa: E402

from agents import ModelError  # noqa: E402
from api.image_chain import ImageFallbackChain  # noqa: E402
from api.image_sources import render_placeholder_svg  # noqa: E402
from datamanager.sqlite_data_manager import SQLiteDataManager  # noqa: E402
from db_utils import create_db_and_tables, engine  # noqa: E402
import models  # noqa: E402,F401


@pytest.fixture(autouse=True)
def fresh_database():
    """Every test starts from empty tables."""
    SQLModel.metadata.drop_all(engine)
    create_db_and_tables()
    yield


@pytest.fixture
def db_session():
    with Session(engine) as session:
        yield session


@pytest.fixture
def store(db_session):
    return SQLiteDataManager(db_session)


# --- Fake model gateway ---
class FakeAgent:
    """Records every prompt and answers with a canned reply."""

    def __init__(self, reply="Hello from the model", fail=False):
        self.reply = reply
        self.fail = fail
        self.prompts = []
        self.images = []

    async def generate_reply(self, prompt, image_bytes=None, media_type=None):
        self.prompts.append(prompt)
        self.images.append((image_bytes, media_type))
        if self.fail:
            raise ModelError("Model call failed: upstream unavailable")
        return self.reply

    async def describe_image(self, prompt):
        return await self.generate_reply(f"Describe: {prompt}")


@pytest.fixture
def fake_agent():
    return FakeAgent()


@pytest.fixture
def local_chain():
    """Image chain that never touches the network."""
    return ImageFallbackChain([("local_placeholder", render_placeholder_svg)])


@pytest.fixture
def client(fake_agent, local_chain):
    import main

    main.app.dependency_overrides[main.get_agent] = lambda: fake_agent
    main.app.dependency_overrides[main.get_image_chain] = lambda: local_chain
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
