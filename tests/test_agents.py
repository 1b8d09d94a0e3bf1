# tests/test_agents.py
from types import SimpleNamespace

import pytest

from agents import ChatAgent, ModelError


class RecordingAgent:

    def __init__(self, output="  Hi there  ", error=None):
        self.output = output
        self.error = error
        self.inputs = []

    async def run(self, content):
        self.inputs.append(content)
        if self.error:
            raise self.error
        return SimpleNamespace(output=self.output)


def test_missing_key_is_rejected():
    with pytest.raises(ValueError):
        ChatAgent(model_provider="gemini")
    with pytest.raises(ValueError):
        ChatAgent(model_provider="openai")


def test_unknown_provider_is_rejected():
    with pytest.raises(ValueError):
        ChatAgent(model_provider="mystery", gemini_api_key="k")


@pytest.mark.asyncio
async def test_generate_reply_strips_output():
    agent = ChatAgent(model_provider="gemini", gemini_api_key="test-key")
    agent.chat_agent = RecordingAgent()

    assert await agent.generate_reply("prompt") == "Hi there"
    assert agent.chat_agent.inputs == ["prompt"]


@pytest.mark.asyncio
async def test_generate_reply_sends_image_as_binary_content():
    agent = ChatAgent(model_provider="gemini", gemini_api_key="test-key")
    agent.chat_agent = RecordingAgent()

    await agent.generate_reply("what is this?", image_bytes=b"PNG", media_type="image/png")

    sent = agent.chat_agent.inputs[0]
    assert sent[0] == "what is this?"
    assert sent[1].data == b"PNG"
    assert sent[1].media_type == "image/png"


@pytest.mark.asyncio
async def test_provider_failure_becomes_model_error():
    agent = ChatAgent(model_provider="gemini", gemini_api_key="test-key")
    agent.chat_agent = RecordingAgent(error=RuntimeError("quota exceeded"))

    with pytest.raises(ModelError, match="quota exceeded"):
        await agent.generate_reply("prompt")
