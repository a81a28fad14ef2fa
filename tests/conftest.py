"""Shared fixtures: in-memory storage and a fake Gemini model."""

import json

import pytest

from tanoprego.agents import SmartAddAgent
from tanoprego.config.settings import AppSettings, GeminiSettings, StorageSettings
from tanoprego.services.storage import MemoryStore


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Stands in for genai.GenerativeModel; records prompts, replays answers."""

    def __init__(self, answer=None, error=None):
        self.answer = answer
        self.error = error
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if isinstance(self.answer, dict):
            return FakeResponse(json.dumps(self.answer))
        return FakeResponse(self.answer)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def storage_settings():
    return StorageSettings()


@pytest.fixture
def app_settings():
    return AppSettings()


@pytest.fixture
def unconfigured_agent():
    return SmartAddAgent(settings=GeminiSettings(api_key=None))


def make_agent(answer=None, error=None):
    model = FakeModel(answer=answer, error=error)
    return SmartAddAgent(settings=GeminiSettings(api_key=None), model=model), model


@pytest.fixture
def agent_factory():
    """make(answer=..., error=...) -> (agent, fake_model)"""
    return make_agent
