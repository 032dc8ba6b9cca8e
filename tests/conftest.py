"""
Shared fixtures: a controllable clock and fake HTTP transports.
"""

import json

import httpx
import pytest

from postpilot.config import PostPilotConfig, StaticConfigSource
from postpilot.storage import MemoryStore


class FakeClock:
    """Clock whose time only moves when told to."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingHandler:
    """
    MockTransport handler that records requests and replays responses.

    ``responses`` is either a single response factory used for every call or
    a list consumed in order (the last one repeats).
    """

    def __init__(self, responses):
        self.responses = responses if isinstance(responses, list) else [responses]
        self.requests = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def prompt(self, index: int = -1) -> str:
        body = json.loads(self.requests[index].content)
        if "messages" in body:
            return body["messages"][0]["content"]
        return body["contents"][0]["parts"][0]["text"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        response = self.responses[index]
        return response(request) if callable(response) else response


def openai_reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": text}}]})


FAQ_JSON = json.dumps([
    {"question": "What is asyncio?", "answer": "A library for concurrent code."},
    {"question": "Is it fast?", "answer": "For I/O bound work."},
])

LINKS_JSON = json.dumps([{"keyword": "event loop", "post_id": 2}])


def feature_reply(request: httpx.Request) -> httpx.Response:
    """Answer each feature prompt the way a well-behaved model would."""
    prompt = json.loads(request.content)["messages"][0]["content"]
    if "FAQ items" in prompt:
        return openai_reply(FAQ_JSON)
    if "internal links" in prompt:
        return openai_reply(LINKS_JSON)
    return openai_reply("Asyncio runs coroutines on an event loop.")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def configured():
    """Config with an OpenAI key, wrapped in a mutable static source."""
    config = PostPilotConfig()
    config.providers["openai"].api_key = "sk-test"
    return StaticConfigSource(config)


def make_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))
