import threading

import pytest

from relay_server.applib.config import Settings
from realtime.dispatcher import RelayHub


class FakeHandle:
    """Stands in for a consumer: records every event pushed to it."""

    def __init__(self):
        self.sent = []

    async def send_event(self, event, data):
        self.sent.append((event, data))

    def events(self, name):
        return [data for event, data in self.sent if event == name]

    def last(self, name):
        found = self.events(name)
        return found[-1] if found else None


class BrokenHandle(FakeHandle):
    async def send_event(self, event, data):
        raise ConnectionResetError("socket closed")


def echo_completion(messages, settings):
    return f"echo: {messages[-1]['content']}"


class GatedCompletion:
    """Completion that blocks on a gate for prompts containing 'slow'."""

    def __init__(self):
        self.gate = threading.Event()
        self.calls = []

    def __call__(self, messages, settings):
        self.calls.append(messages)
        if "slow" in messages[-1]["content"]:
            self.gate.wait(5)
        return f"re: {messages[-1]['content']}"


@pytest.fixture
def assistant_settings():
    return Settings(
        ASSISTANT_API_KEY="test-key",
        ASSISTANT_API_URL="https://llm.example.test/v1/chat/completions",
        ASSISTANT_MODEL="test-model",
        ASSISTANT_TIMEOUT_SECONDS=5,
        ASSISTANT_SYSTEM_PROMPT=None,
        ASSISTANT_FALLBACK_TEXT="assistant unavailable",
    )


@pytest.fixture
def hub(assistant_settings):
    return RelayHub(settings=assistant_settings, completion=echo_completion)


@pytest.fixture
def gated():
    completion = GatedCompletion()
    yield completion
    completion.gate.set()


@pytest.fixture
def gated_hub(assistant_settings, gated):
    return RelayHub(settings=assistant_settings, completion=gated)


async def join_fellow(hub, connection_id, name):
    handle = FakeHandle()
    hub.connect(connection_id, handle)
    await hub.dispatch(connection_id, "register-user", {"name": name})
    return handle


async def join_coach(hub, connection_id="coach-1"):
    handle = FakeHandle()
    hub.connect(connection_id, handle)
    await hub.dispatch(connection_id, "register-admin")
    return handle
