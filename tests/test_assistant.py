import asyncio
import time

from conftest import join_coach, join_fellow
from relay_server.applib.config import Settings
from relay_server.applib.llms import CompletionError
from realtime.assistant import AssistantBridge
from realtime.dispatcher import RelayHub


def _texts(hub, fellow_id):
    return [(m.role, m.text) for m in hub.store.get_assistant_history(fellow_id)]


async def test_request_carries_full_history_without_metadata(gated_hub, gated):
    await join_fellow(gated_hub, "A", "Ada")
    await gated_hub.assistant.handle_user_query("A", "first")
    await gated_hub.assistant.handle_user_query("A", "second")
    assert gated.calls[-1] == [
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "re: first"},
        {"role": "user", "content": "second"},
    ]


async def test_system_prompt_is_sent_but_not_stored(assistant_settings, gated):
    settings = assistant_settings.model_copy(update={"ASSISTANT_SYSTEM_PROMPT": "Be kind."})
    hub = RelayHub(settings=settings, completion=gated)
    await join_fellow(hub, "A", "Ada")
    await hub.assistant.handle_user_query("A", "hi")
    assert gated.calls[0][0] == {"role": "system", "content": "Be kind."}
    assert _texts(hub, "A") == [("user", "hi"), ("assistant", "re: hi")]


async def test_failure_delivers_fallback_and_leaves_log_unchanged(assistant_settings):
    def failing(messages, settings):
        raise CompletionError("HTTP 500")

    hub = RelayHub(settings=assistant_settings, completion=failing)
    ada = await join_fellow(hub, "A", "Ada")
    coach = await join_coach(hub)

    reply = await hub.assistant.handle_user_query("A", "hello?")
    assert reply.text == "assistant unavailable"
    assert ada.last("ai-message")["text"] == "assistant unavailable"
    assert ada.last("ai-message")["role"] == "assistant"
    assert hub.store.get_assistant_history("A") == []
    assert coach.events("ai-message") == []


async def test_failure_after_success_keeps_earlier_turns(assistant_settings):
    outcomes = iter(["fine", CompletionError("boom")])

    def flaky(messages, settings):
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    hub = RelayHub(settings=assistant_settings, completion=flaky)
    await join_fellow(hub, "A", "Ada")
    await hub.assistant.handle_user_query("A", "one")
    length = len(hub.store.get_assistant_history("A"))
    await hub.assistant.handle_user_query("A", "two")
    assert len(hub.store.get_assistant_history("A")) == length == 2


async def test_missing_credential_fails_cleanly(assistant_settings):
    from relay_server.applib.llms import request_completion

    settings = assistant_settings.model_copy(update={"ASSISTANT_API_KEY": None})
    hub = RelayHub(settings=settings, completion=request_completion)
    ada = await join_fellow(hub, "A", "Ada")
    await hub.assistant.handle_user_query("A", "hi")
    assert ada.last("ai-message")["text"] == "assistant unavailable"
    assert hub.store.get_assistant_history("A") == []


async def test_timeout_counts_as_failure(assistant_settings):
    def slow(messages, settings):
        time.sleep(0.5)
        return "too late"

    settings = assistant_settings.model_copy(update={"ASSISTANT_TIMEOUT_SECONDS": 0.05})
    hub = RelayHub(settings=settings, completion=slow)
    ada = await join_fellow(hub, "A", "Ada")
    await hub.assistant.handle_user_query("A", "hi")
    assert ada.last("ai-message")["text"] == "assistant unavailable"
    assert hub.store.get_assistant_history("A") == []


async def test_slow_call_does_not_block_other_fellows(gated_hub, gated):
    ada = await join_fellow(gated_hub, "A", "Ada")
    bo = await join_fellow(gated_hub, "B", "Bo")
    coach = await join_coach(gated_hub)

    slow = gated_hub.assistant.submit("A", "slow question")
    fast = gated_hub.assistant.submit("B", "quick question")
    await asyncio.wait_for(fast, timeout=2)

    # Coach traffic keeps flowing while A's call is outstanding.
    await gated_hub.dispatch("B", "user-message", "still here")
    assert coach.last("new-message")["text"] == "still here"

    assert bo.last("ai-message")["text"] == "re: quick question"
    assert ada.events("ai-message") == []
    assert not slow.done()

    gated.gate.set()
    await asyncio.wait_for(slow, timeout=2)
    assert ada.last("ai-message")["text"] == "re: slow question"
    assert _texts(gated_hub, "A") == [("user", "slow question"), ("assistant", "re: slow question")]
    assert _texts(gated_hub, "B") == [("user", "quick question"), ("assistant", "re: quick question")]


async def test_same_fellow_calls_run_in_arrival_order(gated_hub, gated):
    ada = await join_fellow(gated_hub, "A", "Ada")
    first = gated_hub.assistant.submit("A", "slow one")
    second = gated_hub.assistant.submit("A", "two")
    await asyncio.sleep(0.05)
    assert not second.done()

    gated.gate.set()
    await asyncio.wait_for(asyncio.gather(first, second), timeout=2)
    assert [m["text"] for m in ada.events("ai-message")] == ["re: slow one", "re: two"]
    assert _texts(gated_hub, "A") == [
        ("user", "slow one"),
        ("assistant", "re: slow one"),
        ("user", "two"),
        ("assistant", "re: two"),
    ]
    assert gated.calls[1][:2] == [
        {"role": "user", "content": "slow one"},
        {"role": "assistant", "content": "re: slow one"},
    ]


async def test_reply_for_departed_fellow_is_discarded(gated_hub, gated):
    ada = await join_fellow(gated_hub, "A", "Ada")
    task = gated_hub.assistant.submit("A", "slow goodbye")
    await asyncio.sleep(0.05)
    await gated_hub.disconnect("A")

    gated.gate.set()
    assert await asyncio.wait_for(task, timeout=2) is None
    assert ada.events("ai-message") == []
    assert gated_hub.assistant.pending == 0


async def test_query_for_unknown_fellow_does_nothing(hub):
    assert await hub.assistant.handle_user_query("ghost", "hi") is None
    assert await hub.assistant.handle_history_request("ghost") is False


async def test_history_request_returns_ordered_log(hub):
    ada = await join_fellow(hub, "A", "Ada")
    await hub.assistant.handle_user_query("A", "one")
    await hub.assistant.handle_history_request("A")
    messages = ada.last("ai-history")["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant"]
    assert set(messages[0]) == {"role", "text", "timestamp"}


async def test_bridge_can_be_built_directly():
    hub = RelayHub(settings=Settings(ASSISTANT_API_KEY="k"), completion=lambda m, s: "ok")
    bridge = AssistantBridge(hub.registry, hub.store, settings=hub.assistant.settings, completion=hub.assistant.completion)
    await join_fellow(hub, "A", "Ada")
    reply = await bridge.handle_user_query("A", "hi")
    assert reply.text == "ok"


async def test_queued_call_for_departed_fellow_never_reaches_the_service(gated_hub, gated):
    ada = await join_fellow(gated_hub, "A", "Ada")
    first = gated_hub.assistant.submit("A", "slow one")
    second = gated_hub.assistant.submit("A", "second")
    await asyncio.sleep(0.05)
    await gated_hub.disconnect("A")

    gated.gate.set()
    assert await asyncio.wait_for(asyncio.gather(first, second), timeout=2) == [None, None]
    assert gated.calls == [[{"role": "user", "content": "slow one"}]]
    assert ada.events("ai-message") == []
