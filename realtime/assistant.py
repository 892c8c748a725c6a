"""
Bridge between a fellow's assistant thread and the external completion service.

Key behavior:
- The hub runs each `user-ai-message` inside the fellow's event queue, so the
  fellow's later events wait for the reply. `submit` runs a turn as a detached task.
- Calls from the same fellow run one at a time, in arrival order (per-connection lock);
  calls from different fellows run concurrently and never share a lock.
- The blocking HTTP call runs in a worker thread with an overall timeout.
- The user turn and the reply are committed together: a failed call leaves the log
  exactly as it was and only the requester sees the fallback text.
- A reply for a fellow that disconnected mid-call is dropped.
- A call still queued when the fellow leaves never reaches the service.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

from asgiref.sync import sync_to_async

from relay_server.applib.config import Settings, config
from relay_server.applib.helpers import get_utc_now
from relay_server.applib.llms import CompletionError, build_messages, request_completion

from .registry import Registry
from .serializers import AssistantHistoryReply, AssistantMessage
from .store import MessageStore

logger = logging.getLogger(__name__)

REPLY_EVENT = "ai-message"
HISTORY_EVENT = "ai-history"

CompletionFn = Callable[[List[Dict[str, str]], Settings], str]


class AssistantBridge:
    def __init__(
        self,
        registry: Registry,
        store: MessageStore,
        settings: Settings = config,
        completion: CompletionFn = request_completion,
    ) -> None:
        self.registry = registry
        self.store = store
        self.settings = settings
        self.completion = completion
        # Keeps references so pending tasks are not garbage collected.
        self._tasks: Set[asyncio.Task] = set()

    def submit(self, fellow_id: str, text: str) -> asyncio.Task:
        task = asyncio.create_task(self.handle_user_query(fellow_id, text), name=f"assistant:{fellow_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _complete(self, messages: List[Dict[str, str]]) -> str:
        call = sync_to_async(self.completion, thread_sensitive=False)
        try:
            return await asyncio.wait_for(call(messages, self.settings), timeout=self.settings.ASSISTANT_TIMEOUT_SECONDS)
        except asyncio.TimeoutError as e:
            raise CompletionError(f"no reply within {self.settings.ASSISTANT_TIMEOUT_SECONDS}s") from e

    async def handle_user_query(self, fellow_id: str, text: str) -> Optional[AssistantMessage]:
        """Run one assistant turn. Returns the reply delivered to the fellow (fallback included)."""
        fellow = self.registry.get_fellow(fellow_id)
        if fellow is None:
            return None

        async with fellow.assistant_lock:
            if self.registry.get_fellow(fellow_id) is not fellow:
                logger.debug("Fellow %s left while queued; assistant call skipped", fellow_id)
                return None
            turns = [{"role": m.role, "content": m.text} for m in self.store.get_assistant_history(fellow_id)]
            turns.append({"role": "user", "content": text})
            messages = build_messages(turns, self.settings.ASSISTANT_SYSTEM_PROMPT)

            try:
                reply_text = await self._complete(messages)
            except CompletionError as e:
                logger.warning("Assistant call failed for %s: %s", fellow_id, e)
                reply = AssistantMessage(
                    role="assistant",
                    text=self.settings.ASSISTANT_FALLBACK_TEXT,
                    timestamp=get_utc_now(),
                )
            else:
                if self.store.append_assistant_message(fellow_id, "user", text) is None:
                    logger.debug("Fellow %s left before the assistant replied; reply dropped", fellow_id)
                    return None
                reply = self.store.append_assistant_message(fellow_id, "assistant", reply_text)

        await self.registry.send(self.registry.get_fellow(fellow_id), REPLY_EVENT, reply.to_wire())
        return reply

    async def handle_history_request(self, fellow_id: str) -> bool:
        fellow = self.registry.get_fellow(fellow_id)
        if fellow is None:
            return False
        reply = AssistantHistoryReply(messages=self.store.get_assistant_history(fellow_id))
        return await self.registry.send(fellow, HISTORY_EVENT, reply.to_wire())

    async def drain(self) -> None:
        """Wait for every in-flight assistant call (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
