"""
CLI client for the fellow/coach relay.

Supports:
- fellow: register with a name, then each stdin line goes to the coach
  (lines starting with "/ai " go to the assistant instead)
- coach:  register as admin, print the roster and every new message;
  stdin lines of the form "<userId> <text>" are sent to that fellow,
  "/history <userId>" asks for a fellow's coach thread

WebSocket protocol (`RelayConsumer` at /ws/relay/):
- Frames are {"event": "<name>", "data": <payload>} in both directions.
- Server sends "connected" first, then whatever the registration triggers.
"""

from __future__ import annotations

import argparse
import asyncio
import inspect
import json
import sys
from typing import Any, Dict, Optional

import websockets


def _rstrip_slash(s: str) -> str:
    return s[:-1] if s.endswith("/") else s


def _ws_relay_url(ws_base: str) -> str:
    return f"{_rstrip_slash(ws_base)}/ws/relay/"


async def _stdin_lines() -> str:
    return await asyncio.to_thread(sys.stdin.readline)


def _frame(event: str, data: Any = None) -> str:
    return json.dumps({"event": event, "data": data}, separators=(",", ":"), ensure_ascii=False)


def format_event(event: Optional[str], data: Any) -> Optional[str]:
    """One printable line per server frame; None for frames not worth showing."""
    if event == "registered":
        return f"[registered as {data.get('name')} id={data.get('id')}]"
    if event == "user-list":
        names = ", ".join(f"{f.get('name')} ({f.get('id')})" for f in data or []) or "nobody"
        return f"[fellows: {names}]"
    if event in ("new-message", "admin-message"):
        who = "coach" if data.get("from") == "admin" else data.get("userName")
        return f"{who} -> {data.get('userId')}: {data.get('text')}"
    if event == "ai-message":
        return f"assistant: {data.get('text')}"
    if event == "history":
        lines = [f"[history {data.get('userId')}]"]
        lines.extend(f"  {m.get('from')}: {m.get('text')}" for m in data.get("messages") or [])
        return "\n".join(lines)
    if event == "ai-history":
        return "\n".join(f"  {m.get('role')}: {m.get('text')}" for m in data.get("messages") or []) or "[no assistant history]"
    if event == "error":
        return f"[error {data}]"
    return None


def fellow_line_to_frame(line: str) -> Optional[str]:
    line = line.strip()
    if not line:
        return None
    if line.startswith("/ai "):
        return _frame("user-ai-message", {"text": line[4:].strip()})
    if line == "/ai-history":
        return _frame("get-ai-history")
    return _frame("user-message", {"text": line})


def coach_line_to_frame(line: str) -> Optional[str]:
    line = line.strip()
    if line.startswith("/history "):
        return _frame("get-history", {"userId": line.split(" ", 1)[1].strip()})
    user_id, _, text = line.partition(" ")
    if not user_id or not text.strip():
        return None
    return _frame("admin-message", {"userId": user_id, "text": text.strip()})


async def run(*, ws_base: str, origin: Optional[str], role: str, name: Optional[str]) -> int:
    extra_headers = [("Origin", origin)] if origin else []

    kwargs: Dict[str, Any] = {}
    if extra_headers:
        sig = inspect.signature(websockets.connect)
        if "additional_headers" in sig.parameters:
            kwargs["additional_headers"] = extra_headers
        elif "extra_headers" in sig.parameters:
            kwargs["extra_headers"] = extra_headers

    async with websockets.connect(_ws_relay_url(ws_base), **kwargs) as ws:
        if role == "fellow":
            await ws.send(_frame("register-user", {"name": name or ""}))
            to_frame = fellow_line_to_frame
        else:
            await ws.send(_frame("register-admin"))
            to_frame = coach_line_to_frame

        async def _printer() -> None:
            async for raw in ws:
                msg = json.loads(raw)
                text = format_event(msg.get("event"), msg.get("data"))
                if text:
                    sys.stdout.write(text + "\n")
                    sys.stdout.flush()

        printer = asyncio.create_task(_printer())
        sys.stderr.write("Connected. Type a line and press Enter to send. Ctrl+C to quit.\n")
        sys.stderr.flush()
        try:
            while not printer.done():
                line = await _stdin_lines()
                if line == "":
                    break
                frame = to_frame(line)
                if frame:
                    await ws.send(frame)
        finally:
            printer.cancel()
    return 0


async def main() -> int:
    parser = argparse.ArgumentParser(description="CLI client for the fellow/coach relay")
    parser.add_argument("--ws", default="ws://localhost:8000", help="WS base, e.g. ws://localhost:8000")
    parser.add_argument("--origin", help="Optional Origin header for WebSocket handshake")

    sub = parser.add_subparsers(dest="cmd", required=True)

    p_fellow = sub.add_parser("fellow", help="Join as a fellow")
    p_fellow.add_argument("--name", help="Display name (server generates one if omitted)")

    sub.add_parser("coach", help="Join as the coach")

    args = parser.parse_args()
    return await run(ws_base=args.ws, origin=args.origin, role=args.cmd, name=getattr(args, "name", None))


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
