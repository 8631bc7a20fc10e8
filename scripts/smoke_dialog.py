#!/usr/bin/env python3
"""
Smoke test of the streaming chat protocol over a WebSocket.

Run against a live server:
  python scripts/smoke_dialog.py

Options:
  --ws-url           WebSocket URL (default: ws://localhost:8080/api/v1/ws/chat)
  --timeout          Timeout for one answer (seconds)
  --print-answers    Print full answers
  --dialog           Also run a multi-turn dialogue in one conversation
"""

import argparse
import json
import sys
import time
import uuid

import websocket


DEFAULT_WS_URL = "ws://localhost:8080/api/v1/ws/chat"

TESTS = [
    {
        "q": "How do I configure the VPN?",
        "expect_any": ["vpn"],
    },
    {
        "q": "What does the PC LOAD LETTER printer error mean?",
        "expect_any": ["paper", "letter"],
    },
    {
        "q": "What is HTTP?",
        "expect_any": ["http"],
    },
]

DIALOGUE = [
    "How do I configure the VPN?",
    "Thanks",
    "And what is the gateway address?",
    "Different topic. What does PC LOAD LETTER mean on a printer?",
]


def connect(ws_url: str):
    ws = websocket.WebSocket()
    deadline = time.time() + 30
    while True:
        try:
            ws.connect(ws_url)
            return ws
        except OSError:
            if time.time() >= deadline:
                raise
            time.sleep(1)


def send_event(ws, event_type: str, payload: dict):
    ws.send(json.dumps({"type": event_type, "payload": payload}, ensure_ascii=False))


def recv_event(ws, timeout=30):
    ws.settimeout(1)
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            msg = ws.recv()
        except websocket.WebSocketTimeoutException:
            continue
        try:
            data = json.loads(msg)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict) and "type" in data:
            return data["type"], data.get("payload") or {}
    raise TimeoutError("No event received")


def start_conversation(ws) -> str:
    send_event(ws, "start_conversation", {})
    while True:
        event, payload = recv_event(ws)
        if event == "system_notice" and payload.get("message") == "conversation_started":
            return payload["conversation_id"]


def ask(ws, conversation_id: str, text: str, timeout=240) -> str:
    """Send one message and collect the streamed answer.

    Raises:
        RuntimeError: Server reported an error or broke chunk ordering.
    """
    message_id = str(uuid.uuid4())
    send_event(
        ws,
        "append_message",
        {"conversation_id": conversation_id, "message_id": message_id, "message": text},
    )

    acked = False
    chunks = []
    deadline = time.time() + timeout
    while time.time() < deadline:
        event, payload = recv_event(ws, timeout=max(1, deadline - time.time()))
        if payload.get("message_id") not in (None, message_id):
            continue

        if event == "message_ack":
            acked = True
        elif event == "stream_chunk":
            if not acked:
                raise RuntimeError("stream_chunk before message_ack")
            if payload["index"] != len(chunks):
                raise RuntimeError(f"chunk index {payload['index']}, expected {len(chunks)}")
            chunks.append(payload["chunk"])
        elif event == "stream_end":
            answer = "".join(chunks)
            if answer != payload.get("answer", answer):
                raise RuntimeError("chunks do not reconstruct the answer")
            return answer
        elif event == "error":
            raise RuntimeError(f"{payload.get('code')}: {payload.get('message')}")

    raise TimeoutError("No assistant response")


def normalize(text: str) -> str:
    return (text or "").lower()


def check_expectations(answer: str, test: dict) -> list[str]:
    errors = []
    ans = normalize(answer)

    expect_any = test.get("expect_any") or []
    expect_none = test.get("expect_none") or []

    if expect_any:
        if not any(normalize(x) in ans for x in expect_any):
            errors.append(f"missing any of: {expect_any}")

    for token in expect_none:
        if normalize(token) in ans:
            errors.append(f"should not contain: {token}")

    return errors


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--ws-url", default=DEFAULT_WS_URL)
    parser.add_argument("--timeout", type=int, default=240)
    parser.add_argument("--print-answers", action="store_true")
    parser.add_argument("--dialog", action="store_true")
    args = parser.parse_args()

    ws = connect(args.ws_url)

    failures = 0
    for idx, test in enumerate(TESTS, start=1):
        q = test["q"]
        print(f"\nQ{idx}: {q}")
        conversation_id = start_conversation(ws)
        try:
            answer = ask(ws, conversation_id, q, timeout=args.timeout)
        except RuntimeError as e:
            failures += 1
            print("FAIL:", e)
            continue
        if args.print_answers:
            print("A:", answer)

        errors = check_expectations(answer, test)
        if errors:
            failures += 1
            print("FAIL:", "; ".join(errors))
        else:
            print("OK")
        send_event(ws, "end_conversation", {"conversation_id": conversation_id})

    ws.close()

    if failures:
        print(f"\nFAILED: {failures} test(s) failed")
        sys.exit(1)
    print("\nALL OK")

    if args.dialog:
        ws = connect(args.ws_url)
        conversation_id = start_conversation(ws)
        print("\nDIALOGUE:\n")
        for idx, q in enumerate(DIALOGUE, start=1):
            print(f"U{idx}: {q}")
            answer = ask(ws, conversation_id, q, timeout=args.timeout)
            print(f"A{idx}: {answer}\n")
        send_event(ws, "end_conversation", {"conversation_id": conversation_id})
        ws.close()
    return 0


if __name__ == "__main__":
    main()
