import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from directchat.reconciliation import (
    CatchUpClient,
    CatchUpFailed,
    CatchUpPoller,
    ConversationTimeline,
    catch_up,
    is_duplicate,
    merge_messages,
)
from directchat.schemas.message import MessageRecord

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def record(id, text="hi", sender_id="u1", receiver_id="u2", offset_ms=0) -> MessageRecord:
    return MessageRecord(
        id=id,
        sender_id=sender_id,
        receiver_id=receiver_id,
        text=text,
        created_at=T0 + timedelta(milliseconds=offset_ms)
    )


class TestMergeRule:
    """중복 판정 규칙 테스트"""

    def test_same_id_is_duplicate(self):
        assert is_duplicate(record("m1", text="a"), record("m1", text="b", offset_ms=60000))

    def test_optimistic_and_confirmed_are_duplicates(self):
        assert is_duplicate(record("temp-1"), record("m1", offset_ms=1999))
        assert is_duplicate(record("m1", offset_ms=1999), record("temp-1"))

    def test_window_boundary_is_exclusive(self):
        assert not is_duplicate(record("temp-1"), record("m1", offset_ms=2000))

    def test_different_text_or_sender_is_not_duplicate(self):
        assert not is_duplicate(record("m1", text="hi"), record("m2", text="hey"))
        assert not is_duplicate(record("m1", sender_id="u1"), record("m2", sender_id="u2"))

    def test_merge_optimistic_with_confirmed_yields_one(self):
        """낙관적 메시지 + 서버 확정 메시지 -> 하나"""
        optimistic = record("temp-1")
        confirmed = record("m1", offset_ms=350)

        merged = merge_messages([optimistic], [confirmed])

        assert len(merged) == 1

    def test_merge_is_idempotent_and_ordered(self):
        existing = [record("m2", text="b", offset_ms=5000)]
        incoming = [record("m3", text="c", offset_ms=9000), record("m1", text="a")]

        once = merge_messages(existing, incoming)
        twice = merge_messages(once, incoming)

        assert [m.id for m in once] == ["m1", "m2", "m3"]
        assert twice == once


class TestConversationTimeline:
    """클라이언트 대화 상태 테스트"""

    def test_optimistic_then_push_then_confirm(self):
        timeline = ConversationTimeline("u1", "u2")
        optimistic = timeline.add_optimistic(text="hi", now=T0)
        confirmed = record("m1", offset_ms=300)

        # push가 HTTP 응답보다 먼저 도착
        assert timeline.apply_frame({"type": "newMessage", "data": confirmed.to_wire()}) is False
        timeline.confirm(optimistic.id, confirmed)

        assert [m.id for m in timeline.messages] == ["m1"]
        assert timeline.pending_ids == set()

    def test_rollback_removes_optimistic(self):
        timeline = ConversationTimeline("u1", "u2")
        optimistic = timeline.add_optimistic(text="fails", now=T0)

        assert timeline.rollback(optimistic.id) is True
        assert timeline.messages == []
        assert timeline.rollback(optimistic.id) is False

    def test_last_message_time_ignores_pending(self):
        timeline = ConversationTimeline("u1", "u2", [record("m1", offset_ms=1000)])
        timeline.add_optimistic(text="later", now=T0 + timedelta(minutes=5))

        assert timeline.last_message_time == T0 + timedelta(milliseconds=1000)

    def test_frames_for_other_conversations_are_ignored(self):
        timeline = ConversationTimeline("u1", "u2")
        foreign = record("m9", sender_id="u3", receiver_id="u1")

        assert timeline.apply_frame({"type": "newMessage", "data": foreign.to_wire()}) is False
        assert timeline.apply_frame({"type": "userOnline", "data": "u3"}) is False
        assert timeline.messages == []

    def test_message_deleted_frame(self):
        timeline = ConversationTimeline("u1", "u2", [record("m1"), record("m2", text="x", offset_ms=10)])

        changed = timeline.apply_frame({
            "type": "messageDeleted",
            "data": {"messageId": "m1", "senderId": "u1", "receiverId": "u2"}
        })

        assert changed is True
        assert [m.id for m in timeline.messages] == ["m2"]

    def test_messages_cleared_frame_removes_only_senders_messages(self):
        timeline = ConversationTimeline("u1", "u2", [
            record("m1", text="mine"),
            record("m2", text="theirs", sender_id="u2", receiver_id="u1", offset_ms=10),
        ])

        timeline.apply_frame({
            "type": "messagesCleared",
            "data": {"senderId": "u1", "receiverId": "u2", "deletedCount": 1}
        })

        assert [m.id for m in timeline.messages] == ["m2"]


class TestCatchUp:
    """서버 측 catch-up 테스트"""

    @pytest.mark.asyncio
    async def test_catch_up_strictly_newer_ascending(self, message_store):
        m1 = message_store.add("u1", "u2", text="one", created_at=T0)
        message_store.add("u2", "u1", text="two", created_at=T0 + timedelta(seconds=1))
        message_store.add("u1", "u2", text="three", created_at=T0 + timedelta(seconds=2))
        message_store.add("u1", "u3", text="other pair", created_at=T0 + timedelta(seconds=3))

        messages = await catch_up(message_store, "u2", "u1", since=m1.created_at)

        assert [m.text for m in messages] == ["two", "three"]

    @pytest.mark.asyncio
    async def test_catch_up_merges_without_duplicates_after_push(self, message_store):
        """push로 이미 받은 메시지가 있어도 중복 없음"""
        m1 = message_store.add("u1", "u2", text="one", created_at=T0)
        m2 = message_store.add("u1", "u2", text="two", created_at=T0 + timedelta(seconds=1))
        message_store.add("u2", "u1", text="three", created_at=T0 + timedelta(seconds=2))

        timeline = ConversationTimeline("u2", "u1", [m1])
        timeline.apply_frame({"type": "newMessage", "data": m2.to_wire()})

        added = timeline.apply_messages(await catch_up(message_store, "u2", "u1", since=m1.created_at))

        assert added == 1
        assert [m.text for m in timeline.messages] == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_catch_up_without_cursor_returns_latest_capped(self, message_store):
        for n in range(5):
            message_store.add("u1", "u2", text=f"m{n}", created_at=T0 + timedelta(seconds=n))

        messages = await catch_up(message_store, "u1", "u2", limit=3)

        assert [m.text for m in messages] == ["m2", "m3", "m4"]

    @pytest.mark.asyncio
    async def test_naive_cursor_treated_as_utc(self, message_store):
        message_store.add("u1", "u2", text="later", created_at=T0 + timedelta(seconds=1))

        messages = await catch_up(message_store, "u1", "u2", since=T0.replace(tzinfo=None))

        assert [m.text for m in messages] == ["later"]


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestCatchUpPoller:
    """폴링 fallback 테스트"""

    @pytest.mark.asyncio
    async def test_poll_once_uses_cursor(self):
        calls = []
        timeline = ConversationTimeline("u1", "u2", [record("m1")])

        async def fetcher(since):
            calls.append(since)
            return [record("m2", text="new", offset_ms=5000)]

        poller = CatchUpPoller(timeline, fetcher)

        assert await poller.poll_once() == 1
        assert await poller.poll_once() == 0
        assert calls == [T0, T0 + timedelta(milliseconds=5000)]

    def test_push_liveness(self):
        clock = FakeClock()
        poller = CatchUpPoller(ConversationTimeline("u1", "u2"), fetcher=None, grace_period=5, clock=clock)

        assert poller.push_is_silent() is True
        poller.on_frame({"type": "pong", "data": {}})
        assert poller.push_is_silent() is False

        clock.now = 5.5
        assert poller.push_is_silent() is True

    @pytest.mark.asyncio
    async def test_run_polls_only_while_push_is_silent(self):
        clock = FakeClock()
        calls = []

        async def fetcher(since):
            calls.append(since)
            return []

        poller = CatchUpPoller(ConversationTimeline("u1", "u2"), fetcher, interval=0.01, clock=clock)
        poller.start()
        await asyncio.sleep(0.05)
        assert calls

        poller.mark_push_alive()
        await asyncio.sleep(0.02)
        count = len(calls)
        await asyncio.sleep(0.05)
        await poller.stop()

        assert len(calls) == count

    @pytest.mark.asyncio
    async def test_run_retries_after_retryable_failure(self):
        attempts = []
        timeline = ConversationTimeline("u1", "u2")

        async def fetcher(since):
            attempts.append(since)
            if len(attempts) < 3:
                raise CatchUpFailed("store busy", status_code=503, retryable=True)
            return [record("m1")]

        poller = CatchUpPoller(timeline, fetcher, interval=0.01)
        poller.start()
        for _ in range(100):
            if timeline.messages:
                break
            await asyncio.sleep(0.01)
        await poller.stop()

        assert [m.id for m in timeline.messages] == ["m1"]
        assert len(attempts) >= 3

    @pytest.mark.asyncio
    async def test_run_stops_on_non_retryable_failure(self):
        async def fetcher(since):
            raise CatchUpFailed("unauthorized", status_code=401, retryable=False)

        poller = CatchUpPoller(ConversationTimeline("u1", "u2"), fetcher, interval=0.01)

        with pytest.raises(CatchUpFailed):
            await poller.run()


class TestCatchUpClient:
    """httpx catch-up 클라이언트 테스트"""

    @pytest.mark.asyncio
    async def test_fetch_sends_cursor_and_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["since"] = request.url.params.get("since")
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[record("m1").to_wire()])

        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            client = CatchUpClient("http://test", "token-123", client=http)
            messages = await client.fetch("u2", since=T0)

        assert seen == {
            "path": "/api/messages/u2/new",
            "since": T0.isoformat(),
            "auth": "Bearer token-123",
        }
        assert [m.id for m in messages] == ["m1"]
        assert messages[0].created_at == T0

    @pytest.mark.asyncio
    async def test_fetch_error_envelope_sets_retryable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/busy/new"):
                return httpx.Response(503, json={"error": "persistence_failed", "message": "retry", "retryable": True})
            return httpx.Response(401, json={"error": "authentication_error", "message": "bad token", "retryable": False})

        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            client = CatchUpClient("http://test", "token", client=http)

            with pytest.raises(CatchUpFailed) as busy:
                await client.fetch("busy")
            with pytest.raises(CatchUpFailed) as denied:
                await client.fetch("denied")

        assert busy.value.retryable is True
        assert busy.value.status_code == 503
        assert denied.value.retryable is False

    @pytest.mark.asyncio
    async def test_network_error_is_retryable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            client = CatchUpClient("http://test", "token", client=http)
            fetch = client.fetcher("u2")

            with pytest.raises(CatchUpFailed) as exc_info:
                await fetch(None)

        assert exc_info.value.retryable is True
