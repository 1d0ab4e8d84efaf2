"""Tests for event dispatch and the listener registry."""

import asyncio
import threading

import pytest

from evsource.client.dispatcher import EventDispatcher
from evsource.client.sse_parser import SSEEvent
from evsource.errors import TransportError

from helpers import Recorder, settle


@pytest.fixture
async def dispatcher():
    return EventDispatcher("test", asyncio.get_running_loop())


class TestRegistry:
    def test_add_and_list(self):
        d = EventDispatcher()
        d.add_listener("foo", Recorder())
        d.add_listener("bar", Recorder())
        assert d.event_types() == {"foo", "bar"}

    def test_add_replaces_existing(self):
        d = EventDispatcher()
        first, second = Recorder(), Recorder()
        d.add_listener("foo", first)
        d.add_listener("foo", second)
        assert d.get_listener("foo") is second
        assert d.event_types() == {"foo"}

    def test_remove(self):
        d = EventDispatcher()
        d.add_listener("foo", Recorder())
        d.remove_listener("foo")
        d.remove_listener("missing")
        assert d.event_types() == set()

    def test_concurrent_mutation(self):
        d = EventDispatcher()

        def churn(prefix: str) -> None:
            for i in range(200):
                d.add_listener(f"{prefix}{i}", Recorder())
                d.event_types()
                d.remove_listener(f"{prefix}{i}")

        threads = [threading.Thread(target=churn, args=(p,)) for p in "abcd"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert d.event_types() == set()


class TestDispatch:
    @pytest.mark.asyncio
    async def test_untyped_goes_to_message_handler(self, dispatcher):
        rec = Recorder()
        dispatcher.set_message_handler(rec)
        assert dispatcher.dispatch("1", SSEEvent(id="1", data="hello"))
        assert rec.calls == []  # deferred to the loop
        await settle()
        assert rec.calls == [("1", "message", "hello")]

    @pytest.mark.asyncio
    async def test_typed_goes_only_to_listener(self, dispatcher):
        message, foo = Recorder(), Recorder()
        dispatcher.set_message_handler(message)
        dispatcher.add_listener("foo", foo)
        dispatcher.dispatch("9", SSEEvent(event="foo", data="a\nb"))
        await settle()
        assert foo.calls == [("9", "foo", "a\nb")]
        assert message.calls == []

    @pytest.mark.asyncio
    async def test_unregistered_type_does_not_fall_back(self, dispatcher):
        message = Recorder()
        dispatcher.set_message_handler(message)
        assert not dispatcher.dispatch(None, SSEEvent(event="bar", data="x"))
        await settle()
        assert message.calls == []

    @pytest.mark.asyncio
    async def test_no_data_not_dispatched(self, dispatcher):
        message = Recorder()
        dispatcher.set_message_handler(message)
        assert not dispatcher.dispatch("7", SSEEvent(id="7"))
        await settle()
        assert message.calls == []

    @pytest.mark.asyncio
    async def test_order_preserved(self, dispatcher):
        seen: list[str] = []
        dispatcher.set_message_handler(lambda i, t, d: seen.append(d))
        dispatcher.add_listener("foo", lambda i, t, d: seen.append(f"foo:{d}"))
        dispatcher.dispatch(None, SSEEvent(data="1"))
        dispatcher.dispatch(None, SSEEvent(event="foo", data="2"))
        dispatcher.dispatch(None, SSEEvent(data="3"))
        await settle()
        assert seen == ["1", "foo:2", "3"]

    @pytest.mark.asyncio
    async def test_handler_exception_does_not_stop_dispatch(self, dispatcher):
        rec = Recorder()

        def boom(*args):
            raise RuntimeError("handler failed")

        dispatcher.add_listener("bad", boom)
        dispatcher.set_message_handler(rec)
        dispatcher.dispatch(None, SSEEvent(event="bad", data="x"))
        dispatcher.dispatch(None, SSEEvent(data="y"))
        await settle()
        assert rec.calls == [(None, "message", "y")]

    @pytest.mark.asyncio
    async def test_coroutine_handler_is_scheduled(self, dispatcher):
        received: list[str] = []

        async def handler(last_event_id, event_type, data):
            await asyncio.sleep(0)
            received.append(data)

        dispatcher.set_message_handler(handler)
        dispatcher.dispatch(None, SSEEvent(data="async"))
        await settle(10)
        assert received == ["async"]

    @pytest.mark.asyncio
    async def test_running_coroutine_handler_is_tracked(self, dispatcher):
        release = asyncio.Event()
        finished: list[str] = []

        async def handler(last_event_id, event_type, data):
            await release.wait()
            finished.append(data)

        dispatcher.set_message_handler(handler)
        dispatcher.dispatch(None, SSEEvent(data="slow"))
        await settle()
        assert len(dispatcher._tasks) == 1

        release.set()
        await settle()
        assert finished == ["slow"]
        assert dispatcher._tasks == set()

    @pytest.mark.asyncio
    async def test_open_notification(self, dispatcher):
        opened: list[bool] = []
        dispatcher.set_open_handler(lambda: opened.append(True))
        dispatcher.notify_open()
        await settle()
        assert opened == [True]


class TestErrors:
    @pytest.mark.asyncio
    async def test_error_delivered_to_handler(self, dispatcher):
        errors: list[BaseException] = []
        dispatcher.set_error_handler(errors.append)
        err = TransportError("reset")
        dispatcher.report_error(err)
        await settle()
        assert errors == [err]
        assert dispatcher.pending_error is None

    @pytest.mark.asyncio
    async def test_error_parked_and_replayed_once(self, dispatcher):
        err = TransportError("refused")
        dispatcher.report_error(err)
        await settle()
        assert dispatcher.pending_error is err

        errors: list[BaseException] = []
        dispatcher.set_error_handler(errors.append)
        assert errors == [err]
        assert dispatcher.pending_error is None

        dispatcher.set_error_handler(errors.append)
        assert errors == [err]

    @pytest.mark.asyncio
    async def test_newer_parked_error_overwrites(self, dispatcher):
        first, second = TransportError("one"), TransportError("two")
        dispatcher.report_error(first)
        dispatcher.report_error(second)
        await settle()

        errors: list[BaseException] = []
        dispatcher.set_error_handler(errors.append)
        assert errors == [second]
