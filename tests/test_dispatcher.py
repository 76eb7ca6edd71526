"""
Batch Dispatcher Tests
======================
"""

import asyncio

import pytest

from infinity_ocr.models.log import LogEntry, LogStatus, PENDING_TEXT
from infinity_ocr.ocr.client import OCRClient
from infinity_ocr.pipeline.dispatcher import BatchDispatcher, DispatchState
from infinity_ocr.pipeline.log_store import LogStore
from infinity_ocr.stream.buffer import RetentionBuffer
from infinity_ocr.stream.frame import Frame

from conftest import FakeTransport, make_frame


def _dispatcher(config, transport, settled=None):
    buffer = RetentionBuffer(maxsize=config.max_frames)
    store = LogStore()
    dispatcher = BatchDispatcher(
        buffer=buffer,
        ocr_client=OCRClient(transport),
        log_store=store,
        config=config,
        on_settled=settled.append if settled is not None else None,
    )
    return dispatcher, buffer, store


def _fill(buffer, scores):
    for score in scores:
        buffer.try_insert(make_frame(score))


class TestBatchDispatcher:
    """Tests for the IDLE/SENDING batch state machine."""

    def test_no_dispatch_until_full(self, run_async, scanner_config, fake_transport):
        async def scenario():
            dispatcher, buffer, store = _dispatcher(scanner_config, fake_transport)
            _fill(buffer, [30, 40])
            return dispatcher.maybe_dispatch(100.0), dispatcher, store

        entry, dispatcher, store = run_async(scenario())

        assert entry is None
        assert dispatcher.state == DispatchState.IDLE
        assert len(store) == 0
        assert fake_transport.requests == []

    def test_success_settles_and_clears(self, run_async, scanner_config, fake_transport):
        settled = []

        async def scenario():
            dispatcher, buffer, store = _dispatcher(scanner_config, fake_transport, settled)
            _fill(buffer, [10, 50, 30])

            entry = dispatcher.maybe_dispatch(100.0)
            assert dispatcher.in_flight
            assert store.get(entry.id).status == LogStatus.PENDING
            assert store.get(entry.id).text == PENDING_TEXT

            await dispatcher.wait_idle()
            return dispatcher, buffer, store.get(entry.id)

        dispatcher, buffer, entry = run_async(scenario())

        assert dispatcher.state == DispatchState.IDLE
        assert buffer.size == 0
        assert entry.status == LogStatus.SUCCESS
        assert entry.text == "ABC123"
        assert entry.structured == {"full_text": "ABC123"}
        assert entry.frame_count == 3
        assert entry.timestamp == 100.0
        assert len(settled) == 1
        assert dispatcher.settled_count == 1

    def test_frames_sent_sharpest_first(self, run_async, scanner_config, fake_transport):
        async def scenario():
            dispatcher, buffer, store = _dispatcher(scanner_config, fake_transport)
            _fill(buffer, [10, 50, 30])
            entry = dispatcher.maybe_dispatch(100.0)
            await dispatcher.wait_idle()
            return store.get(entry.id)

        entry = run_async(scenario())

        images = fake_transport.requests[0].images
        assert [image.data for image in images] == [b"jpeg-50", b"jpeg-30", b"jpeg-10"]
        assert entry.thumbnail == make_frame(50).image_b64

    def test_single_batch_in_flight(self, run_async, scanner_config):
        transport = FakeTransport(hold=True)

        async def scenario():
            dispatcher, buffer, store = _dispatcher(scanner_config, transport)
            _fill(buffer, [10, 50, 30])

            first = dispatcher.maybe_dispatch(100.0)
            await asyncio.sleep(0)
            second = dispatcher.maybe_dispatch(100.1)
            in_flight = dispatcher.in_flight

            transport.release()
            await dispatcher.wait_idle()
            return first, second, in_flight, store

        first, second, in_flight, store = run_async(scenario())

        assert first is not None
        assert second is None
        assert in_flight is True
        assert len(transport.requests) == 1
        assert len(store) == 1

    def test_remote_failure_logged_as_error(self, run_async, scanner_config):
        transport = FakeTransport(error=RuntimeError("boom"))
        settled = []

        async def scenario():
            dispatcher, buffer, store = _dispatcher(scanner_config, transport, settled)
            _fill(buffer, [10, 50, 30])
            entry = dispatcher.maybe_dispatch(100.0)
            await dispatcher.wait_idle()
            return dispatcher, buffer, store.get(entry.id)

        dispatcher, buffer, entry = run_async(scenario())

        assert entry.status == LogStatus.ERROR
        assert entry.text == "Error: boom"
        assert entry.structured is None
        assert buffer.size == 0
        assert dispatcher.state == DispatchState.IDLE
        assert dispatcher.failed_count == 1
        assert len(settled) == 1

    def test_missing_credential_never_calls_remote(self, run_async, scanner_config, fake_transport):
        config = scanner_config.model_copy(update={"api_key": ""})

        async def scenario():
            dispatcher, buffer, store = _dispatcher(config, fake_transport)
            _fill(buffer, [10, 50, 30])
            entry = dispatcher.maybe_dispatch(100.0)
            await dispatcher.wait_idle()
            return store.get(entry.id)

        entry = run_async(scenario())

        assert entry.status == LogStatus.ERROR
        assert entry.text == "Error: API Key is missing"
        assert fake_transport.requests == []

    def test_empty_response_logged_as_error(self, run_async, scanner_config):
        async def scenario():
            dispatcher, buffer, store = _dispatcher(scanner_config, FakeTransport([""]))
            _fill(buffer, [10, 50, 30])
            entry = dispatcher.maybe_dispatch(100.0)
            await dispatcher.wait_idle()
            return store.get(entry.id)

        entry = run_async(scenario())

        assert entry.text == "Error: Empty response from Gemini"

    def test_undecodable_batch_logged_as_error(self, run_async, scanner_config, fake_transport):
        async def scenario():
            dispatcher, buffer, store = _dispatcher(scanner_config, fake_transport)
            for score in (10, 50, 30):
                buffer.try_insert(Frame(image_b64="***", sharpness=score))
            entry = dispatcher.maybe_dispatch(100.0)
            await dispatcher.wait_idle()
            return buffer, store.get(entry.id)

        buffer, entry = run_async(scenario())

        assert entry.status == LogStatus.ERROR
        assert entry.text == "Error: None of the 3 batch images could be decoded"
        assert buffer.size == 0
        assert fake_transport.requests == []

    def test_batch_settles_against_dispatch_time_config(self, run_async, scanner_config):
        transport = FakeTransport(hold=True)

        async def scenario():
            dispatcher, buffer, store = _dispatcher(scanner_config, transport)
            _fill(buffer, [10, 50, 30])
            dispatcher.maybe_dispatch(100.0)

            replacement = RetentionBuffer(maxsize=3)
            replacement.try_insert(make_frame(99))
            dispatcher.buffer = replacement
            dispatcher.config = scanner_config.model_copy(update={"system_prompt": "Other."})

            await asyncio.sleep(0)
            transport.release()
            await dispatcher.wait_idle()
            return buffer, replacement

        buffer, replacement = run_async(scenario())

        assert transport.requests[0].system_instruction == "Extract text."
        assert buffer.size == 0
        assert replacement.size == 1

    def test_next_batch_after_settle(self, run_async, scanner_config):
        transport = FakeTransport(['{"full_text": "first"}', '{"full_text": "second"}'])

        async def scenario():
            dispatcher, buffer, store = _dispatcher(scanner_config, transport)
            _fill(buffer, [10, 50, 30])
            dispatcher.maybe_dispatch(100.0)
            await dispatcher.wait_idle()

            _fill(buffer, [60, 70, 80])
            dispatcher.maybe_dispatch(105.0)
            await dispatcher.wait_idle()
            return dispatcher, store.entries()

        dispatcher, entries = run_async(scenario())

        assert [entry.text for entry in entries] == ["second", "first"]
        assert dispatcher.dispatched_count == 2
        assert dispatcher.get_metrics()["settled"] == 2


class TestLogStore:
    """Tests for the batch log."""

    def test_most_recent_first(self):
        store = LogStore()
        first = store.add(LogEntry(timestamp=1.0))
        second = store.add(LogEntry(timestamp=2.0))

        assert [entry.id for entry in store.entries()] == [second.id, first.id]

    def test_settles_exactly_once(self):
        store = LogStore()
        entry = store.add(LogEntry())
        store.resolve_error(entry.id, "Error: boom")

        with pytest.raises(ValueError):
            store.resolve_error(entry.id, "Error: again")
        assert store.get(entry.id).text == "Error: boom"

    def test_unknown_entry(self):
        store = LogStore()
        assert store.get("missing") is None
        with pytest.raises(KeyError):
            store.resolve_error("missing", "Error")

    def test_entries_are_copies(self):
        store = LogStore()
        entry = store.add(LogEntry())
        store.entries()[0].text = "tampered"

        assert store.get(entry.id).text == PENDING_TEXT

    def test_counts(self):
        store = LogStore()
        store.add(LogEntry())
        failed = store.add(LogEntry())
        store.resolve_error(failed.id, "Error: x")

        assert store.counts() == {"pending": 1, "success": 0, "error": 1}
