"""Tests for scheduler.py."""

import json
import threading

import pytest

from config import ServiceConfig
from dispatcher import Dispatcher
from models import SpaceWeatherNotification
from scheduler import Scheduler, SourceMonitor
from sources.base import BaseSource, FetchError
from state import SeenStore, SerializationError
from telegram_notifier import DeliveryError


class ScriptedSource(BaseSource):
    """Replays one scripted payload (list of ids, or an exception) per fetch."""

    source_name = "Scripted"

    def __init__(self, config, state, script):
        super().__init__(config, state)
        self.script = list(script)
        self.fetches = 0
        self.saves = 0

    def fetch_new(self):
        self.fetches += 1
        payload = self.script.pop(0) if self.script else []
        if isinstance(payload, Exception):
            raise payload

        notifications = []
        for uid in payload:
            if self.seen_store.is_seen(uid):
                continue
            notifications.append(
                self.mark_seen(
                    SpaceWeatherNotification(id=uid, timestamp=1768458420, class_type=uid, url="u")
                )
            )
        return notifications

    def save_state(self):
        self.saves += 1
        super().save_state()


class RecordingSender:
    def __init__(self, fail_on=()):
        self.sent = []
        self.fail_on = fail_on

    def send(self, text):
        if any(f"*Class:* {uid}\n" in text for uid in self.fail_on):
            raise DeliveryError("Telegram API error: 500")
        self.sent.append(text)


def _sent_ids(sender):
    return [text.split("*Class:* ")[1].split("\n")[0] for text in sender.sent]


@pytest.fixture
def make_monitor(sample_config, seen_store):
    def _make(script, fail_on=(), config=None):
        source = ScriptedSource(config or sample_config, seen_store, script)
        sender = RecordingSender(fail_on)
        dispatcher = Dispatcher(source.config, sender=sender, pacing_seconds=0)
        return SourceMonitor(source, dispatcher), source, sender
    return _make


class TestRunCheck:
    def test_only_unseen_items_emitted(self, make_monitor, seen_store):
        seen_store.add("A", 1)
        seen_store.add("C", 1)
        monitor, source, sender = make_monitor([["A", "B", "C"]])

        assert monitor.run_check() == 1
        assert _sent_ids(sender) == ["B"]
        assert seen_store.is_seen("B") is True

    def test_fetch_error_skips_save(self, make_monitor, caplog):
        monitor, source, sender = make_monitor([FetchError("connection refused")])

        with caplog.at_level("ERROR"):
            assert monitor.run_check() == 0

        assert source.saves == 0
        assert sender.sent == []
        assert "connection refused" in caplog.text
        assert "[Scripted]" in caplog.text

    def test_unexpected_error_is_contained(self, make_monitor):
        monitor, source, _ = make_monitor([KeyError("surprise")])

        assert monitor.run_check() == 0
        assert source.saves == 0

    def test_no_items_skips_save(self, make_monitor):
        monitor, source, _ = make_monitor([[]])

        monitor.run_check()

        assert source.saves == 0

    def test_failed_delivery_keeps_item_seen(self, make_monitor, seen_store):
        monitor, source, sender = make_monitor([["A", "B", "C"]], fail_on=("B",))

        assert monitor.run_check() == 3

        assert _sent_ids(sender) == ["A", "C"]
        assert seen_store.is_seen("B") is True
        assert source.saves == 1
        saved_ids = {e["id"] for e in json.loads(seen_store.file_path.read_text())}
        assert saved_ids == {"A", "B", "C"}

    def test_repeated_item_emitted_once(self, make_monitor):
        monitor, source, sender = make_monitor([["x1"], ["x1"]])

        assert monitor.run_check() == 1
        assert monitor.run_check() == 0

        assert _sent_ids(sender) == ["x1"]
        assert source.saves == 1

    def test_save_failure_is_not_fatal(self, make_monitor, monkeypatch, caplog):
        monitor, source, sender = make_monitor([["A"], ["B"]])

        def _fail():
            raise SerializationError("disk full")

        monkeypatch.setattr(source.seen_store, "save", _fail)

        with caplog.at_level("ERROR"):
            assert monitor.run_check() == 1
            assert monitor.run_check() == 1

        assert "disk full" in caplog.text
        assert _sent_ids(sender) == ["A", "B"]

    def test_safe_check_absorbs_save_crash(self, make_monitor, monkeypatch, caplog):
        monitor, source, sender = make_monitor([["A"]])

        def _crash():
            raise OSError("read-only file system")

        monkeypatch.setattr(source.seen_store, "save", _crash)

        with caplog.at_level("ERROR"):
            assert monitor.safe_check() == 0

        assert _sent_ids(sender) == ["A"]
        assert "read-only file system" in caplog.text


class TestInitState:
    def test_load_failure_starts_empty(self, make_monitor, seen_store, caplog):
        seen_store.file_path.write_text("[{broken")
        monitor, _, _ = make_monitor([])

        with caplog.at_level("ERROR"):
            monitor.init_state()

        assert seen_store.count() == 0
        assert "Error loading state" in caplog.text

    def test_loaded_ids_are_not_realerted(self, seen_store):
        seen_store.add("x1", 2_000_000_000)
        seen_store.save()
        fresh = SeenStore(seen_store.file_path, seen_store.retention_seconds)
        source = ScriptedSource(
            ServiceConfig(telegram_api_key="k", telegram_chat_id="c"), fresh, [["x1", "x2"]]
        )
        sender = RecordingSender()
        monitor = SourceMonitor(source, Dispatcher(source.config, sender=sender, pacing_seconds=0))

        monitor.init_state()
        monitor.run_check()

        assert _sent_ids(sender) == ["x2"]


class TestRun:
    def test_checks_immediately_then_on_ticks(self, sample_config, seen_store):
        config = sample_config.model_copy(update={"check_interval": 0.01})
        stop = threading.Event()

        class StoppingSource(ScriptedSource):
            def fetch_new(self):
                result = super().fetch_new()
                if self.fetches >= 3:
                    stop.set()
                return result

        source = StoppingSource(config, seen_store, [["a"], ["b"], ["c"]])
        sender = RecordingSender()
        monitor = SourceMonitor(
            source, Dispatcher(config, sender=sender, pacing_seconds=0), stop_event=stop
        )

        thread = threading.Thread(target=monitor.run)
        thread.start()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert source.fetches == 3
        assert _sent_ids(sender) == ["a", "b", "c"]

    def test_stop_interrupts_wait(self, sample_config, seen_store):
        config = sample_config.model_copy(update={"check_interval": 3600})
        stop = threading.Event()
        source = ScriptedSource(config, seen_store, [])
        monitor = SourceMonitor(
            source, Dispatcher(config, sender=RecordingSender(), pacing_seconds=0), stop_event=stop
        )

        thread = threading.Thread(target=monitor.run)
        thread.start()
        stop.set()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert source.fetches == 1

    def test_unexpected_dispatch_error_keeps_loop_alive(self, sample_config, seen_store, caplog):
        config = sample_config.model_copy(update={"check_interval": 0.01})
        stop = threading.Event()

        class StoppingSource(ScriptedSource):
            def fetch_new(self):
                result = super().fetch_new()
                if self.fetches >= 2:
                    stop.set()
                return result

        class BrokenOnceSender(RecordingSender):
            def send(self, text):
                if not self.sent and "*Class:* a\n" in text:
                    raise RuntimeError("sender blew up")
                super().send(text)

        source = StoppingSource(config, seen_store, [["a"], ["b"]])
        sender = BrokenOnceSender()
        monitor = SourceMonitor(
            source, Dispatcher(config, sender=sender, pacing_seconds=0), stop_event=stop
        )

        with caplog.at_level("ERROR"):
            thread = threading.Thread(target=monitor.run)
            thread.start()
            thread.join(timeout=5)

        assert not thread.is_alive()
        assert source.fetches == 2
        assert _sent_ids(sender) == ["b"]
        assert "Unexpected error during check" in caplog.text


class TestScheduler:
    def test_rejects_shared_state_file(self, sample_config, tmp_path):
        scheduler = Scheduler()
        path = tmp_path / "shared.json"
        scheduler.add(ScriptedSource(sample_config, SeenStore(path, 60), []))

        with pytest.raises(ValueError):
            scheduler.add(ScriptedSource(sample_config, SeenStore(path, 60), []))

    def test_start_and_stop(self, sample_config, tmp_path):
        config = sample_config.model_copy(update={"check_interval": 3600})
        scheduler = Scheduler()
        sources = [
            ScriptedSource(config, SeenStore(tmp_path / f"{i}.json", 60), [FetchError("down")])
            for i in range(2)
        ]
        for source in sources:
            scheduler.add(source)

        scheduler.start()
        scheduler.stop(timeout=5)

        assert len(scheduler.monitors) == 2
        # One failing source does not affect the other; each ran its startup check
        assert all(source.fetches == 1 for source in sources)
