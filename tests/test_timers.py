from __future__ import annotations

import threading

import pytest

from allball.timers import Debouncer, Ticker
from allball.views import SearchDebouncer


def test_debouncer_delivers_only_latest_value():
    delivered: list[str] = []
    done = threading.Event()

    def record(value: str) -> None:
        delivered.append(value)
        done.set()

    debouncer = Debouncer(0.05, record)
    debouncer.push("s")
    debouncer.push("sh")
    debouncer.push("sho")

    assert done.wait(2.0)
    assert delivered == ["sho"]
    assert debouncer.pending is False


def test_debouncer_flush_and_cancel():
    delivered: list[str] = []
    with Debouncer(10.0, delivered.append) as debouncer:
        debouncer.push("spot")
        assert debouncer.pending is True
        assert debouncer.flush() is True
        assert debouncer.flush() is False

        debouncer.push("free")
        debouncer.cancel()
        assert debouncer.pending is False

    assert delivered == ["spot"]


def test_debouncer_rejects_push_after_close():
    debouncer = Debouncer(0.01, lambda value: None)
    debouncer.close()
    with pytest.raises(RuntimeError):
        debouncer.push("late")


def test_negative_delay_is_rejected():
    with pytest.raises(ValueError):
        Debouncer(-1, lambda value: None)


def test_ticker_calls_back_until_stopped():
    calls: list[int] = []
    ready = threading.Event()

    def tick() -> None:
        calls.append(1)
        if len(calls) >= 3:
            ready.set()

    ticker = Ticker(0.01, tick).start()
    assert ready.wait(2.0)
    ticker.stop()
    count = len(calls)

    assert ticker.running is False
    ready.clear()
    assert not ready.wait(0.05)
    assert len(calls) == count
    with pytest.raises(RuntimeError):
        ticker.start()


def test_ticker_survives_failing_callback(caplog):
    calls: list[int] = []
    ready = threading.Event()

    def flaky() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        ready.set()

    with caplog.at_level("ERROR"):
        with Ticker(0.01, flaky):
            assert ready.wait(2.0)
    assert "Ticker callback failed" in caplog.text


def test_ticker_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        Ticker(0, lambda: None)


def test_search_debouncer_flush_delivers_trimmed_term():
    seen: list[str] = []
    with SearchDebouncer(seen.append, delay_ms=10_000) as search:
        search.update("  closeout ")
        assert search.filtering is True
        assert search.flush() is True
        assert search.filtering is False

    assert seen == ["closeout"]
    assert search.term == "closeout"
