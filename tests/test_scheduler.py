from __future__ import annotations

from oszust.engine.scheduler import Scheduler
from oszust.engine.state import Event


def _recorder(log: list[str], name: str):
    def fire() -> list[Event]:
        log.append(name)
        return [{"type": name}]

    return fire


def test_tasks_fire_in_due_order() -> None:
    s = Scheduler()
    log: list[str] = []
    s.schedule((1, "late"), 2.0, _recorder(log, "late"))
    s.schedule((2, "early"), 1.0, _recorder(log, "early"))
    s.schedule((3, "tie"), 1.0, _recorder(log, "tie"))

    events = s.advance(2.0)
    assert log == ["early", "tie", "late"]
    assert [e["type"] for e in events] == ["early", "tie", "late"]
    assert s.now == 2.0
    assert s.pending() == []


def test_cancelled_and_replaced_tasks_do_not_fire() -> None:
    s = Scheduler()
    log: list[str] = []
    s.schedule((1, "expire"), 1.0, _recorder(log, "first"))
    s.schedule((1, "expire"), 3.0, _recorder(log, "second"))
    s.schedule((1, "ai"), 0.5, _recorder(log, "ai"))
    s.schedule((2, "expire"), 0.5, _recorder(log, "other"))

    assert s.cancel_protocol(1) == 2
    assert not s.cancel((1, "expire"))
    s.advance(5.0)
    assert log == ["other"]


def test_task_scheduled_by_a_callback_fires_in_same_advance() -> None:
    s = Scheduler()
    log: list[str] = []

    def chain() -> list[Event]:
        log.append("chain")
        s.schedule((1, "next"), 1.0, _recorder(log, "next"))
        return []

    s.schedule((1, "start"), 1.0, chain)
    s.advance(1.5)
    assert log == ["chain"]
    assert s.is_scheduled((1, "next"))
    s.advance(0.5)
    assert log == ["chain", "next"]
    assert not s.is_scheduled((1, "next"))
