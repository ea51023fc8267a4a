from __future__ import annotations

import time

import pytest

from services.cancellation import Deadline, OperationCancelled, check_deadline


def test_deadline_without_timeout_never_expires() -> None:
    deadline = Deadline()

    deadline.check()
    assert deadline.remaining() is None
    assert deadline.expired() is False


def test_cancel_is_observed_by_check() -> None:
    deadline = Deadline(timeout=60)
    deadline.cancel()

    assert deadline.cancelled is True
    with pytest.raises(OperationCancelled, match="cancelled"):
        deadline.check()


def test_timeout_expires(monkeypatch) -> None:
    now = [1000.0]
    monkeypatch.setattr(time, "monotonic", lambda: now[0])
    deadline = Deadline(timeout=5)

    assert deadline.remaining() == pytest.approx(5.0)
    now[0] += 6

    assert deadline.remaining() == 0.0
    with pytest.raises(OperationCancelled, match="deadline"):
        deadline.check()


def test_check_deadline_accepts_none() -> None:
    check_deadline(None)
