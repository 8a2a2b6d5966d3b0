"""Tests for the fallible call wrapper."""

from __future__ import annotations

from crm_archiver.core.fallible import attempt


def test_attempt_captures_return_value() -> None:
    outcome = attempt(lambda a, b: a + b, 2, b=3)

    assert outcome.ok
    assert outcome.value == 5
    assert outcome.error is None


def test_attempt_captures_exception() -> None:
    error = ValueError("bad input")

    def fail() -> None:
        raise error

    outcome = attempt(fail)

    assert not outcome.ok
    assert outcome.error is error
    assert outcome.value is None
