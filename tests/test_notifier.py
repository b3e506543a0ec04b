"""Tests for the failure notifier."""

from wally_lint.registry.notifier import FailureNotifier


class _Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_repeats_are_suppressed_within_cooldown():
    sent = []
    clock = _Clock()
    notifier = FailureNotifier(sink=sent.append, cooldown=30.0, clock=clock)

    assert notifier.notify("rate limited")
    assert not notifier.notify("rate limited")
    clock.now += 29.0
    assert not notifier.notify("rate limited")
    assert sent == ["rate limited"]


def test_message_is_sent_again_after_cooldown():
    sent = []
    clock = _Clock()
    notifier = FailureNotifier(sink=sent.append, cooldown=30.0, clock=clock)

    notifier.notify("offline")
    clock.now += 30.0
    assert notifier.notify("offline")
    assert sent == ["offline", "offline"]


def test_distinct_messages_are_independent():
    sent = []
    notifier = FailureNotifier(sink=sent.append, clock=_Clock())
    notifier.notify("a")
    notifier.notify("b")
    notifier.notify("a")
    assert sent == ["a", "b"]


def test_reset_and_no_sink():
    notifier = FailureNotifier(clock=_Clock())
    assert notifier.notify("x")
    notifier.reset()
    assert notifier.notify("x")


def test_expired_messages_are_forgotten():
    clock = _Clock()
    notifier = FailureNotifier(cooldown=10.0, clock=clock)
    for blob in ("blob-a", "blob-b", "blob-c"):
        notifier.notify(f"Could not read {blob}")
    assert notifier.pending == 3

    clock.now += 10.0
    notifier.notify("offline")
    assert notifier.pending == 1
