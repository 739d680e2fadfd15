from __future__ import annotations

from morphoscan.worker.shutdown import ShutdownOutcome, TwoPhaseShutdown, shutdown_process
from tests.unit._fake_process import FakeClock, FakeProcess


def test_already_exited_process_is_left_alone() -> None:
    proc = FakeProcess(exit_code=0)
    sd = TwoPhaseShutdown(process=proc, grace_s=0.1, kill_wait_s=0.1)
    assert sd.begin() == ShutdownOutcome.ALREADY_EXITED
    assert proc.terminated == 0


def test_graceful_exit_within_grace_period() -> None:
    clock = FakeClock()
    proc = FakeProcess(exits_on_terminate=True)
    sd = TwoPhaseShutdown(process=proc, grace_s=0.1, kill_wait_s=0.1, clock=clock)

    assert sd.begin() is None
    assert proc.terminated == 1
    assert sd.step() == ShutdownOutcome.GRACEFUL
    assert proc.killed == 0


def test_kill_after_grace_period() -> None:
    clock = FakeClock()
    proc = FakeProcess(exits_on_terminate=False)
    sd = TwoPhaseShutdown(process=proc, grace_s=0.1, kill_wait_s=0.05, clock=clock)

    sd.begin()
    assert sd.step() is None
    clock.advance(0.05)
    assert sd.step() is None
    clock.advance(0.06)
    assert sd.step() == ShutdownOutcome.KILLED
    assert proc.killed == 1
    assert proc.waits == [0.05]
    # Settled outcomes stick.
    assert sd.step() == ShutdownOutcome.KILLED


def test_blocking_form() -> None:
    assert shutdown_process(FakeProcess(), grace_s=0.1, kill_wait_s=0.1) == ShutdownOutcome.GRACEFUL

    stubborn = FakeProcess(exits_on_terminate=False)
    assert shutdown_process(stubborn, grace_s=0.1, kill_wait_s=0.1) == ShutdownOutcome.KILLED
    assert stubborn.killed == 1
    assert stubborn.poll() == -9
