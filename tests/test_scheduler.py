from __future__ import annotations

import datetime
import random

import schedule

from services.responder import VacationResponder
from services.scheduler import ResponderLoop


def _loop(mailbox, config, scheduler=None) -> ResponderLoop:
    responder = VacationResponder(mailbox, config)
    return ResponderLoop(responder, config.poll_interval_range, scheduler=scheduler or schedule.Scheduler(), tick=0.01)


def test_delays_stay_within_interval(mailbox, responder_config):
    random.seed(1570)
    loop = _loop(mailbox, responder_config)
    loop.start()

    delays = [loop.next_delay]
    for _ in range(200):
        loop._job.run()
        delays.append(loop.next_delay)

    assert all(45 <= delay <= 120 for delay in delays)
    assert len(set(delays)) > 1


def test_start_ensures_label_and_runs_first_cycle(mailbox, responder_config):
    message = mailbox.add("Alice <alice@example.com>")
    loop = _loop(mailbox, responder_config)

    loop.start()

    status = loop.snapshot()
    assert status["state"] == "running"
    assert status["cycles"] == 1
    assert status["label_id"] in message.labels
    assert status["last_cycle"]["counts"] == {"replied": 1}
    assert 45 <= status["next_delay"] <= 120
    assert len(mailbox.sent) == 1


def test_cycles_are_rearmed_only_after_completion(mailbox, responder_config):
    scheduler = schedule.Scheduler()
    loop = _loop(mailbox, responder_config, scheduler=scheduler)
    loop.start()

    assert len(scheduler.get_jobs()) == 1
    assert scheduler.idle_seconds > 0
    scheduler.run_pending()
    assert loop.snapshot()["cycles"] == 1


def test_stop_ends_run_forever(mailbox, responder_config):
    scheduler = schedule.Scheduler()
    loop = _loop(mailbox, responder_config, scheduler=scheduler)
    loop.start()
    loop.stop()

    loop.run_forever()

    assert loop.snapshot()["state"] == "stopped"
    assert scheduler.get_jobs() == []


def test_delay_comes_from_the_rearmed_job(mailbox, responder_config):
    loop = _loop(mailbox, responder_config)
    loop.start()

    job = loop._job
    assert job.next_run - job.last_run >= datetime.timedelta(seconds=loop.next_delay)
    assert loop.snapshot()["next_delay"] == loop.next_delay


class FlakyStats:
    def __init__(self, fail_on: int):
        self.calls = 0
        self.fail_on = fail_on

    def record_cycle(self, report):
        self.calls += 1
        if self.calls == self.fail_on:
            raise OSError("disk full")


def test_failed_cycle_is_rescheduled(mailbox, responder_config):
    stats = FlakyStats(fail_on=2)
    scheduler = schedule.Scheduler()
    loop = ResponderLoop(
        VacationResponder(mailbox, responder_config, stats=stats),
        responder_config.poll_interval_range,
        scheduler=scheduler,
        tick=0.01,
    )
    loop.start()

    loop._job.run()
    status = loop.snapshot()
    assert status["state"] == "running"
    assert "disk full" in status["detail"]
    assert scheduler.get_jobs() == [loop._job]
    assert 45 <= loop.next_delay <= 120

    mailbox.add("Alice <alice@example.com>")
    loop._job.run()
    status = loop.snapshot()
    assert status["cycles"] == 3
    assert status["detail"] is None
    assert status["last_cycle"]["counts"] == {"replied": 1}
    assert len(mailbox.sent) == 1
