from unittest.mock import Mock

from quotadeck.scheduler import RefreshScheduler


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


def make_scheduler():
    clock = FakeClock()
    return RefreshScheduler(clock=clock, sleep=clock.sleep), clock


def test_job_runs_after_interval():
    scheduler, clock = make_scheduler()
    func = Mock()
    scheduler.add_job("snapshot", 60, func)

    assert scheduler.run_pending() == []
    clock.now += 60
    assert scheduler.run_pending() == ["snapshot"]
    func.assert_called_once()
    assert scheduler.seconds_until_next() == 60


def test_run_now():
    scheduler, _ = make_scheduler()
    func = Mock()
    scheduler.add_job("snapshot", 60, func, run_now=True)

    assert scheduler.run_pending() == ["snapshot"]


def test_zero_interval_disables_job():
    scheduler, _ = make_scheduler()
    scheduler.add_job("snapshot", 60, Mock())
    scheduler.add_job("snapshot", 0, Mock())

    assert scheduler.jobs == {}
    assert scheduler.seconds_until_next() is None


def test_failing_job_does_not_stop_others():
    scheduler, _ = make_scheduler()
    ok = Mock()
    scheduler.add_job("broken", 10, Mock(side_effect=RuntimeError("boom")), run_now=True)
    scheduler.add_job("ok", 10, ok, run_now=True)

    assert sorted(scheduler.run_pending()) == ["broken", "ok"]
    ok.assert_called_once()


def test_run_forever_until_stopped():
    scheduler, clock = make_scheduler()
    snapshot = Mock()
    history = Mock()
    scheduler.add_job("snapshot", 60, snapshot)
    scheduler.add_job("history", 300, history)

    scheduler.run_forever(should_stop=lambda: clock.now >= 1300)

    assert snapshot.call_count == 5
    assert history.call_count == 1


def test_run_forever_without_jobs_returns():
    scheduler, _ = make_scheduler()
    scheduler.run_forever()
