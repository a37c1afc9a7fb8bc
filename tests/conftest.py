import locale

import pytest


@pytest.fixture(autouse=True)
def dollar_locale(monkeypatch):
    """Make currency formatting independent of the host locale."""

    def no_currency(*args, **kwargs):
        raise ValueError("Currency formatting is not possible using the 'C' locale.")

    monkeypatch.setattr(locale, "currency", no_currency)


class _Task:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler driven by a virtual clock; callbacks run inside advance()."""

    def __init__(self):
        self.now = 0.0
        self.tasks = []

    def schedule(self, delay, callback):
        task = _Task(self.now + delay, callback)
        self.tasks.append(task)
        return task

    def advance(self, seconds):
        self.now += seconds
        for task in sorted(self.tasks, key=lambda t: t.due):
            if task.due <= self.now + 1e-9 and not task.cancelled and not task.fired:
                task.fired = True
                task.callback()


@pytest.fixture
def scheduler():
    return ManualScheduler()
