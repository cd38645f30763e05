"""Shared fixtures: a manual timer scheduler and a session wired to it."""

import pandas as pd
import pytest

from linked_views.core.state import SessionState


class ManualHandle:
    def __init__(self, scheduler, due: float, callback):
        self.scheduler = scheduler
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Stand-in for the asyncio loop: timers fire only when ``advance`` is called."""

    def __init__(self):
        self.now = 0.0
        self.handles: list[ManualHandle] = []

    def __call__(self, delay: float, callback):
        handle = ManualHandle(self, self.now + delay, callback)
        self.handles.append(handle)
        return handle

    def advance(self, ms: float) -> None:
        """Move time forward, firing due timers in order."""
        self.now += ms / 1000.0
        due = sorted(
            (h for h in self.handles if not h.cancelled and h.due <= self.now + 1e-9),
            key=lambda h: h.due,
        )
        for handle in due:
            self.handles.remove(handle)
            handle.callback()

    @property
    def armed(self) -> int:
        return sum(1 for h in self.handles if not h.cancelled)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def state(scheduler):
    return SessionState(scheduler=scheduler)


@pytest.fixture
def points():
    return pd.DataFrame(
        {
            "id": ["s1", "s2", "s3", "s4", "s5"],
            "x": [0.0, 1.0, 2.0, 3.0, 4.0],
            "y": [0.0, 1.0, 4.0, 9.0, 16.0],
            "expression": [1.5, 2.5, 3.5, 4.5, None],
            "tissue": ["liver", "liver", "brain", "brain", "heart"],
        }
    )


@pytest.fixture
def matrix():
    return pd.DataFrame(
        [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0], [7.0, 8.0, 9.0]],
        index=["s1", "s2", "s3"],
        columns=["g1", "g2", "g3"],
    )
