import pytest

from loggen.sinks import LineSink


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SimulatedTicker:
    """
    Advances a FakeClock by one interval per tick.

    Cancels itself after ``max_ticks`` ticks or once the clock reaches
    ``cancel_at``, whichever is configured.
    """

    def __init__(self, clock, interval, max_ticks=None, cancel_at=None):
        self.clock = clock
        self.interval = interval
        self.max_ticks = max_ticks
        self.cancel_at = cancel_at
        self.ticks = 0

    def wait(self, cancel) -> bool:
        if cancel.is_set():
            return False
        self.clock.advance(self.interval)
        if self.max_ticks is not None and self.ticks >= self.max_ticks:
            cancel.set()
            return False
        if self.cancel_at is not None and self.clock() >= self.cancel_at:
            cancel.set()
            return False
        self.ticks += 1
        return True


class RecordingSink(LineSink):
    def __init__(self):
        self.records = []
        self.closed = False

    def emit(self, record):
        self.records.append(record)

    def close(self):
        self.closed = True


class CountingSink(LineSink):
    def __init__(self):
        self.count = 0
        self.last_sequence = 0

    def emit(self, record):
        self.count += 1
        self.last_sequence = record.sequence_number


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_ticker(clock):
    def factory(interval=0.01, **kwargs):
        return SimulatedTicker(clock, interval, **kwargs)
    return factory


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def counting_sink():
    return CountingSink()
