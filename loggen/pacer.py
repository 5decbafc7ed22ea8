"""
Rate Pacer
==========

Emits log records so that the number of lines written tracks elapsed time
multiplied by the target rate.

On every tick the pacer works out how many lines should exist by now,
emits the shortfall (never more than ``burst_cap`` in one tick) and goes
back to waiting. Falling behind needs no extra state: the next tick sees a
larger shortfall and keeps catching up. Cancellation is checked between
ticks, so a stop request is honoured within one tick interval plus the
current burst.
"""

import logging
import math
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .config import RunConfig
from .records import LogRecord, TemplateSelector
from .timing import CancelSource, Clock, IntervalTicker

logger = logging.getLogger(__name__)


@dataclass
class RunState:
    """Mutable state of a run, owned by the pacer."""
    start_time: float
    emitted_count: int = 0


@dataclass(frozen=True)
class RunSummary:
    """Throughput achieved by a finished run."""
    elapsed_seconds: float
    total_emitted: int
    instance_id: str = ""

    @property
    def observed_rate(self) -> float:
        if round(self.elapsed_seconds, 6) <= 0:
            return 0.0
        return self.total_emitted / self.elapsed_seconds

    def describe(self) -> str:
        return (
            f"Generated for {self.elapsed_seconds:.2f} sec, "
            f"Printed total {self.total_emitted} lines, "
            f"{self.observed_rate:.1f} per second"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'elapsed_seconds': self.elapsed_seconds,
            'total_emitted': self.total_emitted,
            'observed_rate': self.observed_rate,
            'instance_id': self.instance_id,
        }


class Pacer:
    """
    Drives a sink at a fixed target rate until cancelled.

    Args:
        config: Rate, tick interval and burst cap for the run
        clock: Monotonic time source in seconds (``time.monotonic`` by default)
        ticker: Object whose ``wait(cancel)`` blocks until the next tick and
            returns False once cancelled. A fresh IntervalTicker is built for
            every run when omitted.
        selector: Payload selector (uniform over the default templates when
            omitted)
    """

    def __init__(
        self,
        config: RunConfig,
        clock: Optional[Clock] = None,
        ticker=None,
        selector: Optional[TemplateSelector] = None
    ):
        self.config = config
        self.clock = clock or time.monotonic
        self._ticker = ticker
        self.selector = selector or TemplateSelector()

    def run(self, sink, cancel: CancelSource) -> RunSummary:
        """
        Emit records into ``sink`` until ``cancel`` is set.

        Raises:
            ConfigError: if the run configuration is invalid. Nothing is
                emitted in that case.
        """
        self.config.validate()

        ticker = self._ticker or IntervalTicker(self.config.tick_interval, self.clock)
        instance_id = str(uuid.uuid4())
        state = RunState(start_time=self.clock())

        logger.info(
            f"Generating logs at {self.config.target_rate} logs per second. Ctrl-C to stop."
        )
        logger.debug(
            f"Instance {instance_id}: tick {self.config.tick_interval * 1000:g}ms, "
            f"burst cap {self.config.burst_cap}"
        )

        while ticker.wait(cancel):
            self.tick(state, sink, instance_id)

        elapsed = self.clock() - state.start_time
        logger.info("Stopped.")

        return RunSummary(
            elapsed_seconds=elapsed,
            total_emitted=state.emitted_count,
            instance_id=instance_id
        )

    def tick(self, state: RunState, sink, instance_id: str) -> int:
        """
        Emit the lines owed at the current time, up to the burst cap.

        Returns:
            Number of records handed to the sink during this tick.
        """
        elapsed = self.clock() - state.start_time
        expected = math.floor(elapsed * self.config.target_rate)
        deficit = expected - state.emitted_count
        if deficit <= 0:
            return 0

        batch = min(deficit, self.config.burst_cap)
        for _ in range(batch):
            state.emitted_count += 1
            sink.emit(LogRecord(
                sequence_number=state.emitted_count,
                instance_id=instance_id,
                payload=self.selector.choose()
            ))
        return batch
