"""
Stabilization poller: wait until a predicate over live resource state holds.
"""

import logging
import time
from typing import Callable, Optional

from .config import Backoff, HandlerConfig
from .context import ContinuationState
from .faults import StabilizationTimeout

logger = logging.getLogger(__name__)


def with_probing(
    state: ContinuationState,
    probe_name: str,
    n_probes: int,
    checker: Callable[[], bool],
    enabled: bool = True,
) -> bool:
    """
    Require `n_probes` consecutive positive checks before reporting success.

    The counter lives in the continuation state, so consecutive positives are
    counted across invocations too. Any negative result resets it, and so does
    reaching the threshold.
    """
    check = checker()
    if not enabled:
        return check
    if not check:
        state.flush_probes(probe_name)
        return False
    if state.inc_probes(probe_name) >= n_probes:
        state.flush_probes(probe_name)
        return True
    return False


class Poller:
    """Polls a check with backoff until it holds, the budget runs out or time is up."""

    def __init__(
        self,
        config: Optional[HandlerConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or HandlerConfig()
        self.sleep = sleep
        self.clock = clock
        self._started: Optional[float] = None

    @property
    def backoff(self) -> Backoff:
        return self.config.backoff

    def start_invocation(self) -> None:
        """Start the per-invocation budget clock."""
        self._started = self.clock()

    def _budget_left(self) -> Optional[float]:
        budget = self.config.invocation_budget
        if budget is None:
            return None
        if self._started is None:
            self._started = self.clock()
        return budget - (self.clock() - self._started)

    def stabilize(
        self,
        check: Callable[[], bool],
        name: str,
        resource_id: Optional[str],
        state: ContinuationState,
    ) -> bool:
        """
        Poll `check` until it returns True.

        Args:
            check: Predicate reading live state; may raise a provider fault
            name: Stabilization name, used to track time already waited
            resource_id: Identifier reported in the timeout error
            state: Continuation state holding waited time across invocations,
                including the callback delay spent between them

        Returns:
            True when stable, False when this invocation's budget is used up

        Raises:
            StabilizationTimeout: if the total wait would exceed the backoff timeout
        """
        waited = state.waited.get(name, 0.0)
        attempt = 0
        while True:
            if check():
                state.waited.pop(name, None)
                logger.debug(f"{name}: stable after {attempt + 1} check(s)")
                return True

            delay = self.backoff.delay_for(attempt)
            if waited + delay > self.backoff.timeout:
                state.waited.pop(name, None)
                raise StabilizationTimeout(resource_id, name)

            budget_left = self._budget_left()
            if budget_left is not None and delay > budget_left:
                # the caller waits callback_delay before invoking again
                state.waited[name] = waited + self.config.callback_delay
                logger.info(f"{name}: not stable yet, yielding after {waited:.0f}s waited")
                return False

            logger.debug(f"{name}: attempt {attempt + 1} not stable, retrying in {delay}s")
            self.sleep(delay)
            waited += delay
            state.waited[name] = waited
            attempt += 1
