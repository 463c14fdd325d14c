"""Bounded poll loop shared by every lifecycle phase."""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from maintenance_manager.exceptions import MaintenanceManagerError
from maintenance_manager.logging_config import get_logger
from maintenance_manager.models.health import HealthCheckResult, OutcomeStatus
from maintenance_manager.models.policy import RetryPolicy
from maintenance_manager.reporting import OperationContext

logger = get_logger(__name__)

EXHAUSTED_BY_ATTEMPTS = "attempts"
EXHAUSTED_BY_TIMEOUT = "timeout"
CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollResult:
    """How a poll loop ended."""

    status: OutcomeStatus
    attempts: int
    elapsed: float
    last_result: HealthCheckResult | None = None
    exhausted_by: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    def describe(self) -> str:
        if self.exhausted_by == CANCELLED:
            return f"cancelled after {self.attempts} attempts"
        if self.exhausted_by == EXHAUSTED_BY_ATTEMPTS:
            return f"no healthy result in {self.attempts} attempts (last: {self.last_result})"
        if self.exhausted_by == EXHAUSTED_BY_TIMEOUT:
            return (
                f"no healthy result within {self.elapsed:.0f}s "
                f"after {self.attempts} attempts (last: {self.last_result})"
            )
        return f"healthy after {self.attempts} attempts in {self.elapsed:.1f}s"


def _query(probe: Callable[[], HealthCheckResult]) -> HealthCheckResult:
    try:
        return probe()
    except MaintenanceManagerError:
        raise
    except Exception as e:
        logger.debug(f"Probe raised {type(e).__name__}: {e}", exc_info=True)
        return HealthCheckResult.unreachable(f"{type(e).__name__}: {e}")


def poll_until(
    probe: Callable[[], HealthCheckResult],
    policy: RetryPolicy,
    *,
    description: str,
    context: OperationContext | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    cancel_event: threading.Event | None = None,
    settle: float = 0.0,
) -> PollResult:
    """Poll ``probe`` until it reports healthy or the policy is exhausted.

    The loop is bounded by ``policy.max_attempts`` queries and by
    ``policy.total_timeout`` seconds; when both would end the loop in the same
    iteration the elapsed-time bound is reported. A probe that raises is
    counted as an unreachable result, except for a
    :class:`MaintenanceManagerError` such as a lost endpoint session, which
    propagates.

    Args:
        probe: Zero-argument callable performing one query
        policy: Attempt and time budget
        description: What is being waited for, used in reports
        context: Reporting handle; nothing is printed when None
        clock: Monotonic clock
        sleep: Sleep function called between queries
        cancel_event: Checked before every query, never during a sleep
        settle: If positive, a healthy result must be observed again after
            this many seconds before the loop succeeds. The re-check is an
            ordinary query: it needs a free attempt and must fit in the
            remaining time, otherwise the loop ends TIMED_OUT even though the
            last result was healthy

    Returns:
        PollResult describing how the loop ended
    """
    started = clock()
    attempts = 0
    last: HealthCheckResult | None = None
    healthy_since: float | None = None

    def finish(status: OutcomeStatus, exhausted_by: str | None = None) -> PollResult:
        result = PollResult(
            status=status,
            attempts=attempts,
            elapsed=clock() - started,
            last_result=last,
            exhausted_by=exhausted_by,
        )
        logger.debug(f"{description}: {result.describe()}")
        return result

    while True:
        if cancel_event is not None and cancel_event.is_set():
            if context:
                context.warning(f"{description}: cancelled by operator")
            return finish(OutcomeStatus.ABORTED, CANCELLED)

        if clock() - started >= policy.total_timeout:
            return finish(OutcomeStatus.TIMED_OUT, EXHAUSTED_BY_TIMEOUT)

        attempts += 1
        last = _query(probe)

        if context:
            message = f"{description}: attempt {attempts}/{policy.max_attempts}: {last}"
            if last.is_healthy:
                context.info(message)
            else:
                context.warning(message)

        if last.is_healthy:
            if settle <= 0:
                return finish(OutcomeStatus.SUCCESS)
            if healthy_since is None:
                healthy_since = clock()
            elif clock() - healthy_since >= settle:
                return finish(OutcomeStatus.SUCCESS)
            wait = settle
        else:
            healthy_since = None
            wait = policy.interval

        if clock() - started + wait >= policy.total_timeout:
            return finish(OutcomeStatus.TIMED_OUT, EXHAUSTED_BY_TIMEOUT)
        if attempts >= policy.max_attempts:
            return finish(OutcomeStatus.TIMED_OUT, EXHAUSTED_BY_ATTEMPTS)

        sleep(wait)
