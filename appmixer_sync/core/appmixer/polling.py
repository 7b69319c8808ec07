"""Polling for asynchronous deletion tickets."""
from __future__ import annotations
import logging
import time
from typing import Callable, Optional

from .client import AppmixerClient
from .exceptions import DeletionFailedError, DeletionTimeoutError
from .models import DeletionStatus

DEFAULT_MAX_ATTEMPTS = 30
DEFAULT_DELAY = 2.0

logger = logging.getLogger(__name__)


class DeletionPoller:
    """Drive a deletion ticket to a terminal status.

    ``pending`` (or any status the service does not document) keeps polling,
    ``completed`` returns, ``failed``/``cancelled`` raise DeletionFailedError.
    Running out of attempts, or passing ``deadline``, raises
    DeletionTimeoutError rather than reporting success.

    Usage:
        poller = DeletionPoller(client, max_attempts=30, delay=2.0)
        poller.wait_for_user_deletion(user_id, ticket)
    """

    def __init__(
        self,
        client: AppmixerClient,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delay: float = DEFAULT_DELAY,
        backoff: float = 1.0,
        max_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize deletion poller.

        Args:
            client: Authenticated Appmixer client
            max_attempts: Status fetches before giving up
            delay: Seconds to wait between attempts
            backoff: Multiplier applied to the delay after each attempt (1.0 = fixed)
            max_delay: Upper bound for the delay when backoff > 1
            timeout: Default wall-clock budget in seconds when no deadline is given
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock used for deadlines
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if delay < 0 or backoff < 1:
            raise ValueError("delay must be >= 0 and backoff >= 1")
        self.client = client
        self.max_attempts = max_attempts
        self.delay = delay
        self.backoff = backoff
        self.max_delay = max_delay
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock

    def fetch_user_deletion_status(self, user_id: str, ticket: str) -> DeletionStatus:
        """Fetch one status snapshot for a user deletion ticket."""
        payload = self.client.get(f"/users/{user_id}/delete-status/{ticket}") or {}
        return DeletionStatus.from_api(user_id, ticket, payload)

    def wait_for_user_deletion(
        self,
        user_id: str,
        ticket: str,
        deadline: Optional[float] = None,
    ) -> DeletionStatus:
        """Poll a user deletion ticket until it completes."""
        return self.wait(
            lambda: self.fetch_user_deletion_status(user_id, ticket),
            entity_id=user_id,
            ticket=ticket,
            deadline=deadline,
        )

    def wait(
        self,
        fetch_status: Callable[[], DeletionStatus],
        entity_id: str,
        ticket: str,
        deadline: Optional[float] = None,
    ) -> DeletionStatus:
        """Poll ``fetch_status`` until a terminal status.

        Args:
            fetch_status: Performs one status request; transport errors propagate
            entity_id: Entity being deleted (for errors and logs)
            ticket: Opaque ticket (for errors and logs)
            deadline: Optional absolute ``clock()`` value after which no further
                status checks start (the first check always runs)

        Returns:
            The completed status

        Raises:
            DeletionFailedError: On failed/cancelled
            DeletionTimeoutError: On attempt exhaustion or passed deadline
        """
        if deadline is None and self.timeout is not None:
            deadline = self._clock() + self.timeout
        delay = self.delay
        last_status = ""
        attempts = 0
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1 and deadline is not None and self._clock() >= deadline:
                break
            attempts = attempt
            status = fetch_status()
            last_status = status.status
            logger.debug(
                "Deletion status entity_id=%s ticket=%s status=%s steps=%s/%s attempt=%s",
                entity_id, ticket, status.status, status.steps_done, status.steps_total, attempt,
            )

            if status.is_completed:
                return status
            if status.is_failed:
                raise DeletionFailedError(entity_id, status.status)

            if attempt < self.max_attempts:
                wait = delay
                if deadline is not None:
                    wait = max(0.0, min(wait, deadline - self._clock()))
                self._sleep(wait)
                delay = delay * self.backoff
                if self.max_delay is not None:
                    delay = min(delay, self.max_delay)

        logger.warning(
            "Deletion did not complete entity_id=%s ticket=%s attempts=%s last_status=%s",
            entity_id, ticket, attempts, last_status or "pending",
        )
        raise DeletionTimeoutError(entity_id, ticket, attempts, last_status)
