"""Migration orchestrator: retry a failed navigation on a fresh proxy."""

import asyncio
import logging
from collections import deque
from typing import TYPE_CHECKING, Any

from ..browser.errors import (
    ErrorClassifier,
    HandleClosedError,
    MigrationConstructionError,
    ReadinessTimeoutError,
)
from ..browser.proxy import ProxyProvider
from ..browser.readiness import ChallengeDetectedError, wait_until_ready
from ..browser.session import ActiveSession, build_session, close_session
from ..browser.snapshot import capture_snapshot
from .config import MigrationSettings
from .policies import BackoffPolicy
from .types import MigrationOutcome, MigrationRecord, NavigationRequest, ProxyCredential

if TYPE_CHECKING:
    from ..browser.handles import ResilientPage

logger = logging.getLogger(__name__)

# Failures on a migrated session that always earn another attempt.
ALWAYS_RETRYABLE = (MigrationConstructionError, ReadinessTimeoutError, ChallengeDetectedError)


class MigrationOrchestrator:
    """Drives the navigate / back off / migrate / verify loop.

    One orchestrator serves any number of page handles. Migrations of the
    same handle are serialized by the handle's own lock; different handles
    migrate independently.
    """

    def __init__(
        self,
        settings: MigrationSettings,
        provider: ProxyProvider,
        classifier: ErrorClassifier | None = None,
        backoff: BackoffPolicy | None = None,
    ):
        """Initialize orchestrator.

        Args:
            settings: Retry budget, patterns and timeouts
            provider: Source of one proxy credential per migration
            classifier: Overrides the classifier built from ``settings.retry_on``
            backoff: Overrides the policy built from ``settings.backoff_ms``
        """
        self.settings = settings
        self.provider = provider
        self.classifier = classifier or ErrorClassifier(settings.retry_on)
        self.backoff = backoff or BackoffPolicy(
            base_delay_ms=settings.backoff_ms, jitter_ms=settings.jitter_ms
        )
        self.records: deque[MigrationRecord] = deque(maxlen=settings.history_size)
        self._teardowns: set[asyncio.Task[None]] = set()

    @property
    def pending_teardowns(self) -> int:
        return len(self._teardowns)

    async def navigate(self, handle: "ResilientPage", request: NavigationRequest) -> Any:
        """Navigate ``handle``, migrating it on retryable failures.

        Returns:
            The navigation response from whichever session succeeded

        Raises:
            Exception: The original failure when it is not retryable or no
                proxy is available; otherwise the last failure observed once
                the attempt budget is spent
        """
        if handle.migration_lock.locked():
            # Let an in-flight migration finish before touching the session.
            async with handle.migration_lock:
                pass

        generation = handle.generation
        try:
            return await handle.target.goto(request.url, **request.goto_kwargs())
        except Exception as e:
            last_error: BaseException = e

        if not self.classifier.is_retryable(last_error):
            logger.debug(f"Not retrying {request.url}: {type(last_error).__name__}: {last_error}")
            raise last_error

        max_attempts = self.settings.max_retries
        logger.warning(
            f"Navigation to {request.url} failed ({type(last_error).__name__}: {last_error}); "
            f"up to {max_attempts} migration(s) allowed"
        )

        for attempt in range(1, max_attempts + 1):
            await self.backoff.wait(attempt)
            credential: ProxyCredential | None = None

            async with handle.migration_lock:
                if handle.closed:
                    self._record(request, attempt, None, MigrationOutcome.ABORTED, last_error)
                    raise HandleClosedError(
                        f"Page closed while navigating to {request.url}"
                    ) from last_error

                if handle.generation == generation:
                    try:
                        credential = await self.provider.acquire()
                    except Exception as e:
                        logger.warning(f"No proxy available for {request.url}: {e}")
                        self._record(request, attempt, None, MigrationOutcome.ABORTED, e)
                        raise last_error

                    try:
                        await self._migrate(handle, credential)
                    except MigrationConstructionError as e:
                        logger.warning(f"Migration attempt {attempt}/{max_attempts} failed: {e}")
                        self._record(request, attempt, credential, MigrationOutcome.FAILED, e)
                        last_error = e.cause
                        continue
                    except HandleClosedError as e:
                        self._record(request, attempt, credential, MigrationOutcome.ABORTED, e)
                        raise
                else:
                    logger.info(
                        f"Handle already migrated by a concurrent navigation; "
                        f"retrying {request.url} on its session"
                    )
                generation = handle.generation
                page = handle.target

            try:
                response = await page.goto(request.url, **request.goto_kwargs())
                await wait_until_ready(
                    page,
                    self.settings.readiness_timeout_ms,
                    detect_challenges=self.settings.detect_challenges,
                )
            except Exception as e:
                self._record(request, attempt, credential, MigrationOutcome.FAILED, e)
                last_error = e
                if not isinstance(e, ALWAYS_RETRYABLE) and not self.classifier.is_retryable(e):
                    raise
                logger.warning(
                    f"Attempt {attempt}/{max_attempts} for {request.url} failed: "
                    f"{type(e).__name__}: {e}"
                )
                continue

            self._record(request, attempt, credential, MigrationOutcome.SUCCEEDED, None)
            return response

        logger.error(f"All {max_attempts} migration attempt(s) for {request.url} failed")
        raise last_error

    async def _migrate(self, handle: "ResilientPage", credential: ProxyCredential) -> None:
        """Build a replacement session behind ``credential`` and bind it."""
        snapshot = await capture_snapshot(handle.session.page)
        replacement = await build_session(handle.blueprint, credential, snapshot)
        if handle.closed:
            await close_session(replacement)
            raise HandleClosedError("Page closed while its replacement was being built")
        superseded = handle.bind_session(replacement)
        self._schedule_teardown(superseded)

    def _schedule_teardown(self, session: ActiveSession) -> None:
        task = asyncio.create_task(close_session(session))
        self._teardowns.add(task)
        task.add_done_callback(self._teardowns.discard)

    def _record(
        self,
        request: NavigationRequest,
        attempt: int,
        credential: ProxyCredential | None,
        outcome: MigrationOutcome,
        error: BaseException | None,
    ) -> MigrationRecord:
        record = MigrationRecord(
            url=request.url,
            attempt=attempt,
            max_attempts=self.settings.max_retries,
            proxy=credential.redacted() if credential else None,
            outcome=outcome,
            error=f"{type(error).__name__}: {error}" if error else None,
        )
        self.records.append(record)
        logger.info(
            "Migration attempt %d/%d for %s via %s: %s",
            attempt,
            record.max_attempts,
            record.url,
            record.proxy or "no proxy",
            record.outcome.value,
            extra={"migration": record.model_dump(mode="json")},
        )
        return record

    async def aclose(self) -> None:
        """Wait for superseded sessions that are still closing."""
        if self._teardowns:
            await asyncio.gather(*list(self._teardowns), return_exceptions=True)
