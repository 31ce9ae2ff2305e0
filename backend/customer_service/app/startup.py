# backend/customer_service/app/startup.py

import asyncio
import enum
import logging

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 10
BASE_DELAY_SECONDS = 5.0
MAX_DELAY_SECONDS = 30.0


class StartupState(str, enum.Enum):
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    SYNCING = "syncing"
    READY = "ready"
    FAILED = "failed"


class StartupError(RuntimeError):
    """Raised when the database could not be brought up."""


class StartupSequencer:
    """
    Brings the database up before customer routes are served.

    Each attempt authenticates against the database and then synchronizes the
    schema. A failed attempt is retried after ``min(base_delay * attempt,
    max_delay)`` seconds, up to ``max_attempts`` attempts in total. The
    sequencer ends in ``READY`` or raises ``StartupError`` in ``FAILED``.
    """

    def __init__(
        self,
        database,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = BASE_DELAY_SECONDS,
        max_delay: float = MAX_DELAY_SECONDS,
        sleep=asyncio.sleep,
    ):
        self.database = database
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

        self.state = StartupState.CONNECTING
        self.attempts = 0
        self.last_error = None

    @property
    def ready(self) -> bool:
        return self.state is StartupState.READY

    def backoff(self, attempt: int) -> float:
        return min(self.base_delay * attempt, self.max_delay)

    async def run(self) -> StartupState:
        self.attempts = 0
        self.state = StartupState.CONNECTING
        while self.attempts < self.max_attempts:
            self.attempts += 1
            logger.info(
                f"Customer Service: Attempting to connect to {self.database!r} (attempt {self.attempts}/{self.max_attempts})..."
            )
            try:
                self.state = StartupState.AUTHENTICATING
                await run_in_threadpool(self.database.authenticate)
                logger.info("Customer Service: Database authenticated.")

                self.state = StartupState.SYNCING
                await run_in_threadpool(self.database.sync_schema)
                logger.info("Customer Service: Database schema synchronized.")
            except SQLAlchemyError as e:
                self.last_error = e
                self.state = StartupState.CONNECTING
                logger.warning(f"Customer Service: Database startup failed: {e}")
                if self.attempts >= self.max_attempts:
                    break
                delay = self.backoff(self.attempts)
                logger.info(f"Customer Service: Retrying in {delay:g} seconds...")
                await self._sleep(delay)
                continue
            except Exception as e:
                self.last_error = e
                self.state = StartupState.FAILED
                logger.critical(
                    f"Customer Service: An unexpected error occurred during database startup: {e}",
                    exc_info=True,
                )
                raise StartupError("Unexpected error during database startup") from e

            self.state = StartupState.READY
            logger.info(
                f"Customer Service: Database ready after {self.attempts} attempt(s)."
            )
            return self.state

        self.state = StartupState.FAILED
        logger.critical(
            f"Customer Service: Failed to connect to the database after {self.attempts} attempts."
        )
        raise StartupError(
            f"Database unavailable after {self.attempts} attempts"
        ) from self.last_error
