"""Background cleanup of abandoned upload sessions."""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from chunked_upload.core.exceptions import UploadServiceException
from chunked_upload.models.upload_session import SessionStatus
from chunked_upload.services.session_controller import SessionController
from chunked_upload.services.session_registry import SessionRegistry
from chunked_upload.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

# Paused sessions keep their chunks until resumed or cancelled explicitly;
# completed sessions keep their bookkeeping.
REAPABLE_STATUSES = frozenset({SessionStatus.CREATED, SessionStatus.IN_PROGRESS, SessionStatus.FAILED})


class SessionReaper:
    """Periodically cancels sessions that have been idle longer than ``idle_timeout`` seconds."""

    def __init__(
        self,
        registry: SessionRegistry,
        controller: SessionController,
        idle_timeout: int,
        interval: int = 60
    ):
        self.registry = registry
        self.controller = controller
        self.idle_timeout = idle_timeout
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def enabled(self) -> bool:
        return self.idle_timeout > 0

    def start(self) -> None:
        if not self.enabled:
            logger.info("Session reaper disabled (session_idle_timeout=0)")
            return
        if self._task is not None:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def reap_once(self, now: Optional[datetime] = None) -> List[str]:
        """Cancel every reapable session idle past the timeout; returns the reaped identifiers."""
        cutoff = (now or datetime.utcnow()) - timedelta(seconds=self.idle_timeout)
        reaped = []

        for session in await self.registry.list_sessions():
            if session.status not in REAPABLE_STATUSES or session.updated_at > cutoff:
                continue
            try:
                await self.controller.cancel(session.upload_id)
            except UploadServiceException as e:
                # Session moved on (resumed, merged or purged) since the listing
                logger.info("Skipped reaping session %s: %s", session.upload_id, e.message)
                continue
            reaped.append(session.upload_id)

        if reaped:
            logger.info("Reaped %d idle sessions", len(reaped))
        return reaped

    async def _run(self) -> None:
        logger.info("Upload session reaper started (idle timeout %ss)", self.idle_timeout)

        while self._running:
            try:
                await asyncio.sleep(self.interval)
                await self.reap_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Session reaper error: {e}", exc_info=True)

        logger.info("Upload session reaper stopped")
