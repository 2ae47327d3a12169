"""Pause, resume, status and operator cleanup for upload sessions."""
import logging
from pathlib import Path
from typing import Any, Dict, List

from chunked_upload.models.upload_session import (
    ACCEPTING_STATUSES,
    SessionStatus,
    UploadSession,
)
from chunked_upload.services.chunk_store import ChunkStore
from chunked_upload.services.merger import Merger
from chunked_upload.services.session_registry import SessionRegistry
from chunked_upload.utils.file_utils import safe_remove
from chunked_upload.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)


class SessionController:
    """Session-level operations that do not carry chunk payloads."""

    def __init__(self, registry: SessionRegistry, chunk_store: ChunkStore, merger: Merger):
        self.registry = registry
        self.chunk_store = chunk_store
        self.merger = merger

    async def pause(self, upload_id: str) -> UploadSession:
        """
        Stop accepting chunks for a session. Received chunks are kept.

        Pausing an already paused session is a no-op. Sessions that are
        merging, completed or failed cannot be paused.
        """
        session = await self.registry.transition(
            upload_id,
            lambda s: s.status in ACCEPTING_STATUSES or s.status == SessionStatus.PAUSED,
            _set_status(SessionStatus.PAUSED),
            reason="Only created or in-progress sessions can be paused"
        )
        logger.info("Upload paused for session %s (%d/%d chunks)",
                    upload_id, len(session.received_chunks), session.total_chunks)
        return session

    async def resume(self, upload_id: str) -> UploadSession:
        """
        Accept chunks again for a paused session.

        If every chunk had already arrived when the session was paused, the
        merge runs now.
        """
        session = await self.registry.transition(
            upload_id,
            lambda s: s.status == SessionStatus.PAUSED,
            _set_status(SessionStatus.IN_PROGRESS),
            reason="Only paused sessions can be resumed"
        )
        logger.info("Upload resumed for session %s (%d/%d chunks)",
                    upload_id, len(session.received_chunks), session.total_chunks)

        if session.has_all_chunks():
            merged = await self.merger.finalize_if_complete(upload_id)
            if merged is not None:
                return merged
            return await self.registry.get(upload_id)
        return session

    async def status(self, upload_id: str) -> UploadSession:
        return await self.registry.get(upload_id)

    async def cancel(self, upload_id: str) -> UploadSession:
        """
        Operator purge: drop a session's chunks, partial output and bookkeeping.

        A completed session keeps its merged file; only the bookkeeping goes.
        Sessions that are currently merging cannot be cancelled.
        """
        session = await self.registry.get(upload_id)

        if session.status != SessionStatus.COMPLETED:
            session = await self.registry.transition(
                upload_id,
                lambda s: s.status not in (SessionStatus.COMPLETING, SessionStatus.COMPLETED),
                _mark_cancelled,
                reason="Session is being merged or already completed"
            )
            self.chunk_store.purge(upload_id)
            if Path(session.final_path).exists():
                safe_remove(session.final_path)

        removed = await self.registry.delete(upload_id)
        logger.info("Upload cancelled for session %s", upload_id)
        return removed

    async def list_completed(self) -> List[UploadSession]:
        """Sessions whose merged file is available, oldest first."""
        sessions = await self.registry.list_sessions()
        completed = [s for s in sessions if s.status == SessionStatus.COMPLETED]
        return sorted(completed, key=lambda s: s.completed_at)

    async def stats(self) -> Dict[str, Any]:
        """Aggregate counts over all tracked sessions."""
        sessions = await self.registry.list_sessions()
        by_status = {status.value: 0 for status in SessionStatus}
        for session in sessions:
            by_status[session.status.value] += 1

        return {
            "total_sessions": len(sessions),
            "active_sessions": sum(
                by_status[s.value]
                for s in (SessionStatus.CREATED, SessionStatus.IN_PROGRESS, SessionStatus.COMPLETING)
            ),
            "sessions_by_status": by_status,
            "bytes_received": sum(session.bytes_received for session in sessions),
        }


def _set_status(status: SessionStatus):
    def mutate(session: UploadSession) -> None:
        session.status = status
    return mutate


def _mark_cancelled(session: UploadSession) -> None:
    session.status = SessionStatus.FAILED
    session.error_message = "cancelled"
