"""Validation and recording of incoming chunks."""
import logging
from dataclasses import dataclass
from typing import List, Optional

from chunked_upload.core.decorators import async_performance_monitor
from chunked_upload.core.exceptions import (
    ChunkStorageException,
    ConflictException,
    DuplicateChunkException,
    SessionNotFoundException,
    SessionClosedException,
    SessionPausedException,
    ValidationException,
)
from chunked_upload.models.upload_session import SessionStatus, UploadSession
from chunked_upload.services.chunk_store import ChunkPayload, ChunkStore
from chunked_upload.services.merger import Merger
from chunked_upload.services.session_registry import SessionRegistry
from chunked_upload.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)


@dataclass
class ChunkReceipt:
    """Outcome of an accepted chunk, reported back to the client."""
    upload_id: str
    chunk_number: int
    received_chunks: List[int]
    total_chunks: int
    status: SessionStatus

    @classmethod
    def from_session(cls, session: UploadSession, chunk_number: int) -> "ChunkReceipt":
        return cls(
            upload_id=session.upload_id,
            chunk_number=chunk_number,
            received_chunks=session.sorted_chunks(),
            total_chunks=session.total_chunks,
            status=session.status,
        )


class ChunkReceiver:
    """Accepts chunks for a session and triggers the merge once the last one lands."""

    def __init__(
        self,
        registry: SessionRegistry,
        chunk_store: ChunkStore,
        merger: Merger,
        max_chunk_size: Optional[int] = None
    ):
        self.registry = registry
        self.chunk_store = chunk_store
        self.merger = merger
        self.max_chunk_size = max_chunk_size

    @async_performance_monitor("chunk_receiver.receive")
    async def receive(
        self,
        upload_id: Optional[str],
        chunk_number: Optional[int],
        payload: ChunkPayload
    ) -> ChunkReceipt:
        """
        Validate, persist and record one chunk.

        Args:
            upload_id: Session identifier
            chunk_number: 1-based chunk number
            payload: Chunk bytes, or an async iterable of byte blocks

        Returns:
            ChunkReceipt: Received chunk numbers and the session status afterwards

        Raises:
            ValidationException: Missing identifier/chunk number or number out of range
            SessionNotFoundException: Unknown identifier
            SessionPausedException: Session is paused
            DuplicateChunkException: Chunk number already received
            SessionClosedException: Session is merging, completed or failed
            ChunkStorageException: The chunk could not be written; the session is marked failed
            MergeFailedException: This chunk completed the upload and the merge failed
        """
        if not upload_id:
            raise ValidationException("Missing required parameter: identifier", field="identifier")
        if chunk_number is None:
            raise ValidationException("Missing required parameter: chunkNumber", field="chunkNumber")
        if isinstance(chunk_number, bool) or not isinstance(chunk_number, int):
            raise ValidationException("chunkNumber must be an integer", field="chunkNumber")

        session = await self.registry.get(upload_id)
        self._check_acceptance(session, chunk_number)

        try:
            staged = await self.chunk_store.stage(
                upload_id, chunk_number, payload, max_size=self.max_chunk_size
            )
        except ChunkStorageException:
            await self._mark_failed(upload_id, f"chunk {chunk_number} could not be written")
            raise

        def accept(s: UploadSession) -> bool:
            # Re-checked under the session lock; pause or a racing duplicate may have landed meanwhile
            self._check_acceptance(s, chunk_number)
            return True

        def record(s: UploadSession) -> None:
            self.chunk_store.commit(staged)
            s.received_chunks.add(chunk_number)
            s.bytes_received += staged.size
            if s.status == SessionStatus.CREATED:
                s.status = SessionStatus.IN_PROGRESS

        try:
            updated = await self.registry.transition(upload_id, accept, record)
        except ChunkStorageException:
            self.chunk_store.discard(staged)
            await self._mark_failed(upload_id, f"chunk {chunk_number} could not be committed")
            raise
        except (SessionNotFoundException, SessionClosedException):
            self.chunk_store.discard(staged, prune=True)
            raise
        except Exception:
            self.chunk_store.discard(staged)
            raise

        logger.info(
            "Chunk %d/%d received for session %s (%d bytes)",
            chunk_number, updated.total_chunks, upload_id, staged.size
        )

        if updated.has_all_chunks():
            merged = await self.merger.finalize_if_complete(upload_id)
            updated = merged if merged is not None else await self.registry.get(upload_id)

        return ChunkReceipt.from_session(updated, chunk_number)

    @staticmethod
    def _check_acceptance(session: UploadSession, chunk_number: int) -> None:
        if chunk_number < 1 or chunk_number > session.total_chunks:
            raise ValidationException(
                f"chunkNumber must be between 1 and {session.total_chunks}",
                field="chunkNumber",
                details={"chunk_number": chunk_number, "total_chunks": session.total_chunks}
            )
        if session.status == SessionStatus.PAUSED:
            raise SessionPausedException(session.upload_id, chunk_number)
        if not session.accepts_chunks:
            raise SessionClosedException(session.upload_id, session.status.value)
        if chunk_number in session.received_chunks:
            raise DuplicateChunkException(session.upload_id, chunk_number)

    async def _mark_failed(self, upload_id: str, reason: str) -> None:
        logger.error("Storage failure for session %s: %s", upload_id, reason)

        def fail(s: UploadSession) -> None:
            s.status = SessionStatus.FAILED
            s.error_message = reason

        try:
            await self.registry.transition(
                upload_id,
                lambda s: not s.is_terminal and s.status != SessionStatus.COMPLETING,
                fail,
                reason="Session already finalized"
            )
        except (ConflictException, SessionNotFoundException) as e:
            # The storage error is what the caller sees; the session was finalized or purged meanwhile
            logger.warning("Could not mark session %s failed: %s", upload_id, e.message)
