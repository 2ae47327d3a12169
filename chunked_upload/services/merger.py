"""Reassembly of completed uploads into their final file."""
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiofiles

from chunked_upload.core.decorators import async_performance_monitor
from chunked_upload.core.exceptions import ConflictException, MergeFailedException, StorageException
from chunked_upload.models.upload_session import SessionStatus, UploadSession
from chunked_upload.services.chunk_store import ChunkStore
from chunked_upload.services.session_registry import SessionRegistry
from chunked_upload.utils.file_utils import ensure_directory, get_file_size
from chunked_upload.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)


class Merger:
    """Concatenates a session's chunks in chunk-number order, exactly once."""

    def __init__(self, registry: SessionRegistry, chunk_store: ChunkStore):
        self.registry = registry
        self.chunk_store = chunk_store

    async def finalize_if_complete(self, upload_id: str) -> Optional[UploadSession]:
        """
        Merge the session if every chunk has arrived and nobody else is merging it.

        The completion latch is a single compare-and-set from ``in_progress`` to
        ``completing``. Only one caller can win it; everyone else gets ``None``.

        Returns:
            The session after a merge this call performed, otherwise None

        Raises:
            MergeFailedException: The merge this call started failed
        """
        try:
            session = await self.registry.transition(
                upload_id,
                lambda s: s.status == SessionStatus.IN_PROGRESS and s.has_all_chunks(),
                _mark_completing,
                reason="Session is not ready to merge"
            )
        except ConflictException:
            return None

        logger.info("Completion latch acquired for session %s; merging", upload_id)
        return await self.merge(session)

    @async_performance_monitor("merger.merge", slow_threshold=5.0)
    async def merge(self, session: UploadSession) -> UploadSession:
        """
        Stream chunks 1..total_chunks into ``final_path`` and delete each one once written.

        Only called by the latch holder, with the session in ``completing``.
        """
        upload_id = session.upload_id
        final_path = Path(session.final_path)
        current_chunk: Optional[int] = None

        try:
            ensure_directory(final_path.parent)
            async with aiofiles.open(final_path, "wb") as out:
                for chunk_number in range(1, session.total_chunks + 1):
                    current_chunk = chunk_number
                    blocks = self.chunk_store.iter_chunk(upload_id, chunk_number)
                    try:
                        async for block in blocks:
                            await out.write(block)
                    finally:
                        await blocks.aclose()
                    await out.flush()
                    self.chunk_store.delete_chunk(upload_id, chunk_number)
            self.chunk_store.purge(upload_id)
        except (OSError, StorageException) as e:
            reason = f"chunk {current_chunk}: {e}" if current_chunk else str(e)
            await self._mark_failed(upload_id, reason)
            raise MergeFailedException(upload_id, reason, original_error=e)
        except BaseException as e:
            # Cancellation or an unexpected error must not strand the session in completing
            await self._mark_failed(upload_id, f"chunk {current_chunk}: interrupted ({e!r})")
            raise

        merged = await self.registry.transition(
            upload_id,
            lambda s: s.status == SessionStatus.COMPLETING,
            _mark_completed,
            reason="Session left the completing state during merge"
        )
        logger.info(
            "Upload session %s merged into %s (%d chunks, %d bytes)",
            upload_id, final_path, session.total_chunks, get_file_size(final_path)
        )
        return merged

    async def _mark_failed(self, upload_id: str, reason: str) -> None:
        logger.error("Merge failed for session %s: %s", upload_id, reason)

        def fail(s: UploadSession) -> None:
            s.status = SessionStatus.FAILED
            s.error_message = reason

        await self.registry.transition(
            upload_id,
            lambda s: s.status == SessionStatus.COMPLETING,
            fail
        )


def _mark_completing(session: UploadSession) -> None:
    session.status = SessionStatus.COMPLETING


def _mark_completed(session: UploadSession) -> None:
    session.status = SessionStatus.COMPLETED
    session.completed_at = datetime.utcnow()
