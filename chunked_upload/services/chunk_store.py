"""Local filesystem storage for in-flight upload chunks."""
import logging
import os
import secrets
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, List, Optional, Union

import aiofiles

from chunked_upload.config import CHUNK_NUMBER_WIDTH
from chunked_upload.core.exceptions import ChunkStorageException, FileTooLargeException
from chunked_upload.models.upload_session import ChunkRecord
from chunked_upload.utils.file_utils import ensure_directory, safe_remove
from chunked_upload.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

ChunkPayload = Union[bytes, bytearray, memoryview, AsyncIterable[bytes]]

CHUNK_SUFFIX = ".part"
STAGING_SUFFIX = ".staging"


class ChunkStore:
    """
    Persists chunk payloads under ``<base_dir>/<upload_id>/<chunk_number>.part``.

    Writes happen in two steps. ``stage`` streams the payload into a uniquely
    named temporary file; ``commit`` renames it to the chunk's deterministic
    name. The rename is performed by the receiver while it holds the session
    lock, so a rejected or duplicate submission never overwrites an accepted
    chunk.
    """

    def __init__(self, base_dir: Union[str, Path], block_size: int = 1024 * 1024):
        self.base_dir = Path(base_dir)
        self.block_size = block_size

    def session_dir(self, upload_id: str) -> Path:
        return self.base_dir / upload_id

    def chunk_path(self, upload_id: str, chunk_number: int) -> Path:
        return self.session_dir(upload_id) / f"{chunk_number:0{CHUNK_NUMBER_WIDTH}d}{CHUNK_SUFFIX}"

    async def stage(
        self,
        upload_id: str,
        chunk_number: int,
        payload: ChunkPayload,
        max_size: Optional[int] = None
    ) -> ChunkRecord:
        """
        Write a chunk payload to a temporary file in the session directory.

        Args:
            upload_id: Owning session
            chunk_number: 1-based chunk number
            payload: Raw bytes or an async iterable of byte blocks
            max_size: Reject the payload once it grows past this many bytes

        Returns:
            ChunkRecord pointing at the staged (not yet committed) file
        """
        staging_path = self.session_dir(upload_id) / (
            f".{chunk_number:0{CHUNK_NUMBER_WIDTH}d}.{secrets.token_hex(4)}{STAGING_SUFFIX}"
        )
        written = 0

        try:
            ensure_directory(staging_path.parent)
            async with aiofiles.open(staging_path, "wb") as out:
                async for block in self._iter_payload(payload):
                    written += len(block)
                    if max_size is not None and written > max_size:
                        raise FileTooLargeException(written, max_size, field="chunk")
                    await out.write(block)
                await out.flush()
        except FileTooLargeException:
            self._unlink_quietly(staging_path)
            raise
        except OSError as e:
            self._unlink_quietly(staging_path)
            raise ChunkStorageException(
                f"Failed to write chunk {chunk_number}: {e}",
                upload_id=upload_id,
                chunk_number=chunk_number,
                operation="write",
                original_error=e
            )

        logger.debug("Staged chunk %s for session %s (%d bytes)", chunk_number, upload_id, written)
        return ChunkRecord(upload_id=upload_id, chunk_number=chunk_number, path=staging_path, size=written)

    def commit(self, staged: ChunkRecord) -> ChunkRecord:
        """Move a staged chunk to its deterministic location."""
        final_path = self.chunk_path(staged.upload_id, staged.chunk_number)
        try:
            os.replace(staged.path, final_path)
        except OSError as e:
            raise ChunkStorageException(
                f"Failed to commit chunk {staged.chunk_number}: {e}",
                upload_id=staged.upload_id,
                chunk_number=staged.chunk_number,
                operation="commit",
                original_error=e
            )
        return ChunkRecord(
            upload_id=staged.upload_id,
            chunk_number=staged.chunk_number,
            path=final_path,
            size=staged.size
        )

    def discard(self, staged: ChunkRecord, prune: bool = False) -> None:
        """
        Drop a staged chunk that was not accepted.

        With ``prune`` the session directory is removed as well once it is empty.
        Used when the session was closed or purged while the chunk was staging.
        """
        self._unlink_quietly(staged.path)
        if prune:
            self._remove_if_empty(self.session_dir(staged.upload_id))

    async def iter_chunk(self, upload_id: str, chunk_number: int) -> AsyncIterator[bytes]:
        """Yield a committed chunk's bytes in ``block_size`` pieces."""
        path = self.chunk_path(upload_id, chunk_number)
        try:
            async with aiofiles.open(path, "rb") as src:
                while True:
                    block = await src.read(self.block_size)
                    if not block:
                        break
                    yield block
        except OSError as e:
            raise ChunkStorageException(
                f"Failed to read chunk {chunk_number}: {e}",
                upload_id=upload_id,
                chunk_number=chunk_number,
                operation="read",
                original_error=e
            )

    def delete_chunk(self, upload_id: str, chunk_number: int) -> None:
        path = self.chunk_path(upload_id, chunk_number)
        try:
            path.unlink()
        except OSError as e:
            raise ChunkStorageException(
                f"Failed to delete chunk {chunk_number}: {e}",
                upload_id=upload_id,
                chunk_number=chunk_number,
                operation="delete",
                original_error=e
            )

    def list_chunks(self, upload_id: str) -> List[int]:
        """Committed chunk numbers present on disk, ascending."""
        directory = self.session_dir(upload_id)
        if not directory.is_dir():
            return []
        numbers = []
        for entry in directory.iterdir():
            if entry.suffix == CHUNK_SUFFIX and entry.stem.isdigit():
                numbers.append(int(entry.stem))
        return sorted(numbers)

    def purge(self, upload_id: str) -> bool:
        """Remove every chunk (committed or staged) belonging to a session."""
        try:
            return safe_remove(self.session_dir(upload_id))
        except OSError as e:
            raise ChunkStorageException(
                f"Failed to purge chunks: {e}",
                upload_id=upload_id,
                operation="purge",
                original_error=e
            )

    async def _iter_payload(self, payload: ChunkPayload) -> AsyncIterator[bytes]:
        if isinstance(payload, (bytes, bytearray, memoryview)):
            view = memoryview(payload)
            for offset in range(0, len(view), self.block_size):
                yield bytes(view[offset:offset + self.block_size])
            return
        async for block in payload:
            if block:
                yield block

    @staticmethod
    def _remove_if_empty(directory: Path) -> None:
        try:
            directory.rmdir()
        except FileNotFoundError:
            return
        except OSError as e:
            # Still holds chunks or staging files of other requests
            logger.debug("Kept chunk directory %s: %s", directory, e)

    @staticmethod
    def _unlink_quietly(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove staged chunk %s: %s", path, e)
