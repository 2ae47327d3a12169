"""In-memory registry of upload sessions with atomic per-session transitions."""
import asyncio
import logging
import secrets
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Union

from chunked_upload.config import FINAL_NAME_PREFIX_LENGTH
from chunked_upload.core.exceptions import (
    ConflictException,
    FileTooLargeException,
    SessionNotFoundException,
    ValidationException,
)
from chunked_upload.models.upload_session import SessionStatus, UploadSession
from chunked_upload.utils.file_utils import is_valid_filename, sanitize_filename
from chunked_upload.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

# 16 random bytes -> 128 bits of entropy, 32 hex characters
IDENTIFIER_BYTES = 16

SessionPredicate = Callable[[UploadSession], Any]
SessionMutation = Callable[[UploadSession], None]


class SessionRegistry:
    """
    Process-wide table of upload sessions keyed by identifier.

    Every session owns an ``asyncio.Lock``; ``transition`` is the only way to
    change a session and it holds only that session's lock, so sessions never
    contend with each other. Readers always receive deep copies.
    """

    def __init__(
        self,
        upload_dir: Union[str, Path],
        max_upload_size: Optional[int] = None,
        token_factory: Callable[[int], str] = secrets.token_hex
    ):
        self.upload_dir = Path(upload_dir)
        self.max_upload_size = max_upload_size
        self._token_factory = token_factory
        self._sessions: Dict[str, UploadSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        # Every identifier ever issued, so a purged session's id is never reused
        self._issued: Set[str] = set()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, upload_id: str) -> bool:
        return upload_id in self._sessions

    async def create(
        self,
        file_name: Optional[str],
        file_size: Optional[int],
        file_type: Optional[str],
        total_chunks: Optional[int]
    ) -> UploadSession:
        """
        Register a new upload session.

        Args:
            file_name: Client-declared file name
            file_size: Client-declared size in bytes
            file_type: Client-declared MIME type
            total_chunks: Number of chunks the client will send

        Returns:
            UploadSession: Copy of the new session (status ``created``)

        Raises:
            ValidationException: A field is missing or malformed
            FileTooLargeException: ``file_size`` exceeds the configured limit
        """
        self._validate_declaration(file_name, file_size, file_type, total_chunks)

        upload_id = self._new_identifier()
        final_name = f"{upload_id[:FINAL_NAME_PREFIX_LENGTH]}_{sanitize_filename(file_name)}"

        session = UploadSession(
            upload_id=upload_id,
            file_name=file_name,
            file_size=file_size,
            file_type=file_type,
            total_chunks=total_chunks,
            final_path=str(self.upload_dir / final_name),
        )
        self._locks[upload_id] = asyncio.Lock()
        self._sessions[upload_id] = session

        logger.info(
            "Upload session created: %s (%s, %d bytes, %d chunks)",
            upload_id, file_name, file_size, total_chunks
        )
        return session.model_copy(deep=True)

    async def get(self, upload_id: str) -> UploadSession:
        session = self._sessions.get(upload_id)
        if session is None:
            raise SessionNotFoundException(upload_id)
        return session.model_copy(deep=True)

    async def transition(
        self,
        upload_id: str,
        predicate: SessionPredicate,
        mutation: SessionMutation,
        reason: str = "Invalid state transition"
    ) -> UploadSession:
        """
        Atomically apply ``mutation`` to a session if ``predicate`` holds.

        The predicate sees the live session under its lock. A falsy result
        raises ``ConflictException(reason)``; a predicate may also raise a more
        specific ``ConflictException`` itself. If the mutation raises, the
        session is left as it was.

        Returns:
            UploadSession: Copy of the session after the mutation
        """
        lock = self._locks.get(upload_id)
        if lock is None:
            raise SessionNotFoundException(upload_id)

        async with lock:
            session = self._sessions.get(upload_id)
            if session is None:
                raise SessionNotFoundException(upload_id)

            if not predicate(session):
                raise ConflictException(
                    reason,
                    upload_id=upload_id,
                    details={"status": session.status.value}
                )

            draft = session.model_copy(deep=True)
            mutation(draft)
            draft.updated_at = datetime.utcnow()
            self._sessions[upload_id] = draft

            if draft.status != session.status:
                logger.info(
                    "Session %s: %s -> %s",
                    upload_id, session.status.value, draft.status.value
                )
            return draft.model_copy(deep=True)

    async def delete(self, upload_id: str) -> UploadSession:
        """Remove a session's bookkeeping (operator purge)."""
        lock = self._locks.get(upload_id)
        if lock is None:
            raise SessionNotFoundException(upload_id)

        async with lock:
            session = self._sessions.pop(upload_id, None)
            self._locks.pop(upload_id, None)

        if session is None:
            raise SessionNotFoundException(upload_id)

        logger.info("Upload session deleted: %s", upload_id)
        return session

    async def list_sessions(self) -> List[UploadSession]:
        return [session.model_copy(deep=True) for session in list(self._sessions.values())]

    def _new_identifier(self) -> str:
        while True:
            upload_id = self._token_factory(IDENTIFIER_BYTES)
            if upload_id not in self._issued:
                self._issued.add(upload_id)
                return upload_id
            logger.warning("Identifier collision; drawing a new one")

    def _validate_declaration(
        self,
        file_name: Optional[str],
        file_size: Optional[int],
        file_type: Optional[str],
        total_chunks: Optional[int]
    ) -> None:
        missing = [
            name for name, value in (
                ("fileName", file_name),
                ("fileSize", file_size),
                ("fileType", file_type),
                ("totalChunks", total_chunks),
            )
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise ValidationException(
                f"Missing required parameters: {', '.join(missing)}",
                details={"missing": missing}
            )

        if not is_valid_filename(file_name):
            raise ValidationException(f"Invalid file name: {file_name!r}", field="fileName")

        if isinstance(file_size, bool) or not isinstance(file_size, int) or file_size < 0:
            raise ValidationException("fileSize must be a non-negative integer", field="fileSize")

        if isinstance(total_chunks, bool) or not isinstance(total_chunks, int) or total_chunks < 1:
            raise ValidationException("totalChunks must be a positive integer", field="totalChunks")

        if self.max_upload_size is not None and file_size > self.max_upload_size:
            raise FileTooLargeException(file_size, self.max_upload_size)
