"""Data models for upload sessions and chunks."""
from chunked_upload.models.upload_session import (
    ACCEPTING_STATUSES,
    TERMINAL_STATUSES,
    ChunkRecord,
    SessionStatus,
    UploadSession,
)

__all__ = [
    "UploadSession",
    "SessionStatus",
    "ChunkRecord",
    "ACCEPTING_STATUSES",
    "TERMINAL_STATUSES",
]
