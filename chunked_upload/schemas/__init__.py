"""Pydantic schemas for API requests and responses."""
from chunked_upload.schemas.upload import (
    CancelResponse,
    ChunkReceiptResponse,
    SessionStateResponse,
    UploadStartResponse,
    UploadStatsResponse,
    UploadedFileResponse,
    UploadedFilesResponse,
)

__all__ = [
    "UploadStartResponse",
    "ChunkReceiptResponse",
    "SessionStateResponse",
    "CancelResponse",
    "UploadStatsResponse",
    "UploadedFileResponse",
    "UploadedFilesResponse",
]
