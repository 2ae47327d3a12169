"""Upload-related schemas."""
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chunked_upload.models.upload_session import SessionStatus, UploadSession
from chunked_upload.services.chunk_receiver import ChunkReceipt


class CamelModel(BaseModel):
    """Response model serialized with camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadStartResponse(CamelModel):
    """Schema for a newly created upload session."""
    identifier: str = Field(..., description="Upload session ID")
    file_name: str = Field(..., description="Declared file name")
    total_chunks: int = Field(..., description="Total number of chunks")
    status: SessionStatus = Field(..., description="Session status")

    @classmethod
    def from_session(cls, session: UploadSession) -> "UploadStartResponse":
        return cls(
            identifier=session.upload_id,
            file_name=session.file_name,
            total_chunks=session.total_chunks,
            status=session.status,
        )


class ChunkReceiptResponse(CamelModel):
    """Schema for an accepted chunk."""
    identifier: str = Field(..., description="Upload session ID")
    chunk_number: int = Field(..., description="Chunk that was accepted")
    received_chunks: List[int] = Field(..., description="All received chunk numbers, ascending")
    total_chunks: int = Field(..., description="Total number of chunks")
    status: SessionStatus = Field(..., description="Session status after the chunk")

    @classmethod
    def from_receipt(cls, receipt: ChunkReceipt) -> "ChunkReceiptResponse":
        return cls(
            identifier=receipt.upload_id,
            chunk_number=receipt.chunk_number,
            received_chunks=receipt.received_chunks,
            total_chunks=receipt.total_chunks,
            status=receipt.status,
        )


class SessionStateResponse(CamelModel):
    """Schema for pause, resume and status responses."""
    identifier: str = Field(..., description="Upload session ID")
    status: SessionStatus = Field(..., description="Session status")
    received_chunks: List[int] = Field(..., description="Received chunk numbers, ascending")
    total_chunks: int = Field(..., description="Total number of chunks")

    @classmethod
    def from_session(cls, session: UploadSession) -> "SessionStateResponse":
        return cls(
            identifier=session.upload_id,
            status=session.status,
            received_chunks=session.sorted_chunks(),
            total_chunks=session.total_chunks,
        )


class CancelResponse(CamelModel):
    status: str = Field("cancelled")
    identifier: str


class UploadStatsResponse(CamelModel):
    """Schema for aggregate session statistics."""
    total_sessions: int
    active_sessions: int
    sessions_by_status: Dict[str, int]
    bytes_received: int


class UploadedFileResponse(CamelModel):
    """Schema for one merged file."""
    identifier: str = Field(..., description="Upload session ID")
    file_name: str = Field(..., description="Declared file name")
    file_size: int = Field(..., description="Declared file size in bytes")
    file_type: str = Field(..., description="Declared MIME type")
    stored_name: str = Field(..., description="Name of the merged file in the upload directory")
    completed_at: Optional[datetime] = Field(None, description="When the merge finished")

    @classmethod
    def from_session(cls, session: UploadSession) -> "UploadedFileResponse":
        return cls(
            identifier=session.upload_id,
            file_name=session.file_name,
            file_size=session.file_size,
            file_type=session.file_type,
            stored_name=Path(session.final_path).name,
            completed_at=session.completed_at,
        )


class UploadedFilesResponse(CamelModel):
    files: List[UploadedFileResponse]
