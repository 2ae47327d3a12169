"""Chunked upload API endpoints."""
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from chunked_upload.core.exceptions import ValidationException
from chunked_upload.schemas.upload import (
    CancelResponse,
    ChunkReceiptResponse,
    SessionStateResponse,
    UploadStartResponse,
    UploadStatsResponse,
    UploadedFileResponse,
    UploadedFilesResponse,
)
from chunked_upload.services.upload_service import UploadService, get_upload_service
from chunked_upload.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

router = APIRouter()

READ_BLOCK_SIZE = 1024 * 1024


async def _iter_upload(upload: UploadFile, block_size: int = READ_BLOCK_SIZE) -> AsyncIterator[bytes]:
    """Read a multipart file part in bounded blocks."""
    while True:
        block = await upload.read(block_size)
        if not block:
            break
        yield block


@router.post("/upload/start", response_model=UploadStartResponse)
async def start_upload(
    file_name: Optional[str] = Form(None, alias="fileName"),
    file_size: Optional[int] = Form(None, alias="fileSize"),
    file_type: Optional[str] = Form(None, alias="fileType"),
    total_chunks: Optional[int] = Form(None, alias="totalChunks"),
    service: UploadService = Depends(get_upload_service)
):
    """
    Start a new chunked upload session.

    Args:
        file_name: Original filename
        file_size: Total file size in bytes
        file_type: MIME type of the file
        total_chunks: Total number of chunks the client will send

    Returns:
        UploadStartResponse: The new session's identifier
    """
    session = await service.start_session(file_name, file_size, file_type, total_chunks)
    return UploadStartResponse.from_session(session)


@router.post("/upload/chunk", response_model=ChunkReceiptResponse)
async def upload_chunk(
    identifier: Optional[str] = Form(None),
    chunk_number: Optional[int] = Form(None, alias="chunkNumber"),
    chunk: Optional[UploadFile] = File(None),
    service: UploadService = Depends(get_upload_service)
):
    """
    Upload one chunk of a file.

    Args:
        identifier: Upload session ID
        chunk_number: 1-based chunk number
        chunk: Chunk payload

    Returns:
        ChunkReceiptResponse: Received chunk numbers and session status
    """
    if chunk is None:
        raise ValidationException("Missing required parameter: chunk", field="chunk")

    try:
        receipt = await service.submit_chunk(identifier, chunk_number, _iter_upload(chunk))
    finally:
        await chunk.close()

    return ChunkReceiptResponse.from_receipt(receipt)


@router.post("/upload/pause/{identifier}", response_model=SessionStateResponse)
async def pause_upload(identifier: str, service: UploadService = Depends(get_upload_service)):
    """Pause an upload session; chunks are rejected until it is resumed."""
    session = await service.pause(identifier)
    return SessionStateResponse.from_session(session)


@router.post("/upload/resume/{identifier}", response_model=SessionStateResponse)
async def resume_upload(identifier: str, service: UploadService = Depends(get_upload_service)):
    """Resume a paused upload session."""
    session = await service.resume(identifier)
    return SessionStateResponse.from_session(session)


@router.get("/upload/status/{identifier}", response_model=SessionStateResponse)
async def get_upload_status(identifier: str, service: UploadService = Depends(get_upload_service)):
    session = await service.status(identifier)
    return SessionStateResponse.from_session(session)


@router.delete("/upload/{identifier}", response_model=CancelResponse)
async def cancel_upload(identifier: str, service: UploadService = Depends(get_upload_service)):
    """
    Cancel an upload session and clean up its chunks.

    Args:
        identifier: Upload session ID

    Returns:
        CancelResponse: Cancellation status
    """
    await service.cancel(identifier)
    return CancelResponse(identifier=identifier)


@router.get("/upload/stats", response_model=UploadStatsResponse)
async def get_upload_stats(service: UploadService = Depends(get_upload_service)):
    stats = await service.stats()
    return UploadStatsResponse(**stats)


@router.get("/upload/files", response_model=UploadedFilesResponse)
async def list_uploaded_files(service: UploadService = Depends(get_upload_service)):
    """List the files whose upload has completed and been merged."""
    sessions = await service.list_files()
    return UploadedFilesResponse(files=[UploadedFileResponse.from_session(s) for s in sessions])
