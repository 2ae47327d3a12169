"""Service modules for business logic."""
from chunked_upload.services.chunk_receiver import ChunkReceipt, ChunkReceiver
from chunked_upload.services.chunk_store import ChunkStore
from chunked_upload.services.merger import Merger
from chunked_upload.services.session_controller import SessionController
from chunked_upload.services.session_reaper import SessionReaper
from chunked_upload.services.session_registry import SessionRegistry
from chunked_upload.services.upload_service import UploadService, get_upload_service, upload_service

__all__ = [
    "ChunkStore",
    "SessionRegistry",
    "ChunkReceiver",
    "ChunkReceipt",
    "Merger",
    "SessionController",
    "SessionReaper",
    "UploadService",
    "upload_service",
    "get_upload_service",
]
