"""Service facade for resumable chunked uploads."""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from chunked_upload.config import settings
from chunked_upload.core.config import Settings
from chunked_upload.models.upload_session import UploadSession
from chunked_upload.services.chunk_receiver import ChunkReceipt, ChunkReceiver
from chunked_upload.services.chunk_store import ChunkPayload, ChunkStore
from chunked_upload.services.merger import Merger
from chunked_upload.services.session_controller import SessionController
from chunked_upload.services.session_reaper import SessionReaper
from chunked_upload.services.session_registry import SessionRegistry
from chunked_upload.utils.file_utils import ensure_directory
from chunked_upload.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)


class UploadService:
    """Entry point used by the API layer; owns one registry, store, merger and controller."""

    def __init__(
        self,
        upload_dir: Union[str, Path],
        chunk_dir: Union[str, Path],
        max_upload_size: Optional[int] = None,
        max_chunk_size: Optional[int] = None,
        merge_buffer_size: int = 1024 * 1024,
        session_idle_timeout: int = 0,
        reaper_interval: int = 60,
        registry: Optional[SessionRegistry] = None,
        chunk_store: Optional[ChunkStore] = None
    ):
        self.upload_dir = Path(upload_dir)
        self.chunk_dir = Path(chunk_dir)

        self.registry = registry or SessionRegistry(self.upload_dir, max_upload_size=max_upload_size)
        self.chunk_store = chunk_store or ChunkStore(self.chunk_dir, block_size=merge_buffer_size)
        self.merger = Merger(self.registry, self.chunk_store)
        self.receiver = ChunkReceiver(
            self.registry, self.chunk_store, self.merger, max_chunk_size=max_chunk_size
        )
        self.controller = SessionController(self.registry, self.chunk_store, self.merger)
        self.reaper = SessionReaper(
            self.registry, self.controller, idle_timeout=session_idle_timeout, interval=reaper_interval
        )

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "UploadService":
        storage = app_settings.get_storage_config()
        session = app_settings.get_session_config()
        return cls(
            upload_dir=storage.upload_dir,
            chunk_dir=storage.chunk_dir,
            max_upload_size=storage.max_upload_size,
            max_chunk_size=storage.max_chunk_size,
            merge_buffer_size=storage.merge_buffer_size,
            session_idle_timeout=session.session_idle_timeout,
            reaper_interval=session.reaper_interval,
        )

    async def startup(self) -> None:
        """Prepare storage directories and start background tasks."""
        ensure_directory(self.upload_dir)
        ensure_directory(self.chunk_dir)
        self.reaper.start()
        logger.info("Upload service ready (uploads=%s, chunks=%s)", self.upload_dir, self.chunk_dir)

    async def shutdown(self) -> None:
        await self.reaper.stop()

    async def start_session(
        self,
        file_name: Optional[str],
        file_size: Optional[int],
        file_type: Optional[str],
        total_chunks: Optional[int]
    ) -> UploadSession:
        return await self.registry.create(file_name, file_size, file_type, total_chunks)

    async def submit_chunk(
        self,
        upload_id: Optional[str],
        chunk_number: Optional[int],
        payload: ChunkPayload
    ) -> ChunkReceipt:
        return await self.receiver.receive(upload_id, chunk_number, payload)

    async def pause(self, upload_id: str) -> UploadSession:
        return await self.controller.pause(upload_id)

    async def resume(self, upload_id: str) -> UploadSession:
        return await self.controller.resume(upload_id)

    async def status(self, upload_id: str) -> UploadSession:
        return await self.controller.status(upload_id)

    async def cancel(self, upload_id: str) -> UploadSession:
        return await self.controller.cancel(upload_id)

    async def stats(self) -> Dict[str, Any]:
        return await self.controller.stats()

    async def list_files(self) -> List[UploadSession]:
        return await self.controller.list_completed()


# Global service instance
upload_service = UploadService.from_settings(settings)


def get_upload_service() -> UploadService:
    """FastAPI dependency returning the global UploadService instance."""
    return upload_service
