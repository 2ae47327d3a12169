"""Upload session model."""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Set

from pydantic import BaseModel, Field


class SessionStatus(str, Enum):
    """Lifecycle states of an upload session."""
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETING = "completing"
    COMPLETED = "completed"
    FAILED = "failed"


# Sessions in these states accept chunks
ACCEPTING_STATUSES = frozenset({SessionStatus.CREATED, SessionStatus.IN_PROGRESS})

# Sessions in these states never change again
TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.FAILED})


class UploadSession(BaseModel):
    """Upload session model."""
    upload_id: str = Field(..., description="Upload session ID")
    file_name: str = Field(..., description="Client-declared file name")
    file_size: int = Field(..., ge=0, description="Client-declared file size in bytes")
    file_type: str = Field(..., description="Client-declared MIME type")
    total_chunks: int = Field(..., ge=1, description="Total number of chunks")
    received_chunks: Set[int] = Field(default_factory=set, description="Received chunk numbers")
    status: SessionStatus = Field(SessionStatus.CREATED, description="Upload status")
    final_path: str = Field(..., description="Location of the merged file")
    bytes_received: int = Field(0, ge=0, description="Sum of accepted chunk sizes")
    error_message: Optional[str] = Field(None, description="Error message")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = Field(None, description="When the merge finished")

    model_config = {
        "json_schema_extra": {
            "example": {
                "upload_id": "9f1c2e7a4b3d8e6f0a1b2c3d4e5f6a7b",
                "file_name": "example.zip",
                "file_size": 3000000,
                "file_type": "application/zip",
                "total_chunks": 3,
                "received_chunks": [1, 3],
                "status": "in_progress",
                "final_path": "uploads/9f1c2e7a4b3d_example.zip",
                "bytes_received": 2000000,
                "error_message": None,
                "created_at": "2021-01-01T00:00:00.000Z",
                "updated_at": "2021-01-01T00:00:00.000Z",
                "completed_at": None
            }
        }
    }

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def accepts_chunks(self) -> bool:
        return self.status in ACCEPTING_STATUSES

    def missing_chunks(self) -> List[int]:
        """Chunk numbers in 1..total_chunks not yet received, ascending."""
        return [n for n in range(1, self.total_chunks + 1) if n not in self.received_chunks]

    def has_all_chunks(self) -> bool:
        return len(self.received_chunks) == self.total_chunks and not self.missing_chunks()

    def sorted_chunks(self) -> List[int]:
        return sorted(self.received_chunks)


@dataclass(frozen=True)
class ChunkRecord:
    """A persisted chunk awaiting merge."""
    upload_id: str
    chunk_number: int
    path: Path
    size: int
