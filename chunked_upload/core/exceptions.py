"""Centralized exception definitions and error taxonomy."""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Describes severity for surfaced errors."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categorization used for error routing and HTTP status mapping."""
    VALIDATION = "validation"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    BUSINESS_LOGIC = "business_logic"
    STORAGE = "storage"
    SYSTEM = "system"


class UploadServiceException(Exception):
    """Base exception type for the application."""

    def __init__(
        self,
        message: str,
        error_code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        self.message = message
        self.error_code = error_code
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.original_error = original_error
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception metadata into a dict."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "details": self.details,
            "type": self.__class__.__name__
        }


# Validation exceptions
class ValidationException(UploadServiceException):
    """Raised when request parameters are missing or malformed."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        validation_details = details or {}
        if field:
            validation_details["field"] = field
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            details=validation_details
        )


class FileTooLargeException(UploadServiceException):
    """Raised when a declared file or a single chunk exceeds the configured limit."""

    def __init__(self, size: int, limit: int, field: str = "fileSize"):
        super().__init__(
            message=f"{field} of {size} bytes exceeds the limit of {limit} bytes",
            error_code="FILE_TOO_LARGE",
            category=ErrorCategory.PAYLOAD_TOO_LARGE,
            severity=ErrorSeverity.LOW,
            details={"field": field, "size": size, "limit": limit}
        )


# Session lookup / state exceptions
class SessionNotFoundException(UploadServiceException):
    """Raised when an upload identifier cannot be located."""

    def __init__(self, upload_id: str):
        super().__init__(
            message=f"Upload session not found: {upload_id}",
            error_code="SESSION_NOT_FOUND",
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.LOW,
            details={"upload_id": upload_id}
        )


class ConflictException(UploadServiceException):
    """Raised when an operation is not allowed in the session's current state."""

    def __init__(
        self,
        message: str,
        upload_id: Optional[str] = None,
        error_code: str = "INVALID_STATE_TRANSITION",
        category: ErrorCategory = ErrorCategory.CONFLICT,
        details: Optional[Dict[str, Any]] = None
    ):
        conflict_details = details or {}
        if upload_id:
            conflict_details["upload_id"] = upload_id
        super().__init__(
            message=message,
            error_code=error_code,
            category=category,
            severity=ErrorSeverity.MEDIUM,
            details=conflict_details
        )


class SessionPausedException(ConflictException):
    """Raised when a chunk arrives for a paused session."""

    def __init__(self, upload_id: str, chunk_number: Optional[int] = None):
        details = {"chunk_number": chunk_number} if chunk_number is not None else None
        super().__init__(
            message=f"Upload session {upload_id} is paused; resume it before sending chunks",
            upload_id=upload_id,
            error_code="SESSION_PAUSED",
            details=details
        )


class SessionClosedException(ConflictException):
    """Raised when a session no longer accepts chunks (merging, completed or failed)."""

    def __init__(self, upload_id: str, status: str):
        super().__init__(
            message=f"Upload session {upload_id} is {status} and no longer accepts chunks",
            upload_id=upload_id,
            error_code="SESSION_CLOSED",
            details={"status": status}
        )


class DuplicateChunkException(ConflictException):
    """Raised when a chunk number has already been uploaded for a session."""

    def __init__(self, upload_id: str, chunk_number: int):
        super().__init__(
            message=f"Chunk {chunk_number} already uploaded",
            upload_id=upload_id,
            error_code="CHUNK_ALREADY_UPLOADED",
            category=ErrorCategory.BUSINESS_LOGIC,
            details={"chunk_number": chunk_number}
        )


# Storage exceptions
class StorageException(UploadServiceException):
    """Raised for storage layer failures."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
        error_code: str = "STORAGE_ERROR"
    ):
        storage_details = details or {}
        if operation:
            storage_details["operation"] = operation
        super().__init__(
            message=message,
            error_code=error_code,
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            details=storage_details,
            original_error=original_error
        )


class ChunkStorageException(StorageException):
    """Raised when a chunk cannot be written, read or removed."""

    def __init__(
        self,
        message: str,
        upload_id: str,
        chunk_number: Optional[int] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details: Dict[str, Any] = {"upload_id": upload_id}
        if chunk_number is not None:
            details["chunk_number"] = chunk_number
        super().__init__(
            message=message,
            operation=operation,
            details=details,
            original_error=original_error,
            error_code="CHUNK_STORAGE_ERROR"
        )


class MergeFailedException(StorageException):
    """Raised when reassembling the final file fails; the session is marked failed."""

    def __init__(self, upload_id: str, reason: str, original_error: Optional[Exception] = None):
        super().__init__(
            message=f"Merge failed for upload session {upload_id}: {reason}",
            operation="merge",
            details={"upload_id": upload_id},
            original_error=original_error,
            error_code="MERGE_FAILED"
        )


# Configuration exceptions
class ConfigurationException(UploadServiceException):
    """Raised for configuration/initialization failures."""

    def __init__(self, message: str, config_key: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        config_details = details or {}
        if config_key:
            config_details["config_key"] = config_key
        super().__init__(
            message=message,
            error_code="CONFIG_ERROR",
            category=ErrorCategory.SYSTEM,
            severity=ErrorSeverity.CRITICAL,
            details=config_details
        )
