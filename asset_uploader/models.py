"""
Models for asset_uploader module.

Immutable dataclasses following Single Responsibility Principle.
"""
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

KiB = 1024
MiB = 1024 * KiB
GiB = 1024 * MiB

DEFAULT_MIN_CHUNK_SIZE = 256 * KiB
DEFAULT_MAX_CHUNK_SIZE = 8 * MiB
HARD_MAX_CHUNK_SIZE = 32 * MiB  # never exceeded, whatever the server claims


class ByteSource(Protocol):
    """Anything that can hand out a byte range of an asset."""

    def read(self, start: int, end: int) -> bytes:
        ...


class BytesSource:
    """In-memory asset content."""

    def __init__(self, data: bytes):
        self._data = bytes(data)

    def __len__(self) -> int:
        return len(self._data)

    def read(self, start: int, end: int) -> bytes:
        return self._data[start:end]


class FileSource:
    """Asset content backed by a file on disk, read slice by slice."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def read(self, start: int, end: int) -> bytes:
        with open(self.path, "rb") as fh:
            fh.seek(start)
            return fh.read(end - start)


@dataclass(frozen=True)
class Asset:
    """Immutable binary attachment of a shared document."""
    path: str
    size_bytes: int
    content: ByteSource = field(compare=False, repr=False)
    doc_id: Optional[str] = None

    @classmethod
    def from_bytes(cls, path: str, data: bytes, doc_id: Optional[str] = None) -> "Asset":
        source = BytesSource(data)
        return cls(path=path, size_bytes=len(source), content=source, doc_id=doc_id)

    @classmethod
    def from_file(cls, file_path: Path, path: Optional[str] = None, doc_id: Optional[str] = None) -> "Asset":
        file_path = Path(file_path)
        return cls(
            path=path or f"assets/{file_path.name}",
            size_bytes=file_path.stat().st_size,
            content=FileSource(file_path),
            doc_id=doc_id,
        )

    def manifest_entry(self) -> Dict[str, Any]:
        return {"path": self.path, "size": self.size_bytes, "docId": self.doc_id or ""}


@dataclass(frozen=True)
class ChunkTask:
    """One contiguous byte range [start, end) of an asset."""
    asset: Asset
    index: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class UploadBatch:
    """A set of assets uploaded together under one server upload id."""
    upload_id: str
    assets: List[Asset]

    @property
    def total_bytes(self) -> int:
        return sum(a.size_bytes for a in self.assets)


@dataclass(frozen=True)
class ProgressState:
    """Snapshot of batch progress."""
    total_bytes: int = 0
    uploaded_bytes: int = 0
    total_assets: int = 0
    completed_assets: int = 0


class BatchState(Enum):
    """Lifecycle of a batch upload."""
    PLANNING = "planning"
    IN_FLIGHT = "in_flight"
    COMPLETING = "completing"
    FINALIZED = "finalized"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def settled(self) -> bool:
        return self in (BatchState.FINALIZED, BatchState.ABORTED, BatchState.FAILED)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class UploadConfig:
    """Immutable, user-tunable configuration for batch uploads."""
    max_asset_concurrency: int = 4
    max_chunk_concurrency: int = 4
    chunk_retries: int = 3
    retry_base_delay: float = 0.5  # seconds
    retry_max_delay: float = 8.0
    request_timeout: float = 120.0

    def __post_init__(self):
        if self.max_asset_concurrency < 1:
            raise ValueError("max_asset_concurrency must be >= 1")
        if self.max_chunk_concurrency < 1:
            raise ValueError("max_chunk_concurrency must be >= 1")
        if self.chunk_retries < 0:
            raise ValueError("chunk_retries must be >= 0")
        if self.retry_base_delay < 0 or self.retry_max_delay < 0:
            raise ValueError("retry delays must be >= 0")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")

    @classmethod
    def from_env(cls, **overrides) -> "UploadConfig":
        """Build config from SHARE_* environment variables; overrides win."""
        values = {
            "max_asset_concurrency": _env_int("SHARE_MAX_ASSET_CONCURRENCY", cls.max_asset_concurrency),
            "max_chunk_concurrency": _env_int("SHARE_MAX_CHUNK_CONCURRENCY", cls.max_chunk_concurrency),
            "chunk_retries": _env_int("SHARE_CHUNK_RETRIES", cls.chunk_retries),
            "request_timeout": float(_env_int("SHARE_REQUEST_TIMEOUT", int(cls.request_timeout))),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _positive_int(value: Any) -> int:
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return number if number > 0 else 0


@dataclass(frozen=True)
class ServerLimits:
    """Chunk size bounds learned from the server handshake."""
    min_chunk_size: int = DEFAULT_MIN_CHUNK_SIZE
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE

    @classmethod
    def normalized(cls, min_chunk_size: int, max_chunk_size: int) -> "ServerLimits":
        """Force 1 <= min <= max <= HARD_MAX_CHUNK_SIZE."""
        max_size = min(max(max_chunk_size, 1), HARD_MAX_CHUNK_SIZE)
        min_size = min(max(min_chunk_size, 1), max_size)
        return cls(min_chunk_size=min_size, max_chunk_size=max_size)

    @classmethod
    def from_payload(cls, payload: Any) -> "ServerLimits":
        """
        Parse the loosely shaped limits object returned by the server.

        Accepts byte values (minChunkSize / maxChunkSize) or the site config
        units (minChunkSizeKb / maxChunkSizeMb). Anything missing or invalid
        falls back to the defaults.
        """
        if not isinstance(payload, dict):
            payload = {}
        min_size = _positive_int(payload.get("minChunkSize"))
        if not min_size:
            min_size = _positive_int(payload.get("minChunkSizeKb")) * KiB
        max_size = _positive_int(payload.get("maxChunkSize"))
        if not max_size:
            max_size = _positive_int(payload.get("maxChunkSizeMb")) * MiB
        return cls.normalized(
            min_size or DEFAULT_MIN_CHUNK_SIZE,
            max_size or DEFAULT_MAX_CHUNK_SIZE,
        )
