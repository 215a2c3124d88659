"""
Protocols (Interfaces) for Dependency Inversion.

Following Interface Segregation Principle - small, focused interfaces.
"""
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class IShareAPIClient(Protocol):
    """Interface for the share site API."""

    async def verify(self) -> Dict[str, Any]:
        """Handshake; may carry chunk size limits."""
        ...

    async def init_upload(
        self,
        metadata: Dict[str, Any],
        manifest: List[Dict[str, Any]],
        notebook: bool = False,
    ) -> str:
        """Open a batch and return its upload id."""
        ...

    async def upload_chunk(
        self,
        upload_id: str,
        asset_path: str,
        chunk_index: int,
        total_chunks: int,
        total_size: int,
        data: bytes,
        asset_doc_id: Optional[str] = None,
    ) -> None:
        """Send one chunk of one asset."""
        ...

    async def complete_upload(self, upload_id: str) -> None:
        """Commit the batch."""
        ...

    async def cancel_upload(self, upload_id: str) -> None:
        """Discard the batch server-side."""
        ...


@runtime_checkable
class IProgressReporter(Protocol):
    """Interface for progress display (dialog, console bar...)."""

    def update(
        self,
        text: Optional[str] = None,
        percent: Optional[float] = None,
        detail: Optional[str] = None,
    ) -> None:
        ...

    def close(self) -> None:
        ...
