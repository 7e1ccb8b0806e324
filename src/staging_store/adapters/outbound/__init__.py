"""Outbound adapters - resource stores and the remote upload client."""

from staging_store.adapters.outbound.drive_client import DriveUploadClient, build_http_client
from staging_store.adapters.outbound.file_resource import FileResourceProvider
from staging_store.adapters.outbound.memory_resource import MemoryResourceProvider

__all__ = [
    "DriveUploadClient",
    "build_http_client",
    "FileResourceProvider",
    "MemoryResourceProvider",
]
