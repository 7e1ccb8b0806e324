"""Application layer."""

from staging_store.application.coordinator import (
    UploadCoordinator,
    UploadHandle,
    UploadRegistry,
    select_largest,
)

__all__ = [
    "UploadCoordinator",
    "UploadHandle",
    "UploadRegistry",
    "select_largest",
]
