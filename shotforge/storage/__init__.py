"""Output storage."""

from shotforge.storage.blob import HttpBlobStore, default_object_path

__all__ = [
    "HttpBlobStore",
    "default_object_path",
]
