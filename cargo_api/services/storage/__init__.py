"""Object storage for order photos."""

from cargo_api.services.storage.photos import PhotoStorage, PhotoStorageError

__all__ = ["PhotoStorage", "PhotoStorageError"]
