from typing import List, Tuple


class InputValidationError(ValueError):
    """Raised when a command is rejected locally before reaching the store."""


class RemoteStoreError(RuntimeError):
    """Raised when the document store is unavailable or rejects a call."""


class IdentityError(RuntimeError):
    """Raised when a sign-in attempt against the identity provider fails."""


class CascadeDeleteError(RemoteStoreError):
    """Raised when photo deletes fail during an album delete.

    The album itself is left in place; ``deleted`` photos are already gone.
    """

    def __init__(self, album_id: str, deleted: int, failures: List[Tuple[str, Exception]]):
        self.album_id = album_id
        self.deleted = deleted
        self.failures = failures
        failed_ids = ", ".join(photo_id for photo_id, _ in failures)
        super().__init__(
            f"Could not delete {len(failures)} photo(s) of album {album_id} ({failed_ids}); album kept"
        )
