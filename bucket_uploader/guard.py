"""Check-then-act existence protocol for object deletes."""

import logging
from typing import Optional

from bucket_uploader.errors import NotFoundError
from bucket_uploader.s3_client import ObjectStoreClient

logger = logging.getLogger(__name__)


class ExistenceGuard:
    """Existence checks and guarded deletes against one bucket.

    Existence is always probed fresh; objects can change under us. The
    probe and the delete are two separate calls, so another writer may
    remove the object in between. The delete's own failure is then
    propagated unchanged.
    """

    def __init__(self, store: ObjectStoreClient):
        self.store = store

    def exists(self, key: str, version_id: Optional[str] = None) -> bool:
        """Probe whether an object exists.

        Raises:
            RemoteError: If the probe fails for a reason other than absence.
        """
        try:
            self.store.head_object(key, version_id)
        except NotFoundError:
            return False
        return True

    def delete_if_exists(self, key: str, version_id: Optional[str] = None) -> dict:
        """Delete an object after confirming it exists.

        Absence is an error rather than a no-op so that deleting the
        wrong key does not go unnoticed.

        Args:
            key: Object key.
            version_id: Delete only this version of the object.

        Returns:
            The store's delete response.

        Raises:
            NotFoundError: If the object does not exist; nothing is deleted.
            RemoteError: If the probe or the delete fails.
        """
        if not self.exists(key, version_id):
            raise NotFoundError(
                f"delete_if_exists: object '{key}' does not exist",
                operation="delete_if_exists",
                key=key,
            )

        logger.info("Deleting %s", key)
        return self.store.delete_object(key, version_id)
