import logging
import os

logger = logging.getLogger(__name__)


def ensure_storage_structure(store):
    """
    Ensures that every configured root path exists on disk.
    This function is idempotent and should be called during application startup.
    """
    created = []
    for root in store.list_roots():
        path = os.path.abspath(root.path)
        if os.path.isdir(path):
            continue
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create root path {root.id} at {path}: {e}")
            continue
        logger.info(f"Created directory for root path {root.id}: {path}")
        created.append(path)
    return created
