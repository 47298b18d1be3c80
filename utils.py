import os
import shutil
import logging

logger = logging.getLogger(__name__)


class OutOfBoundsPath(ValueError):
    """Raised when a user-supplied path resolves outside its root."""

    def __init__(self, rel_path):
        super().__init__(f'Path escapes its root: {rel_path!r}')
        self.rel_path = rel_path


def get_disk_usage(path):
    """
    Returns disk usage statistics for the file system containing path.
    Returns a dictionary with 'total', 'used', 'free' in GB and 'percent'.
    """
    try:
        total, used, free = shutil.disk_usage(path)

        # Convert to GB
        gb = 1024 ** 3
        return {
            'total': round(total / gb, 2),
            'used': round(used / gb, 2),
            'free': round(free / gb, 2),
            'percent': round((used / total) * 100, 1) if total else 0
        }
    except OSError as e:
        logger.warning(f"Error getting disk usage for {path}: {e}")
        return {'total': 0, 'used': 0, 'free': 0, 'percent': 0, 'error': str(e)}


def _canonical(path):
    return os.path.normcase(os.path.realpath(path))


def safe_join(root, path):
    """
    Safely joins a root directory and a user-provided path to prevent directory traversal.
    Returns the canonical absolute path, or raises OutOfBoundsPath if it would leave root.

    Both '/' and '\\' are treated as separators on every platform, leading separators
    are ignored, and symlinks are resolved before the containment check.
    """
    real_root = os.path.realpath(root)
    if not path:
        return real_root

    rel = str(path).replace('\\', '/').lstrip('/')
    try:
        full_path = os.path.realpath(os.path.join(real_root, rel))
        root_cmp = _canonical(real_root)
        full_cmp = os.path.normcase(full_path)
    except ValueError:
        # embedded NUL bytes and similar
        logger.warning(f"[SECURITY] Unresolvable path rejected: root={root!r} path={path!r}")
        raise OutOfBoundsPath(path)

    prefix = root_cmp.rstrip(os.sep) + os.sep
    if full_cmp == root_cmp or full_cmp.startswith(prefix):
        return full_path

    logger.warning(f"[SECURITY] Attempt to access path outside root: "
                   f"root={real_root!r} path={path!r} resolved={full_path!r}")
    raise OutOfBoundsPath(path)
