"""
file_service.py
---------------
File operations on a root path. Every path that comes from a request is passed
through safe_join() before any I/O; OutOfBoundsPath propagates to the caller.
"""
import io
import logging
import os
import posixpath
import re
import shutil
import zipfile
from datetime import datetime, timezone

from utils import OutOfBoundsPath, safe_join

logger = logging.getLogger(__name__)

INVALID_NAME_CHARS = re.compile(r'[/\\:*?"<>|]')


class FileOperationError(ValueError):
    def __init__(self, message, status=400):
        super().__init__(message)
        self.status = status


def _validate_name(name):
    if not isinstance(name, str) or not name.strip():
        raise FileOperationError('Name cannot be empty.')
    if INVALID_NAME_CHARS.search(name) or name.strip() in ('.', '..'):
        raise FileOperationError('Name contains invalid characters.')
    return name.strip()


def _require_not_root(root_path, abs_path):
    if abs_path == os.path.realpath(root_path):
        raise FileOperationError('The root directory itself cannot be modified.')


def list_directory(root_path, rel_path=''):
    """
    Returns {'path': rel_path, 'files': [...]}, directories first then by name.
    Entries that cannot be stat'ed are skipped.
    """
    rel_path = rel_path or ''
    abs_path = safe_join(root_path, rel_path)
    if not os.path.isdir(abs_path):
        raise FileOperationError(f"Directory '{rel_path}' not found.", status=404)

    contents = []
    try:
        with os.scandir(abs_path) as it:
            for entry in it:
                try:
                    st = entry.stat()
                    is_dir = entry.is_dir()
                except OSError as e:
                    logger.warning(f"Skipping unreadable entry {entry.path}: {e}")
                    continue
                contents.append({
                    'name': entry.name,
                    'type': 'dir' if is_dir else 'file',
                    'size': None if is_dir else st.st_size,
                    'mtime': datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat(),
                    'path': '/'.join(p for p in (rel_path.strip('/'), entry.name) if p),
                })
    except PermissionError:
        raise FileOperationError(f"Directory '{rel_path}' is not readable.", status=403)

    contents.sort(key=lambda x: (x['type'] != 'dir', x['name'].lower()))
    return {'path': rel_path, 'files': contents}


def resolve_file(root_path, rel_path):
    if not rel_path:
        raise FileOperationError('path is required.')
    abs_path = safe_join(root_path, rel_path)
    if not os.path.isfile(abs_path):
        raise FileOperationError('File does not exist.', status=404)
    return abs_path


def zip_folder(root_path, rel_path):
    """
    Returns (archive_name, BytesIO) holding the folder as a ZIP.
    Entries whose symlinks resolve outside the root are left out.
    """
    if not rel_path:
        raise FileOperationError('path is required.')
    abs_path = safe_join(root_path, rel_path)
    if not os.path.isdir(abs_path):
        raise FileOperationError('Folder does not exist.', status=404)

    real_root = os.path.realpath(root_path)
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, 'w', zipfile.ZIP_DEFLATED) as zf:
        for dirpath, _dirnames, filenames in os.walk(abs_path):
            for filename in filenames:
                full = os.path.join(dirpath, filename)
                try:
                    target = safe_join(real_root, os.path.relpath(full, real_root))
                except OutOfBoundsPath:
                    logger.warning(f"Skipping {full} in archive: it resolves outside the root")
                    continue
                if not os.path.isfile(target):
                    continue
                zf.write(target, os.path.relpath(full, abs_path))
    buf.seek(0)
    return f'{os.path.basename(abs_path)}.zip', buf


def save_uploads(root_path, rel_path, files):
    """
    Stores werkzeug FileStorage objects under rel_path, creating it if needed.
    Returns the list of stored names.
    """
    if not files:
        raise FileOperationError('No files were uploaded.')
    target_dir = safe_join(root_path, rel_path or '')
    os.makedirs(target_dir, exist_ok=True)

    saved = []
    for storage in files:
        name = _validate_name(os.path.basename(storage.filename or ''))
        dest = safe_join(target_dir, name)
        storage.save(dest)
        saved.append(name)
        logger.info(f"Uploaded {dest}")
    return saved


def create_folder(root_path, rel_path, folder_name):
    parent = safe_join(root_path, rel_path or '')
    new_folder = safe_join(parent, _validate_name(folder_name))
    try:
        os.makedirs(new_folder)
    except FileExistsError:
        raise FileOperationError('Folder already exists.', status=409)
    logger.info(f"Created folder {new_folder}")
    return new_folder


def _entry_path(root_path, rel_path):
    """
    Absolute path of the named entry itself. The parent directory is confined
    with safe_join(); a final symlink is not followed, so callers act on the link.
    """
    parent, name = posixpath.split(str(rel_path).replace('\\', '/').rstrip('/'))
    if name in ('', '.', '..'):
        return safe_join(root_path, rel_path)
    return os.path.join(safe_join(root_path, parent), name)


def delete_file(root_path, rel_path):
    if not rel_path:
        raise FileOperationError('path is required.')
    abs_path = _entry_path(root_path, rel_path)
    if not (os.path.islink(abs_path) or os.path.isfile(abs_path)):
        raise FileOperationError('File does not exist.', status=404)
    os.remove(abs_path)
    logger.info(f"Deleted file {abs_path}")


def delete_folder(root_path, rel_path):
    if not rel_path:
        raise FileOperationError('path is required.')
    abs_path = safe_join(root_path, rel_path)
    _require_not_root(root_path, abs_path)
    if not os.path.isdir(abs_path):
        raise FileOperationError('Folder does not exist.', status=404)
    shutil.rmtree(abs_path)
    logger.info(f"Deleted folder {abs_path}")


def rename_entry(root_path, rel_path, new_name):
    """Renames a file, folder or link in place; the new name may not contain separators."""
    if not rel_path:
        raise FileOperationError('path is required.')
    new_name = _validate_name(new_name)
    abs_path = _entry_path(root_path, rel_path)
    _require_not_root(root_path, abs_path)
    if not os.path.lexists(abs_path):
        raise FileOperationError('File or folder does not exist.', status=404)

    new_abs_path = os.path.join(os.path.dirname(abs_path), new_name)
    if os.path.lexists(new_abs_path):
        raise FileOperationError('A file or folder with that name already exists.', status=409)
    os.rename(abs_path, new_abs_path)
    logger.info(f"Renamed {abs_path} -> {new_abs_path}")
    return new_abs_path
