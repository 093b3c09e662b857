"""Streaming zip extraction with entry path sanitization."""

import logging
import shutil
import zipfile
import zlib
from pathlib import Path
from typing import BinaryIO, Union

from modcache.errors import CacheIOError, MalformedArchiveError
from modcache.utils import is_within, sanitize_file_path

logger = logging.getLogger(__name__)

_COPY_CHUNK_SIZE = 64 * 1024
# General purpose bit 0
_ENCRYPTED_FLAG = 0x1


def extract_archive(archive: Union[str, Path, BinaryIO], target_dir: Path) -> int:
    """Extract every entry of a zip archive into ``target_dir``.

    Entry names are sanitized with :func:`modcache.utils.sanitize_file_path`,
    so ``../../evil`` lands at ``target_dir/evil``. Entries are processed in
    stored order; parent directories are created on demand, which handles
    archives that list a file before its directory entry. Files are opened
    with exclusive creation, so extraction expects an empty target.

    Args:
        archive: Path to a zip file or a seekable binary file object
        target_dir: Existing directory to extract into

    Returns:
        Number of files written

    Raises:
        MalformedArchiveError: If the archive is corrupt, unsupported, or an
            entry would escape ``target_dir``
        CacheIOError: On filesystem errors, including an existing destination
    """
    target_dir = Path(target_dir)
    files_written = 0

    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                relative = sanitize_file_path(info.filename)
                if not relative.parts:
                    logger.warning(f"Skipping archive entry with unusable name: {info.filename!r}")
                    continue

                path = target_dir.joinpath(*relative.parts)
                if not is_within(path, target_dir):
                    raise MalformedArchiveError(
                        f"Archive entry escapes target directory: {info.filename!r}"
                    )

                if info.is_dir():
                    # May already exist when entries are out of order
                    path.mkdir(parents=True, exist_ok=True)
                    continue

                if info.flag_bits & _ENCRYPTED_FLAG:
                    raise MalformedArchiveError(
                        f"Encrypted entries are not supported: {info.filename!r}"
                    )

                path.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(path, "xb") as dst:
                    shutil.copyfileobj(src, dst, _COPY_CHUNK_SIZE)
                files_written += 1
    except (
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
        zlib.error,
        NotImplementedError,
        EOFError,
    ) as e:
        raise MalformedArchiveError(f"Cannot read archive: {e}") from e
    except OSError as e:
        raise CacheIOError(f"Error extracting archive into {target_dir}: {e}") from e

    logger.debug(f"extracted {files_written} files into {target_dir}")
    return files_written
