"""
File operations for installing and removing payloads.

Includes atomic writes, safe archive extraction into call-scoped temporary
directories, payload lookup inside extracted trees, copy-then-replace installs and
best-effort removal.
"""

import json
import os
import shutil
import tempfile
import zipfile
import zlib
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from modkeeper.constants import (
    SIDECAR_EXTENSION,
    TEMP_EXTRACT_PREFIX,
    TEMP_FILE_SUFFIX,
)
from modkeeper.exceptions import ArchiveError, InstallError
from modkeeper.log_utils import logger


def _atomic_write(
    file_path: str, writer_func: Callable[[Any], None], suffix: str = ".tmp"
) -> bool:
    """
    Write data to a file atomically by writing to a temporary file and replacing the target.

    Returns:
        bool: `True` if the temporary write and atomic replace succeeded, `False` on any error.
    """
    directory = os.path.dirname(file_path) or "."
    try:
        os.makedirs(directory, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(dir=directory, prefix="tmp-", suffix=suffix)
    except OSError as e:
        logger.error(f"Could not create temporary file for {file_path}: {e}")
        return False

    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8") as temp_f:
            writer_func(temp_f)
        os.replace(temp_path, file_path)
    except (UnicodeEncodeError, OSError, TypeError, ValueError) as e:
        logger.error(f"Could not write to {file_path}: {e}")
        return False
    finally:
        if os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError:
                pass
    return True


def atomic_write_json(file_path: str, data: dict) -> bool:
    """Atomically write `data` to `file_path` as pretty-printed JSON."""
    return _atomic_write(
        file_path, lambda f: json.dump(data, f, indent=2, sort_keys=True), suffix=".json"
    )


def read_json(file_path: str) -> Optional[Any]:
    """Load JSON from `file_path`; None if missing or unreadable."""
    if not os.path.exists(file_path):
        return None
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read JSON file {file_path}: {e}")
        return None


def sidecar_path(payload_path: str) -> str:
    """`Foo.dll` -> `Foo.json`, next to the payload."""
    return os.path.splitext(payload_path)[0] + SIDECAR_EXTENSION


def _is_within_base(real_base_dir: str, candidate: str) -> bool:
    try:
        return os.path.commonpath([real_base_dir, candidate]) == real_base_dir
    except ValueError:
        return False


def is_safe_archive_member(member_name: str) -> bool:
    """
    Determine whether an archive member name is safe to extract.

    Returns:
        `True` if the name has no absolute path, parent-directory reference or null byte.
    """
    if not member_name or member_name.startswith(("/", "\\")):
        return False
    if "\x00" in member_name:
        return False
    normalized = os.path.normpath(member_name.replace("\\", "/"))
    if os.path.isabs(normalized) or normalized == "..":
        return False
    if normalized.startswith(f"..{os.sep}"):
        return False
    if os.altsep and normalized.startswith(f"..{os.altsep}"):
        return False
    return True


def safe_extract_path(extract_dir: str, member_name: str) -> str:
    """
    Resolve the extraction path for an archive member inside `extract_dir`.

    Raises:
        ValueError: If the resolved path falls outside `extract_dir`.
    """
    real_extract_dir = os.path.realpath(extract_dir)
    normalized_path = os.path.realpath(os.path.join(real_extract_dir, member_name))
    if not _is_within_base(real_extract_dir, normalized_path):
        raise ValueError(
            f"Unsafe extraction path '{member_name}' is outside base '{extract_dir}'"
        )
    return normalized_path


def extract_archive(zip_path: str, extract_dir: str) -> int:
    """
    Extract every safe member of a ZIP archive into `extract_dir`.

    Returns:
        int: Number of files extracted.

    Raises:
        ArchiveError: If the archive is corrupted or cannot be read.
    """
    extracted = 0
    try:
        with zipfile.ZipFile(zip_path, "r") as zip_ref:
            for file_info in zip_ref.infolist():
                if file_info.is_dir():
                    continue
                if not is_safe_archive_member(file_info.filename):
                    logger.warning(
                        "Skipping unsafe archive member %s (possible traversal)",
                        file_info.filename,
                    )
                    continue
                try:
                    target = safe_extract_path(extract_dir, file_info.filename)
                except ValueError as e:
                    logger.warning(f"Skipping unsafe extraction path: {e}")
                    continue

                os.makedirs(os.path.dirname(target), exist_ok=True)
                with zip_ref.open(file_info) as source, open(target, "wb") as out:
                    shutil.copyfileobj(source, out)
                extracted += 1
    except (
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
        zlib.error,
        EOFError,
        RuntimeError,
        NotImplementedError,
    ) as e:
        # Corrupt, truncated, encrypted or unsupported members
        raise ArchiveError(
            "Downloaded archive is corrupted", archive_path=zip_path, details=str(e)
        ) from e
    except OSError as e:
        raise InstallError(
            "Could not extract the downloaded archive", path=zip_path, details=str(e)
        ) from e

    logger.debug(f"Extracted {extracted} file(s) from {zip_path} to {extract_dir}")
    return extracted


@contextmanager
def temporary_extract_dir() -> Iterator[str]:
    """
    Create a fresh extraction directory for one install and remove it afterwards.

    The directory is unique per call and is deleted on every exit path.
    """
    path = tempfile.mkdtemp(prefix=TEMP_EXTRACT_PREFIX)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        if os.path.exists(path):
            logger.warning(f"Could not remove temporary extraction directory {path}")


def find_file(root: str, file_name: str) -> Optional[str]:
    """
    Search `root` recursively for a file named `file_name` (case-insensitive).

    Shallower matches win; ties are broken alphabetically so results are deterministic.
    """
    wanted = file_name.lower()
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            if name.lower() == wanted:
                return os.path.join(dirpath, name)
    return None


def replace_files(pairs: Sequence[Tuple[str, str]]) -> None:
    """
    Copy each source over its destination, staging every copy before replacing any.

    All copies are first written to temporary files beside their destinations. Only
    once every copy succeeded are they renamed into place, so a failed copy leaves
    every destination as it was.

    Raises:
        InstallError: If a copy or a rename fails.
    """
    staged: List[str] = []
    current = ""
    try:
        for source, destination in pairs:
            current = destination
            temp_path = f"{destination}{TEMP_FILE_SUFFIX}"
            os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)
            staged.append(temp_path)
            shutil.copyfile(source, temp_path)
        for (_, destination), temp_path in zip(pairs, staged):
            current = destination
            os.replace(temp_path, destination)
    except OSError as e:
        raise InstallError(
            f"Could not write {os.path.basename(current)}",
            path=current,
            details=str(e),
        ) from e
    finally:
        for temp_path in staged:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError as e:
                    logger.warning(f"Could not remove temporary file {temp_path}: {e}")


def replace_file(source: str, destination: str) -> None:
    """
    Copy `source` over `destination` without ever leaving a half-written destination.

    The copy goes to a temporary file beside the destination and is then renamed over it.

    Raises:
        InstallError: If the copy or the rename fails.
    """
    replace_files([(source, destination)])


def remove_if_present(path: str) -> bool:
    """
    Delete `path` if it exists.

    Returns:
        bool: True if a file was deleted, False if there was nothing to delete.

    Raises:
        InstallError: If the file exists but cannot be deleted.
    """
    if not os.path.lexists(path):
        return False
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise InstallError(
            f"Could not delete {os.path.basename(path)}", path=path, details=str(e)
        ) from e
    return True
