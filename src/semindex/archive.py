"""Named binary blocks stored inside a zip archive."""

from __future__ import annotations

import io
import json
import zipfile
import zlib
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import numpy as np
from pydantic import BaseModel, ValidationError

from semindex.errors import CorruptArchiveError

if TYPE_CHECKING:
    from collections.abc import Callable

Archive = zipfile.ZipFile

M = TypeVar("M", bound=BaseModel)


def save_file(path: str | Path, callback: Callable[[Archive], None]) -> None:
    """Create ``path`` as a fresh archive and let ``callback`` write its blocks.

    Blocks are written to a sibling temporary file that replaces ``path`` only
    once the archive is complete, so a failed save keeps the previous file.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    staging = target.with_name(f".{target.name}.tmp")
    try:
        with zipfile.ZipFile(staging, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
            callback(archive)
        staging.replace(target)
    finally:
        staging.unlink(missing_ok=True)


def load_file(path: str | Path, callback: Callable[[Archive], None]) -> None:
    """Open ``path`` read-only and let ``callback`` read its blocks."""
    source = Path(path)
    try:
        archive = zipfile.ZipFile(source, mode="r")
    except FileNotFoundError as exc:
        message = f"archive not found: {source}"
        raise CorruptArchiveError(message) from exc
    except zipfile.BadZipFile as exc:
        message = f"not a valid archive: {source}"
        raise CorruptArchiveError(message) from exc
    with archive:
        callback(archive)


def dump_bytes(callback: Callable[[Archive], None]) -> bytes:
    """Write an archive in memory and return its serialized bytes."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
        callback(archive)
    return buffer.getvalue()


def load_bytes(payload: bytes, callback: Callable[[Archive], None]) -> None:
    """Open an archive previously produced by :func:`dump_bytes`."""
    try:
        archive = zipfile.ZipFile(io.BytesIO(payload), mode="r")
    except zipfile.BadZipFile as exc:
        message = "not a valid archive payload"
        raise CorruptArchiveError(message) from exc
    with archive:
        callback(archive)


def block_names(archive: Archive) -> list[str]:
    """Return the names of every block stored in ``archive``."""
    return archive.namelist()


def has_block(archive: Archive, name: str) -> bool:
    """Return whether ``archive`` holds a block called ``name``."""
    try:
        archive.getinfo(name)
    except KeyError:
        return False
    return True


def write_block(archive: Archive, name: str, payload: bytes) -> None:
    """Store ``payload`` under ``name``."""
    archive.writestr(name, payload)


def read_block(archive: Archive, name: str) -> bytes:
    """Return the raw payload stored under ``name``."""
    try:
        return archive.read(name)
    except KeyError as exc:
        message = f"archive block missing: {name}"
        raise CorruptArchiveError(message) from exc
    except (zipfile.BadZipFile, zlib.error, OSError, EOFError) as exc:
        # zipfile reports CRC mismatches as BadZipFile
        message = f"archive block corrupt: {name}"
        raise CorruptArchiveError(message) from exc


def write_json(archive: Archive, name: str, payload: Any) -> None:
    """Store ``payload`` as UTF-8 JSON."""
    write_block(archive, name, json.dumps(payload, ensure_ascii=False).encode("utf-8"))


def read_json(archive: Archive, name: str) -> Any:
    """Decode the JSON block stored under ``name``."""
    raw = read_block(archive, name)
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        message = f"archive block is not valid JSON: {name}"
        raise CorruptArchiveError(message) from exc


def write_model(archive: Archive, name: str, model: BaseModel) -> None:
    """Store a pydantic model as JSON."""
    write_block(archive, name, model.model_dump_json().encode("utf-8"))


def read_model(archive: Archive, name: str, model_type: type[M]) -> M:
    """Decode and validate the model stored under ``name``."""
    raw = read_block(archive, name)
    try:
        return model_type.model_validate_json(raw)
    except ValidationError as exc:
        message = f"archive block failed validation: {name}"
        raise CorruptArchiveError(message) from exc


def write_array(archive: Archive, name: str, array: np.ndarray) -> None:
    """Store a numpy array in ``.npy`` format."""
    buffer = io.BytesIO()
    np.save(buffer, np.asarray(array), allow_pickle=False)
    write_block(archive, name, buffer.getvalue())


def read_array(archive: Archive, name: str) -> np.ndarray:
    """Decode the ``.npy`` array stored under ``name``."""
    raw = read_block(archive, name)
    try:
        return np.load(io.BytesIO(raw), allow_pickle=False)
    except (ValueError, OSError, EOFError) as exc:
        message = f"archive block is not a valid array: {name}"
        raise CorruptArchiveError(message) from exc
