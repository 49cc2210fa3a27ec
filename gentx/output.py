"""Persisting the generated genesis transaction."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .codec import Codec
from .config import CONFIG_DIR, GENTX_DIR
from .errors import OutputError, OutputExistsError
from .tx import StdTx, encode_tx

logger = logging.getLogger(__name__)


def ensure_dir(path: Path, mode: int = 0o700) -> None:
    try:
        path.mkdir(mode=mode, parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputError(f"could not create directory {path}: {exc}") from exc
    if not path.is_dir():
        raise OutputError(f"{path} is not a directory")


def make_output_filepath(root_dir: Path, node_id: str) -> Path:
    """Return ``<root>/config/gentx/gentx-<node_id>.json``, creating the directory."""
    write_path = Path(root_dir) / CONFIG_DIR / GENTX_DIR
    ensure_dir(write_path)
    return write_path / f"gentx-{node_id}.json"


def write_gentx(codec: Codec, path: Path, tx: StdTx) -> Path:
    """Write ``tx`` to ``path``, refusing to replace an existing file."""
    path = Path(path)
    ensure_dir(path.parent)
    # Encode first so a codec failure never leaves an empty file behind.
    data = encode_tx(codec, tx) + b"\n"
    try:
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError as exc:
        raise OutputExistsError(f"{path} already exists") from exc
    except OSError as exc:
        raise OutputError(f"cannot open {path}: {exc}") from exc
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)
    logger.info("wrote genesis transaction to %s", path)
    return path


__all__ = ["make_output_filepath", "write_gentx", "ensure_dir"]
