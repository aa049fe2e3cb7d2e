"""Transfer manifest generation.

This module handles:
- Mapping resolved layers to transfer details (target path, URL, digest)
- Streaming transfer details to a temporary JSON-lines file
- Reading them back lazily through a restartable reader

The temporary file is the canonical copy of the manifest; the full list
of details is never held in memory.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from imagepush.errors import SerializationError
from imagepush.types import ResolvedLayer, TransferDetail

logger = logging.getLogger(__name__)

TEMP_PREFIX = "imagepush_transfer_"
TEMP_SUFFIX = ".jsonl"


def layer_to_transfer_detail(
    layer: ResolvedLayer, repository_url: str
) -> TransferDetail:
    """Map one layer to its transfer detail.

    A layer without a ``sha256`` property gets an empty digest.
    """
    return TransferDetail(
        target_path=layer.full_path,
        repository_url=repository_url,
        sha256=layer.sha256,
    )


def write_records(
    records: Iterable[TransferDetail],
    tmp_dir: Path | None = None,
) -> tuple[Path, int]:
    """Write transfer details to a new temporary file, one JSON object per line.

    Args:
        records: Details to write, consumed lazily.
        tmp_dir: Directory for the file (system default if None).

    Returns:
        Tuple of (file path, number of records written).

    Raises:
        SerializationError: If the file cannot be written.
    """
    path: Path | None = None
    count = 0
    written = False
    try:
        if tmp_dir is not None:
            tmp_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX, dir=tmp_dir)
        path = Path(name)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            for record in records:
                f.write(json.dumps(record.to_dict(), sort_keys=True))
                f.write("\n")
                count += 1
        written = True
    except OSError as e:
        raise SerializationError(f"failed to write transfer details: {e}") from e
    finally:
        if not written and path is not None:
            path.unlink(missing_ok=True)

    logger.debug("Wrote %d transfer details to %s", count, path)
    return path, count


class TransferDetailReader:
    """Lazy, restartable reader over a transfer details file.

    Each iteration reopens the file and yields records in write order.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def __iter__(self) -> Iterator[TransferDetail]:
        with self.path.open(encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    yield TransferDetail(**json.loads(line))

    def close(self) -> None:
        """Delete the backing file."""
        self.path.unlink(missing_ok=True)


@dataclass
class PushResult:
    """Outcome of a push: transfer detail count plus a lazy reader.

    Attributes:
        success_count: Number of transfer details written.
        reader: Reader over the details, None when no summary was made.
    """

    success_count: int = 0
    reader: TransferDetailReader | None = None

    def details(self) -> Iterator[TransferDetail]:
        """Iterate transfer details (empty when there is no reader)."""
        if self.reader is None:
            return iter(())
        return iter(self.reader)

    def close(self) -> None:
        """Release the backing temporary file."""
        if self.reader is not None:
            self.reader.close()


def build_transfer_manifest(
    layers: Iterable[ResolvedLayer],
    repository_url: str,
    tmp_dir: Path | None = None,
) -> PushResult:
    """Build the transfer manifest for resolved layers.

    Output order equals input order, one detail per layer.

    Args:
        layers: Resolved layers.
        repository_url: Repository base URL recorded in each detail.
        tmp_dir: Directory for the manifest file.

    Returns:
        PushResult reading from the written manifest.

    Raises:
        SerializationError: If the manifest cannot be written.
    """
    details = (layer_to_transfer_detail(layer, repository_url) for layer in layers)
    path, count = write_records(details, tmp_dir=tmp_dir)
    logger.info("Transfer manifest has %d entries", count)
    return PushResult(success_count=count, reader=TransferDetailReader(path))


__all__ = [
    "PushResult",
    "TransferDetailReader",
    "build_transfer_manifest",
    "layer_to_transfer_detail",
    "write_records",
]
