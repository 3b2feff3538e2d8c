"""
Blob storage contract and a filesystem-backed implementation.

Keys are relative, slash-separated paths (``<owner>/json/<id>_parsed.json``).
"""

import os
import tempfile
from pathlib import Path
from typing import Protocol, Union

from ..core.logger import logger
from ..utils.exceptions import BlobNotFoundError, StorageError

TMP_PREFIX = ".tmp-"


class BlobStore(Protocol):
    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None: ...

    def get(self, key: str) -> bytes: ...

    def remove(self, key: str) -> None: ...

    def exists(self, key: str) -> bool: ...


class LocalBlobStore:
    """Stores each blob as a file under ``root``"""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise StorageError(f"Invalid blob key: {key}")
        return path

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        path = self._path(key)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # write to a temp file first so readers never see a partial blob
            fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=TMP_PREFIX)
            with os.fdopen(fd, "wb") as buff:
                buff.write(data)
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error(f"Failed to write blob {key}: {str(e)}")
            if tmp_name is not None:
                self._discard_temp(tmp_name)
            raise StorageError(f"Failed to write blob {key}") from e
        logger.debug(f"Stored blob {key} ({len(data)} bytes, {content_type})")

    def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob not found: {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to read blob {key}") from e

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            # already gone; removal is idempotent so delete can be retried
            return
        except OSError as e:
            logger.error(f"Failed to remove blob {key}: {str(e)}")
            raise StorageError(f"Failed to remove blob {key}") from e

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    @staticmethod
    def _discard_temp(tmp_name: str) -> None:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Could not remove temp file {tmp_name}: {str(e)}")
