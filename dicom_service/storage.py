"""
Write-once blob store for uploaded DICOM files.

Each upload lands in its own file named by a storage key of the form
'<nanosecond timestamp>_<original filename>'. Keys are only handed out after
the file is complete; there is no update or delete operation.
"""

import logging
import os
import shutil
import tempfile
import time
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import BinaryIO, Callable

from dicom_service.errors import BlobNotFoundError, StorageIOError
from dicom_service.utils import validate_storage_key

logger = logging.getLogger(__name__)

_PARTIAL_PREFIX = ".partial-"


def build_storage_key(timestamp_ns: int, filename: str) -> str:
    # Clients may send 'C:\scans\a.dcm' or 'dir/a.dcm'; only the base name is kept
    base_name = PureWindowsPath(PurePosixPath(filename or "").name).name
    return f"{timestamp_ns}_{base_name}"


class BlobStore:
    def __init__(self, root: Path, clock: Callable[[], int] = time.time_ns):
        self.root = Path(root)
        self._clock = clock

    def ensure_root(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"cannot create upload dir {self.root}: {e}") from e

    def new_key(self, filename: str) -> str:
        return build_storage_key(self._clock(), filename)

    def store(self, payload: BinaryIO, filename: str) -> str:
        """
        Copies an uploaded payload into the store and returns its key.

        The bytes go to a hidden temporary file first and are renamed onto
        the key only once fully written, so a failed copy never leaves a
        readable key behind.

        Raises:
            StorageIOError: If the destination cannot be created or written.
        """
        key = self.new_key(filename)
        destination = self.root / key

        try:
            fd, tmp_name = tempfile.mkstemp(prefix=_PARTIAL_PREFIX, dir=self.root)
        except OSError as e:
            logger.error("cannot create file for %s: %s", key, e)
            raise StorageIOError("cannot save file") from e

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as out:
                shutil.copyfileobj(payload, out)
                out.flush()
                os.fsync(out.fileno())
            os.replace(tmp_path, destination)
        except (OSError, ValueError) as e:  # ValueError for NUL in the filename
            logger.error("error writing %r: %s", key, e)
            self._discard(tmp_path)
            raise StorageIOError("error writing file") from e

        logger.info("stored upload as %s", key)
        return key

    def path_for(self, file_key: str) -> Path:
        """
        Resolves a storage key to the path of an existing blob.

        Raises:
            ClientInputError: If the key is malformed.
            BlobNotFoundError: If no blob exists under the key.
            StorageIOError: If the store cannot be inspected.
        """
        file_key = validate_storage_key(file_key)
        path = self.root / file_key
        try:
            exists = path.is_file()
        except OSError as e:
            raise StorageIOError(f"cannot read '{file_key}': {e}") from e
        if not exists:
            raise BlobNotFoundError(f"no uploaded file named '{file_key}'")
        return path

    def open(self, file_key: str) -> BinaryIO:
        path = self.path_for(file_key)
        try:
            return open(path, "rb")
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"no uploaded file named '{file_key}'") from e
        except OSError as e:
            raise StorageIOError(f"cannot read '{file_key}': {e}") from e

    @staticmethod
    def _discard(tmp_path: Path) -> None:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("could not remove partial upload %s", tmp_path, exc_info=True)
