from __future__ import annotations

import errno
import logging
import os
import tempfile
from pathlib import Path

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from bookingstore.config import settings
from bookingstore.core.codec import decode, encode
from bookingstore.core.errors import CorruptDocument, IOFailure
from bookingstore.core.models import Document
from bookingstore.core.utils import utcnow

LOGGER = logging.getLogger("bookingstore.store")


# Windows refuses to replace a file another process holds open; that clears up quickly
@retry(
    wait=wait_exponential_jitter(initial=0.05, max=1, jitter=0.05),
    stop=stop_after_attempt(3),
    retry=retry_if_exception_type(PermissionError),
    reraise=True,
)
def _replace(src: str, dst: Path) -> None:
    os.replace(src, dst)


def _discard(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def _fsync_dir(directory: Path) -> None:
    """Flush the directory entry so the rename itself survives a power loss (POSIX)."""
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    except OSError as e:
        # some filesystems cannot fsync a directory
        if e.errno not in (errno.EINVAL, errno.ENOTSUP, errno.EBADF):
            raise
    finally:
        os.close(fd)


class JSONStore:
    """Collection document file with atomic writes.

    Writes go to a temporary file in the same directory which is then renamed
    over the target, so readers see either the previous document or the new
    one, never a truncated file. A missing file is bootstrapped with an empty
    document; a corrupt one is logged, counted in ``corrupt_loads`` and
    replaced by an empty document (the bad bytes are renamed aside first
    unless ``quarantine_corrupt`` is off).

    Filesystem errors are raised as ``IOFailure``.
    """

    def __init__(
        self,
        path: Path | str,
        legacy_key: str | None = None,
        quarantine_corrupt: bool | None = None,
        retry_attempts: int | None = None,
    ):
        self.path = Path(path)
        self.legacy_key = legacy_key
        self.quarantine_corrupt = (
            settings.QUARANTINE_CORRUPT if quarantine_corrupt is None else quarantine_corrupt
        )
        attempts = settings.WRITE_RETRY_ATTEMPTS if retry_attempts is None else retry_attempts
        self._replace = _replace.retry_with(stop=stop_after_attempt(max(1, attempts)))
        self.corrupt_loads = 0

    def _ensure_parent(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure(self.path.parent, "mkdir", str(e)) from e

    def ensure_exists(self) -> None:
        self._ensure_parent()
        try:
            if self.path.exists():
                return
        except OSError as e:
            raise IOFailure(self.path, "ensure_exists", str(e)) from e
        LOGGER.debug("[store] creating empty document %s", self.path)
        self._write_bytes(encode(Document()), "ensure_exists")

    def load(self) -> Document:
        self.ensure_exists()
        try:
            data = self.path.read_bytes()
        except OSError as e:
            raise IOFailure(self.path, "load", str(e)) from e
        try:
            return decode(data, legacy_key=self.legacy_key)
        except CorruptDocument as e:
            self.corrupt_loads += 1
            LOGGER.warning(
                "[store] corrupt document %s (%s), continuing with an empty collection",
                self.path,
                e.reason,
            )
            if self.quarantine_corrupt:
                self._quarantine()
            return Document()

    def write(self, document: Document) -> Document:
        """Stamp ``lastUpdated`` and persist the whole document."""
        self._ensure_parent()
        document.lastUpdated = utcnow()
        self._write_bytes(encode(document), "write")
        return document

    def _quarantine(self) -> None:
        target = self.path.with_name(f"{self.path.name}.corrupt-{utcnow():%Y%m%dT%H%M%S%fZ}")
        try:
            os.replace(self.path, target)
        except OSError as e:
            raise IOFailure(self.path, "quarantine", str(e)) from e
        LOGGER.warning("[store] corrupt content of %s moved to %s", self.path, target.name)
        self.ensure_exists()

    def _write_bytes(self, data: bytes, operation: str) -> None:
        try:
            fd, tmp = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
        except OSError as e:
            LOGGER.error("[store] %s failed for %s: %s", operation, self.path, e)
            raise IOFailure(self.path, operation, str(e)) from e

        committed = False
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            # mkstemp creates 0600 files
            os.chmod(tmp, 0o644)
            self._replace(tmp, self.path)
            committed = True
            _fsync_dir(self.path.parent)
        except OSError as e:
            LOGGER.error("[store] %s failed for %s: %s", operation, self.path, e)
            raise IOFailure(self.path, operation, str(e)) from e
        finally:
            if not committed:
                _discard(tmp)
