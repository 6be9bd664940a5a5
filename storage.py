import logging
import os
import time
from typing import BinaryIO, Optional

from errors import ValidationError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class FileStorage:
    """Stores uploads on local disk and hands out public locators for them.

    Stored names are ``<epoch millis>-<original name>``. When that name is
    already taken, ``<epoch millis>-<n>-<original name>`` is used instead, so
    an existing file is never overwritten. Locators have the form
    ``<base_url>/uploads/<stored name>`` and are served by the app's static
    mount.
    """

    def __init__(self, upload_dir: str, base_url: str, max_bytes: Optional[int] = None):
        self.upload_dir = upload_dir
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes

    def ensure_dir(self):
        os.makedirs(self.upload_dir, exist_ok=True)

    def save(self, stream: BinaryIO, original_name: str) -> str:
        """Copy ``stream`` to disk and return the locator of the new file."""
        self.ensure_dir()
        safe_name = os.path.basename(original_name or "") or "upload"
        stored_name, out = self._create_unique(safe_name)
        path = os.path.join(self.upload_dir, stored_name)

        written = 0
        with out:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if self.max_bytes is not None and written > self.max_bytes:
                    break
                out.write(chunk)

        if self.max_bytes is not None and written > self.max_bytes:
            os.remove(path)
            raise ValidationError("File too large", error=f"Maximum upload size is {self.max_bytes} bytes")

        logger.info(f"Stored upload {stored_name} ({written} bytes)")
        return f"{self.base_url}/uploads/{stored_name}"

    def _create_unique(self, safe_name: str):
        stamp = int(time.time() * 1000)
        stored_name = f"{stamp}-{safe_name}"
        attempt = 0
        while True:
            try:
                return stored_name, open(os.path.join(self.upload_dir, stored_name), "xb")
            except FileExistsError:
                attempt += 1
                stored_name = f"{stamp}-{attempt}-{safe_name}"

    def path_for(self, locator: str) -> Optional[str]:
        if not locator or "/uploads/" not in locator:
            return None
        stored_name = os.path.basename(locator.split("/uploads/", 1)[1])
        if not stored_name:
            return None
        return os.path.join(self.upload_dir, stored_name)

    def delete(self, locator: str) -> bool:
        """Remove the file behind ``locator``. Missing files are not an error.

        Returns True when a file was actually removed. OS failures are logged
        and reported as False; callers go on with the record mutation.
        """
        path = self.path_for(locator)
        if path is None or not os.path.exists(path):
            return False
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(f"Could not delete stored file {path}: {str(e)}")
            return False
        logger.info(f"Deleted stored file {path}")
        return True
