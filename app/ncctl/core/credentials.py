"""Generated credentials store.

Database, Redis and admin passwords are generated once from a
cryptographically strong source and kept in a single owner-only file.
Writes replace the file atomically under an exclusive advisory lock;
reads take a shared lock so they never observe a partial write.
"""

import fcntl
import logging
import os
import secrets
import string
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from tempfile import NamedTemporaryFile

from ncctl.core.errors import ConfigWriteError
from ncctl.core.logger import register_secret

logger = logging.getLogger(__name__)

# Letters and digits only, so values are safe in every config syntax
ALPHABET = string.ascii_letters + string.digits
DEFAULT_LENGTH = 32

DB_PASSWORD = "DB_PASSWORD"
REDIS_PASSWORD = "REDIS_PASSWORD"
ADMIN_PASSWORD = "ADMIN_PASSWORD"


def generate_password(length: int = DEFAULT_LENGTH) -> str:
    """Generate a random password of letters and digits."""
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


class CredentialStore:
    """Owner-only key=value store for generated credentials.

    Attributes:
        path: Location of the secrets file (mode 0600).
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock_path = path.with_name(path.name + ".lock")

    @contextmanager
    def _locked(self, exclusive: bool) -> Iterator[None]:
        """Hold the advisory lock; shared holders never create files."""
        if exclusive:
            self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            fd = os.open(self._lock_path, os.O_RDWR | os.O_CREAT, 0o600)
        else:
            try:
                fd = os.open(self._lock_path, os.O_RDONLY)
            except FileNotFoundError:
                # No writer has taken the lock yet
                yield
                return
        try:
            fcntl.flock(fd, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        values: dict[str, str] = {}
        for line in self.path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            values[key.strip()] = value.strip()
        return values

    def _write(self, values: dict[str, str]) -> None:
        tmp_path: Path | None = None
        try:
            with NamedTemporaryFile(
                mode="w",
                dir=self.path.parent,
                delete=False,
                prefix=".secrets-",
                suffix=".tmp",
                encoding="utf-8",
            ) as f:
                tmp_path = Path(f.name)
                os.chmod(tmp_path, 0o600)
                f.write("# Generated by ncctl. Do not share.\n")
                for key in sorted(values):
                    f.write(f"{key}={values[key]}\n")
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise ConfigWriteError(f"Failed to write secrets file {self.path}: {e}") from e

    def get(self, name: str) -> str | None:
        """Return a stored credential, or None if it was never created."""
        if not self.path.exists():
            return None
        with self._locked(exclusive=False):
            value = self._read().get(name)
        if value:
            register_secret(value)
        return value

    def get_or_create(self, name: str, length: int = DEFAULT_LENGTH) -> str:
        """Return a stored credential, generating and persisting it first if needed.

        An existing value is never replaced.
        """
        with self._locked(exclusive=True):
            values = self._read()
            value = values.get(name)
            if not value:
                value = generate_password(length)
                values[name] = value
                self._write(values)
                logger.info("Generated credential %s in %s", name, self.path)
        register_secret(value)
        return value
