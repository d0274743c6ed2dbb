"""
Docker-secret aware environment lookup.

For a setting ``X`` the value is taken from the file named by ``X_FILE``
when that variable is set, otherwise from ``X`` itself.  Empty strings
count as unset.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

from sync_kernel.exceptions import SecretFileError

SECRET_SUFFIX = "_FILE"


def read_secret(path: Path) -> str | None:
    """Return the trimmed contents of ``path``, or None if it is not a file."""
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8").strip()


def get_configuration(name: str, environ: Mapping[str, str]) -> str | None:
    """Resolve setting ``name`` from ``environ``, honouring ``name_FILE``.

    Raises:
        SecretFileError: If ``name_FILE`` is set but does not name a file.
    """
    secret_path = environ.get(f"{name}{SECRET_SUFFIX}")
    if secret_path:
        secret = read_secret(Path(secret_path))
        if secret is None:
            raise SecretFileError(name, secret_path)
        return secret or None

    value = environ.get(name)
    if value:
        return value
    return None
