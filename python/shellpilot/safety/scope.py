"""Project scope boundary for file writes.

The boundary is the nearest ancestor of the working directory that holds a
version-control marker, or the working directory itself when there is none.
Every write target must canonicalize (Path.resolve: "..", symlinks) to the
root or one of its descendants, and must not be a well-known secrets file.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from shellpilot.errors import OutOfScopeError, SecretsFileError
from shellpilot.logging import get_logger
from shellpilot.redact import safe_kv

logger = get_logger(__name__)

VCS_MARKERS = (".git", ".hg", ".svn", ".jj")

SECRETS_FILENAMES = frozenset(
    {
        "credentials.json",
        "secrets.json",
        "secrets.yaml",
        "secrets.yml",
        "id_rsa",
        "id_ed25519",
        "id_ecdsa",
        "id_dsa",
        ".npmrc",
        ".pypirc",
        ".netrc",
        ".dockercfg",
        "docker-config.json",
    }
)


def is_secrets_file(path: Path) -> bool:
    """Whether a path names a file that commonly holds credentials.

    Matches .env and .env.* by prefix, a fixed set of file names, and any
    path ending in .aws/credentials.
    """
    name = path.name
    if name == ".env" or name.startswith(".env."):
        return True
    if name in SECRETS_FILENAMES:
        return True
    parts = path.parts
    return len(parts) >= 2 and parts[-2] == ".aws" and parts[-1] == "credentials"


@dataclass(frozen=True)
class ScopeBoundary:
    """Resolved project root.

    Attributes:
        root: Canonical root directory
        is_vcs_root: True if root was found by a VCS marker
    """

    root: Path
    is_vcs_root: bool

    @classmethod
    def discover(cls, cwd: Path) -> "ScopeBoundary":
        start = Path(cwd).resolve()
        for directory in (start, *start.parents):
            if any((directory / marker).exists() for marker in VCS_MARKERS):
                return cls(root=directory, is_vcs_root=True)
        return cls(root=start, is_vcs_root=False)

    def contains(self, path: Path) -> bool:
        """Whether path canonicalizes to root or a descendant of it."""
        return Path(path).expanduser().resolve().is_relative_to(self.root)

    def check(self, path: Path) -> Path:
        """Validate a write target.

        Returns:
            The canonical target path.

        Raises:
            OutOfScopeError: If the target escapes the boundary.
            SecretsFileError: If the target (or what it resolves to) is a secrets file.
        """
        proposed = Path(path).expanduser()
        resolved = proposed.resolve()
        if not resolved.is_relative_to(self.root):
            raise OutOfScopeError(path, self.root)
        if is_secrets_file(proposed) or is_secrets_file(resolved):
            raise SecretsFileError(path)
        return resolved


class ScopeResolver:
    """Caches the ScopeBoundary per working directory.

    The boundary is recomputed whenever the directory asked about (by default
    os.getcwd()) differs from the cached one.
    """

    def __init__(self):
        self._cwd: str | None = None
        self._boundary: ScopeBoundary | None = None

    def resolve(self, cwd: Path | None = None) -> ScopeBoundary:
        current = str(cwd) if cwd is not None else os.getcwd()
        if self._boundary is None or current != self._cwd:
            self._boundary = ScopeBoundary.discover(Path(current))
            self._cwd = current
            logger.debug(
                "scope.resolved",
                **safe_kv(is_vcs_root=self._boundary.is_vcs_root),
            )
        return self._boundary
