"""Remote repository fetcher.

Clones a git repository and flattens its working tree into a read-only mapping
of relative POSIX path -> file contents, so templates and config can be read
from it without touching the caller's filesystem.

Authentication, in order:
    1. SSH URL (``git@host:org/repo.git`` or ``ssh://``): private key from disk
    2. username given: password from the secret provider, HTTP basic auth
    3. anonymous clone
"""

from __future__ import annotations

import getpass
import logging
import re
import shlex
import tempfile
from collections.abc import Callable, Mapping
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from urllib.parse import quote, urlsplit, urlunsplit

import git
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from stackwright.errors import AuthError, FetchError, UnresolvedStackError
from stackwright.source import repo_key

logger = logging.getLogger(__name__)

# user@host:path, but not scheme://
_SCP_LIKE = re.compile(r"^[\w.+-]+@[\w.-]+:(?!//)")

SKIP_DIRS = frozenset({".git"})

SecretProvider = Callable[[str], str]


def is_ssh_url(url: str) -> bool:
    return bool(_SCP_LIKE.match(url)) or url.startswith("ssh://")


def prompt_secret(url: str) -> str:
    """Default secret provider: ask on the terminal without echo."""
    return getpass.getpass(f"Password for '{url}': ")


def load_private_key(key_path: str) -> Path:
    """Check that key_path holds a usable private key and return its path.

    Raises:
        AuthError: file missing, unreadable, malformed or passphrase-protected.
    """
    if not key_path:
        raise AuthError("SSH repository URL requires a private key path")

    path = Path(key_path).expanduser()
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise AuthError(f"unable to read SSH key [{path}]: {exc}") from exc

    try:
        if b"BEGIN OPENSSH PRIVATE KEY" in data:
            serialization.load_ssh_private_key(data, password=None)
        else:
            serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise AuthError(f"invalid SSH key [{path}]: {exc}") from exc

    return path


def _with_credentials(url: str, user: str, secret: str) -> str:
    parts = urlsplit(url)
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    netloc = f"{quote(user, safe='')}:{quote(secret, safe='')}@{host}"
    return urlunsplit(parts._replace(netloc=netloc))


class Repo:
    """A cloned repository held as a flat file map."""

    def __init__(
        self,
        url: str,
        user: str = "",
        key_path: str = "",
        secret_provider: SecretProvider | None = None,
    ) -> None:
        self.url = url
        self.user = user
        self.key_path = key_path
        self._secret_provider = secret_provider or prompt_secret
        self._secret: str | None = None
        self.files: Mapping[str, str] = MappingProxyType({})

    @classmethod
    def fetch(
        cls,
        url: str,
        user: str = "",
        key_path: str = "",
        secret_provider: SecretProvider | None = None,
    ) -> Repo:
        """Clone url and return a Repo with its files loaded.

        Raises:
            AuthError: credentials could not be loaded.
            FetchError: the clone failed.
        """
        repo = cls(url, user=user, key_path=key_path, secret_provider=secret_provider)
        repo.load()
        return repo

    def load(self) -> None:
        with tempfile.TemporaryDirectory(prefix="stackwright-") as tmp:
            worktree = Path(tmp) / "repo"
            self._clone(worktree)
            files: dict[str, str] = {}
            try:
                self._read_files(worktree, PurePosixPath(), files)
            except OSError as exc:
                raise FetchError(f"unable to read cloned files from [{self.url}]: {exc}") from exc
        logger.debug("Read %d files from %s", len(files), self.url)
        self.files = MappingProxyType(files)

    def read(self, path: str) -> str:
        """Return the contents of a file in the repository."""
        try:
            return self.files[repo_key(path)]
        except KeyError:
            raise UnresolvedStackError(path) from None

    def _secret_for(self) -> str:
        # asked at most once per instance
        if self._secret is None:
            self._secret = self._secret_provider(self.url)
        return self._secret

    def _auth(self) -> tuple[str, dict[str, str]]:
        """Return the clone URL and environment for git."""
        if is_ssh_url(self.url):
            key = load_private_key(self.key_path)
            logger.debug("SSH source URL detected, using key: %s", key)
            ssh_cmd = f"ssh -i {shlex.quote(str(key))} -o IdentitiesOnly=yes"
            return self.url, {"GIT_SSH_COMMAND": ssh_cmd}

        if self.user:
            return _with_credentials(self.url, self.user, self._secret_for()), {}

        return self.url, {}

    def _redact(self, text: str) -> str:
        if self._secret:
            text = text.replace(self._secret, "[REDACTED]")
            text = text.replace(quote(self._secret, safe=""), "[REDACTED]")
        return text

    def _clone(self, dest: Path) -> None:
        url, env = self._auth()
        logger.info("Fetching git repo: [%s]", PurePosixPath(self.url).name)
        try:
            git.Repo.clone_from(url, dest, env=env or None, depth=1)
        except git.CommandError as exc:
            # GitCommandError and GitCommandNotFound both land here
            detail = self._redact(str(exc.stderr or exc).strip())
            raise FetchError(f"unable to clone [{self.url}]: {detail}") from exc

    def _read_files(self, root: Path, dirname: PurePosixPath, files: dict[str, str]) -> None:
        for entry in sorted(root.iterdir()):
            rel = dirname / entry.name
            # links may point outside the clone
            if entry.is_symlink():
                logger.debug("Skipping symlink %s", rel)
                continue
            if entry.is_dir():
                if entry.name in SKIP_DIRS and not dirname.parts:
                    continue
                self._read_files(entry, rel, files)
                continue
            if not entry.is_file():
                continue
            files[rel.as_posix()] = entry.read_bytes().decode("utf-8", errors="replace")
