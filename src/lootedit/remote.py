"""Remote file source over SSH/SFTP (paramiko)."""

from __future__ import annotations

import contextlib
import logging
import os
import posixpath
import socket
import stat
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum, auto

import paramiko

from .errors import AuthError, ErrorKind, SourceError
from .sources import DirEntry, SourceKind, os_error_kind

log = logging.getLogger(__name__)

DEFAULT_PORT = 22
DEFAULT_TIMEOUT = 10.0
_TMP_SUFFIX = ".lootedit-tmp"
_OLD_SUFFIX = ".lootedit-old"


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    FAULTED = auto()


class FaultCause(Enum):
    AUTH = "authentication rejected"
    NETWORK_TIMEOUT = "network timeout"
    NETWORK = "network error"
    HOST_KEY = "unknown host key"


@dataclass
class RemoteConfig:
    host: str
    username: str
    port: int = DEFAULT_PORT
    password: str | None = None
    key_path: str | None = None
    passphrase: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    trust_new_host: bool = False  # accept a host key missing from known_hosts

    @property
    def label(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RemoteConfig | None:
        """Build a config from ``SSH_HOST``/``SSH_USER`` and friends.

        Returns ``None`` unless both host and user are set.
        """
        env = os.environ if environ is None else environ
        host = env.get("SSH_HOST")
        username = env.get("SSH_USER")
        if not host or not username:
            return None
        try:
            port = int(env.get("SSH_PORT", DEFAULT_PORT))
        except ValueError:
            port = DEFAULT_PORT
        return cls(
            host=host,
            username=username,
            port=port,
            password=env.get("SSH_PASSWORD") or None,
            key_path=env.get("SSH_KEY") or None,
            passphrase=env.get("SSH_PASSPHRASE") or None,
            trust_new_host=env.get("SSH_TRUST_NEW_HOST", "").lower() in ("1", "yes", "true"),
        )

    @classmethod
    def from_target(cls, target: str, **kwargs) -> RemoteConfig:
        """Parse ``user@host[:port]``."""
        username, sep, rest = target.rpartition("@")
        if not sep or not username or not rest:
            raise ValueError(f"expected user@host[:port], got {target!r}")
        host, _, port = rest.partition(":")
        return cls(host=host, username=username, port=int(port) if port else DEFAULT_PORT, **kwargs)


@contextlib.contextmanager
def _remote_errors(path: str, action: str) -> Iterator[None]:
    try:
        yield
    except (paramiko.SSHException, EOFError) as exc:
        log.warning("remote %s %s failed: %s", action, path, exc)
        raise SourceError(ErrorKind.TRANSPORT_FAILURE, str(exc) or "connection lost", path) from exc
    except OSError as exc:
        log.warning("remote %s %s failed: %s", action, path, exc)
        raise SourceError(os_error_kind(exc), exc.strerror or str(exc), path) from exc


class UnknownHostKey(paramiko.SSHException):
    pass


class _RejectUnknownHost(paramiko.MissingHostKeyPolicy):
    def missing_host_key(self, client, hostname, key):
        raise UnknownHostKey(
            f"{key.get_name()} key of {hostname} is not in known_hosts; "
            "connect with 'trust new host key' to accept it"
        )


def _rename_unsupported(exc: OSError) -> bool:
    # paramiko reports SSH_FX_OP_UNSUPPORTED as a bare IOError with no errno
    return exc.errno is None and "unsupported" in str(exc).lower()


def _discard(sftp, path: str) -> None:
    with contextlib.suppress(Exception):
        sftp.remove(path)


class RemoteSource:
    """A file source backed by an SFTP session.

    The session moves through ``DISCONNECTED -> CONNECTING -> CONNECTED``
    and ends ``DISCONNECTED`` (on :meth:`close`) or ``FAULTED``.  File
    operations outside ``CONNECTED`` raise ``SourceError(NOT_READY)``.
    """

    kind = SourceKind.REMOTE

    def __init__(
        self,
        config: RemoteConfig,
        *,
        client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
    ) -> None:
        self.config = config
        self.state = ConnectionState.DISCONNECTED
        self.fault: FaultCause | None = None
        self.fault_message: str = ""
        self._client_factory = client_factory
        self._client: paramiko.SSHClient | None = None
        self._sftp: paramiko.SFTPClient | None = None

    def __enter__(self) -> RemoteSource:
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- Connection ---------------------------------------------------------

    def _faulted(self, client, cause: FaultCause, message: str) -> None:
        with contextlib.suppress(Exception):
            client.close()
        self._client = None
        self._sftp = None
        self.state = ConnectionState.FAULTED
        self.fault = cause
        self.fault_message = message
        log.warning("connection to %s faulted (%s): %s", self.config.label, cause.value, message)

    def connect(self) -> None:
        """Open the SSH session and its SFTP channel.

        Raises :class:`AuthError` when the credentials are rejected and
        ``SourceError`` (``TIMEOUT`` or ``TRANSPORT_FAILURE``) on network
        trouble.  Every phase is bounded by ``config.timeout``.
        """
        if self.state is ConnectionState.CONNECTED:
            return
        cfg = self.config
        self.state = ConnectionState.CONNECTING
        self.fault = None
        self.fault_message = ""
        log.info("connecting to %s", cfg.label)

        client = self._client_factory()
        if cfg.key_path and not os.path.exists(os.path.expanduser(cfg.key_path)):
            self._faulted(client, FaultCause.AUTH, f"key file not found: {cfg.key_path}")
            raise AuthError(self.fault_message)

        client.load_system_host_keys()
        if cfg.trust_new_host:
            client.set_missing_host_key_policy(paramiko.WarningPolicy())
        else:
            client.set_missing_host_key_policy(_RejectUnknownHost())
        explicit = bool(cfg.key_path or cfg.password)
        try:
            client.connect(
                cfg.host,
                port=cfg.port,
                username=cfg.username,
                password=cfg.password,
                key_filename=os.path.expanduser(cfg.key_path) if cfg.key_path else None,
                passphrase=cfg.passphrase,
                timeout=cfg.timeout,
                banner_timeout=cfg.timeout,
                auth_timeout=cfg.timeout,
                allow_agent=not explicit,
                look_for_keys=not explicit,
            )
            sftp = client.open_sftp()
            sftp.get_channel().settimeout(cfg.timeout)
        except UnknownHostKey as exc:
            self._faulted(client, FaultCause.HOST_KEY, str(exc))
            raise SourceError(ErrorKind.TRANSPORT_FAILURE, self.fault_message) from exc
        except paramiko.AuthenticationException as exc:
            self._faulted(client, FaultCause.AUTH, str(exc) or "authentication failed")
            raise AuthError(self.fault_message) from exc
        except socket.timeout as exc:
            self._faulted(
                client,
                FaultCause.NETWORK_TIMEOUT,
                f"no answer from {cfg.host}:{cfg.port} within {cfg.timeout:g}s",
            )
            raise SourceError(ErrorKind.TIMEOUT, self.fault_message) from exc
        except (paramiko.SSHException, EOFError, OSError) as exc:
            self._faulted(client, FaultCause.NETWORK, str(exc) or type(exc).__name__)
            raise SourceError(ErrorKind.TRANSPORT_FAILURE, self.fault_message) from exc

        self._client = client
        self._sftp = sftp
        self.state = ConnectionState.CONNECTED
        log.info("connected to %s", cfg.label)

    def close(self) -> None:
        """Release the session; safe to call in any state."""
        if self._sftp is not None:
            with contextlib.suppress(Exception):
                self._sftp.close()
        if self._client is not None:
            self._client.close()
            log.info("disconnected from %s", self.config.label)
        self._sftp = None
        self._client = None
        if self.state is not ConnectionState.FAULTED:
            self.state = ConnectionState.DISCONNECTED

    def _ready(self) -> paramiko.SFTPClient:
        if self.state is ConnectionState.CONNECTING:
            raise SourceError(ErrorKind.NOT_READY, "connection in progress")
        if self.state is not ConnectionState.CONNECTED or self._sftp is None:
            raise SourceError(ErrorKind.NOT_READY, f"not connected to {self.config.host}")
        return self._sftp

    def _check_transport(self) -> None:
        transport = self._client.get_transport() if self._client else None
        if transport is None or not transport.is_active():
            self._faulted(self._client, FaultCause.NETWORK, "connection lost")

    @contextlib.contextmanager
    def _operation(self, path: str, action: str) -> Iterator[paramiko.SFTPClient]:
        sftp = self._ready()
        try:
            with _remote_errors(path, action):
                yield sftp
        except SourceError as exc:
            if exc.kind in (ErrorKind.TRANSPORT_FAILURE, ErrorKind.TIMEOUT):
                self._check_transport()
            raise

    # -- File operations ------------------------------------------------------

    def list(self, path: str) -> list[DirEntry]:
        with self._operation(path, "list") as sftp:
            return [
                DirEntry(attr.filename, stat.S_ISDIR(attr.st_mode or 0))
                for attr in sftp.listdir_attr(path)
            ]

    def read_file(self, path: str) -> bytes:
        with self._operation(path, "read") as sftp:
            with sftp.open(path, "rb") as handle:
                handle.prefetch()
                return handle.read()

    def write_file(self, path: str, data: bytes) -> None:
        """Write to a temp file, check its size, then rename over *path*.

        On failure *path* keeps its previous content.
        """
        tmp_path = path + _TMP_SUFFIX
        with self._operation(path, "write") as sftp:
            try:
                with sftp.open(tmp_path, "wb") as handle:
                    handle.set_pipelined(True)
                    handle.write(data)
                written = sftp.stat(tmp_path).st_size
                if written != len(data):
                    raise SourceError(
                        ErrorKind.TRANSPORT_FAILURE,
                        f"short write: {written} of {len(data)} bytes",
                        path,
                    )
            except BaseException:
                _discard(sftp, tmp_path)
                raise
            fallback = False
            try:
                sftp.posix_rename(tmp_path, path)
            except OSError as exc:
                if not _rename_unsupported(exc):
                    _discard(sftp, tmp_path)
                    raise
                fallback = True
            except BaseException:
                _discard(sftp, tmp_path)
                raise
            if fallback:
                self._swap_in(sftp, tmp_path, path)
        log.info("wrote %d bytes to %s:%s", len(data), self.config.host, path)

    def _swap_in(self, sftp: paramiko.SFTPClient, tmp_path: str, path: str) -> None:
        """Replace *path* with plain renames for servers without posix-rename.

        Plain SFTP rename refuses to overwrite, so the old file is moved
        aside first and put back if the temp file cannot take its place.
        When even that fails, both the temp file and the aside copy are
        left on the server.
        """
        aside = path + _OLD_SUFFIX
        try:
            sftp.rename(path, aside)
            moved = True
        except FileNotFoundError:
            moved = False
        except BaseException:
            _discard(sftp, tmp_path)
            raise
        try:
            sftp.rename(tmp_path, path)
        except BaseException:
            restored = not moved
            if moved:
                try:
                    sftp.rename(aside, path)
                    restored = True
                except Exception as exc:
                    log.error(
                        "could not restore %s (%s); old content in %s, new content in %s",
                        path, exc, aside, tmp_path,
                    )
            if restored:
                _discard(sftp, tmp_path)
            raise
        if moved:
            _discard(sftp, aside)

    # -- Paths ------------------------------------------------------------

    def start_dir(self) -> str:
        with self._operation(".", "normalize") as sftp:
            return sftp.normalize(".")

    def join(self, directory: str, name: str) -> str:
        return posixpath.normpath(posixpath.join(directory, name))

    def parent(self, path: str) -> str | None:
        path = posixpath.normpath(path)
        if path in ("/", "."):
            return None
        return posixpath.dirname(path) or "/"
