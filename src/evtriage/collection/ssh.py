"""
SSH transport: runs the count script with powershell.exe over OpenSSH.

Targets need the Windows OpenSSH server. Every unit of work opens its own
SSH connection, so the System and Application queries of a host never share
a channel.
"""

import logging
import socket
from pathlib import Path
from typing import Any, Dict, List, Optional

import paramiko

from ..errors import RemoteQueryError, SessionEstablishmentError
from .client import BlockingLogClient, ExecutionContext
from .models import CountRecord, LogQuery
from .powershell import build_count_script, decode_counts, encode_command, is_safe_host

logger = logging.getLogger(__name__)


class SSHLogClient(BlockingLogClient):
    """
    Remote log client using paramiko.

    Key based authentication (agent, default keys, ssh config IdentityFile)
    is used unless a password is given.
    """

    name = "ssh"

    def __init__(
        self,
        username: Optional[str] = None,
        port: int = 22,
        key_filename: Optional[str] = None,
        password: Optional[str] = None,
        ssh_config: Optional[str] = None,
        connect_timeout: float = 30.0,
        command_timeout: Optional[float] = None,
    ):
        """
        Initialize SSH client.

        Args:
            username: Remote user (falls back to ssh config / paramiko default)
            port: SSH port
            key_filename: Private key file
            password: Password; disables key lookup when set
            ssh_config: OpenSSH client config path (default: ~/.ssh/config if present)
            connect_timeout: TCP/auth timeout in seconds
            command_timeout: Channel read timeout in seconds (None = no limit)
        """
        self.username = username
        self.port = port
        self.key_filename = key_filename
        self.password = password
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout

        if ssh_config is None:
            default_config = Path.home() / ".ssh" / "config"
            if default_config.exists():
                ssh_config = str(default_config)
        self.ssh_config = self._load_ssh_config(ssh_config)

    @staticmethod
    def _load_ssh_config(path: Optional[str]) -> Optional[paramiko.SSHConfig]:
        if not path:
            return None
        config_path = Path(path).expanduser()
        if not config_path.exists():
            logger.warning(f"SSH config not found: {config_path}")
            return None
        return paramiko.SSHConfig.from_path(str(config_path))

    def connect_kwargs(self, host: str) -> Dict[str, Any]:
        """Build paramiko connect() arguments for a host."""
        if host == ".":
            host = "localhost"
        kwargs: Dict[str, Any] = {
            "hostname": host,
            "port": self.port,
            "timeout": self.connect_timeout,
            "banner_timeout": self.connect_timeout,
            "auth_timeout": self.connect_timeout,
        }
        if self.username:
            kwargs["username"] = self.username

        if self.password:
            kwargs["password"] = self.password
            kwargs["look_for_keys"] = False
            kwargs["allow_agent"] = False
        else:
            kwargs["look_for_keys"] = True
            kwargs["allow_agent"] = True
            if self.key_filename:
                kwargs["key_filename"] = self.key_filename

        if self.ssh_config is not None:
            host_config = self.ssh_config.lookup(host)
            if "hostname" in host_config:
                kwargs["hostname"] = host_config["hostname"]
            if "user" in host_config and not self.username:
                kwargs["username"] = host_config["user"]
            if "port" in host_config and self.port == 22:
                kwargs["port"] = int(host_config["port"])
            if "identityfile" in host_config and not self.password and not self.key_filename:
                kwargs["key_filename"] = host_config["identityfile"]

        return kwargs

    def _open_socket(self, context: ExecutionContext, hostname: str, port: int) -> socket.socket:
        """
        Connect a TCP socket held by the context.

        Releasing the context shuts the socket down, which aborts a pending
        connect or SSH handshake in the worker thread.
        """
        last_error: Optional[OSError] = None
        for family, socktype, proto, _canonname, address in socket.getaddrinfo(
            hostname, port, type=socket.SOCK_STREAM
        ):
            sock = socket.socket(family, socktype, proto)
            context.handle = sock
            if context.cancelled.is_set():
                sock.close()
                context.handle = None
                break
            sock.settimeout(self.connect_timeout)
            try:
                sock.connect(address)
            except OSError as e:
                sock.close()
                context.handle = None
                last_error = e
                continue
            return sock
        if context.cancelled.is_set():
            raise SessionEstablishmentError(context.host, "cancelled")
        raise last_error or OSError(f"no address for {hostname}")

    def _establish(self, context: ExecutionContext) -> None:
        host = context.host
        if not is_safe_host(host):
            raise SessionEstablishmentError(host, "host name contains unsupported characters")

        kwargs = self.connect_kwargs(host)
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            sock = self._open_socket(context, kwargs["hostname"], kwargs["port"])
            client.connect(sock=sock, **kwargs)
        except paramiko.AuthenticationException as e:
            client.close()
            raise SessionEstablishmentError(host, f"authentication failed: {e}") from e
        except (paramiko.SSHException, socket.error) as e:
            client.close()
            if context.cancelled.is_set():
                raise SessionEstablishmentError(host, "cancelled") from e
            raise SessionEstablishmentError(host, f"SSH error: {e}") from e

        context.handle = client
        if context.cancelled.is_set():
            # Released while we were still connecting
            client.close()
            context.handle = None
            raise SessionEstablishmentError(host, "cancelled")

    def _run_query(self, context: ExecutionContext, query: LogQuery) -> List[CountRecord]:
        client: Optional[paramiko.SSHClient] = context.handle
        if client is None:
            raise RemoteQueryError(context.host, "session is not open")

        command = (
            "powershell -NoProfile -NonInteractive -ExecutionPolicy Bypass "
            f"-EncodedCommand {encode_command(build_count_script(query))}"
        )
        try:
            _stdin, stdout, stderr = client.exec_command(command, timeout=self.command_timeout)
            stdout_text = stdout.read().decode("utf-8", errors="replace")
            stderr_text = stderr.read().decode("utf-8", errors="replace")
            exit_code = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, socket.error, EOFError) as e:
            raise RemoteQueryError(context.host, f"SSH command failed: {e}") from e

        if context.cancelled.is_set():
            raise RemoteQueryError(context.host, "cancelled")
        if exit_code != 0:
            err = stderr_text.strip()[:500] or stdout_text.strip()[:500]
            raise RemoteQueryError(context.host, f"powershell returned {exit_code}: {err}")

        records = decode_counts(stdout_text, context.host)
        logger.debug(f"[{context.label}] {len(records)} event ID(s) counted")
        return records

    def _release(self, context: ExecutionContext) -> None:
        handle = context.handle
        if handle is None:
            return
        if isinstance(handle, socket.socket):
            # Still connecting; shutdown wakes the blocked worker
            try:
                handle.shutdown(socket.SHUT_RDWR)
            except OSError as e:
                logger.debug(f"[{context.label}] socket shutdown: {e}")
        handle.close()
        context.handle = None
