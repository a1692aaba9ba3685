"""
Transport selection.
"""

from typing import Optional

from ..core.config import TransportConfig
from .client import RemoteLogClient
from .ssh import SSHLogClient
from .winrm import WinRMLogClient


def create_log_client(
    kind: Optional[str] = None,
    config: Optional[TransportConfig] = None,
    ssh_user: Optional[str] = None,
    ssh_password: Optional[str] = None,
) -> RemoteLogClient:
    """
    Factory function to create a RemoteLogClient.

    Args:
        kind: "winrm" or "ssh" (defaults to config.kind)
        config: Transport configuration (defaults to environment settings)
        ssh_user: Overrides config.ssh_user
        ssh_password: Overrides config.ssh_password

    Returns:
        Configured transport

    Raises:
        ValueError: If kind is unknown
    """
    config = config or TransportConfig()
    kind = (kind or config.kind).lower()

    if kind == "winrm":
        return WinRMLogClient(
            powershell_exe=config.powershell_exe,
            connect_timeout=config.connect_timeout,
            query_timeout=config.query_timeout,
        )
    if kind == "ssh":
        return SSHLogClient(
            username=ssh_user or config.ssh_user,
            port=config.ssh_port,
            key_filename=config.ssh_key_file,
            password=ssh_password or config.ssh_password,
            ssh_config=config.ssh_config,
            connect_timeout=config.connect_timeout,
            command_timeout=config.query_timeout,
        )
    raise ValueError(f"Unknown transport: {kind}")
