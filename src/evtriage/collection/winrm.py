"""
WinRM transport: PowerShell remoting driven by a local powershell.exe.

Session establishment is an authenticated Test-WSMan probe; the query itself
runs through Invoke-Command. Every unit of work gets its own PowerShell
process, which is killed when the context is released.
"""

import logging
import subprocess
from typing import List, Optional

from ..errors import RemoteQueryError, SessionEstablishmentError
from ..hosts.resolver import LOCAL_MARKERS
from .client import BlockingLogClient, ExecutionContext
from .models import CountRecord, LogQuery
from .powershell import build_count_script, decode_counts, is_safe_host, powershell_args, quote

logger = logging.getLogger(__name__)


def _trim(text: str, limit: int = 500) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class WinRMLogClient(BlockingLogClient):
    """
    Remote log client using PowerShell remoting (WS-Management).

    Authentication is whatever the local PowerShell session negotiates
    (Kerberos/Negotiate with the current user's credentials).
    """

    name = "winrm"

    def __init__(
        self,
        powershell_exe: str = "powershell",
        connect_timeout: float = 30.0,
        query_timeout: Optional[float] = None,
    ):
        """
        Initialize WinRM client.

        Args:
            powershell_exe: Local PowerShell executable
            connect_timeout: Timeout for the session probe in seconds
            query_timeout: Hard limit per query process (None = rely on the
                coordinator timeout)
        """
        self.powershell_exe = powershell_exe
        self.connect_timeout = connect_timeout
        self.query_timeout = query_timeout

    def _is_local(self, host: str) -> bool:
        return host.lower() in LOCAL_MARKERS

    def _run(self, context: ExecutionContext, script: str, timeout: Optional[float]) -> subprocess.CompletedProcess:
        """Run a script in a local PowerShell process owned by the context."""
        if context.cancelled.is_set():
            raise RuntimeError("cancelled")

        proc = subprocess.Popen(
            powershell_args(script, self.powershell_exe),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="ignore",
        )
        context.handle = proc
        if context.cancelled.is_set():
            # Released between the first check and Popen
            proc.kill()
            proc.communicate()
            context.handle = None
            raise RuntimeError("cancelled")
        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()
            raise RuntimeError(f"powershell did not finish within {timeout}s")
        finally:
            context.handle = None

        if context.cancelled.is_set():
            raise RuntimeError("cancelled")
        return subprocess.CompletedProcess(proc.args, proc.returncode, stdout, stderr)

    def _establish(self, context: ExecutionContext) -> None:
        host = context.host
        if not is_safe_host(host):
            raise SessionEstablishmentError(host, "host name contains unsupported characters")
        if self._is_local(host):
            return

        script = (
            "$ErrorActionPreference = 'Stop'; "
            f"Test-WSMan -ComputerName {quote(host)} -Authentication Default | Out-Null"
        )
        try:
            result = self._run(context, script, self.connect_timeout)
        except (OSError, RuntimeError) as e:
            raise SessionEstablishmentError(host, f"powershell execution failed: {e}") from e

        if result.returncode != 0:
            err = _trim(result.stderr) or _trim(result.stdout)
            raise SessionEstablishmentError(host, f"WS-Management probe returned {result.returncode}: {err}")

    def _run_query(self, context: ExecutionContext, query: LogQuery) -> List[CountRecord]:
        host = context.host
        script = build_count_script(query)
        if not self._is_local(host):
            script = (
                f"Invoke-Command -ComputerName {quote(host)} -ErrorAction Stop "
                f"-ScriptBlock {{ {script} }}"
            )

        try:
            result = self._run(context, script, self.query_timeout)
        except (OSError, RuntimeError) as e:
            raise RemoteQueryError(host, f"powershell execution failed: {e}") from e

        if result.returncode != 0:
            err = _trim(result.stderr) or _trim(result.stdout)
            raise RemoteQueryError(host, f"powershell returned {result.returncode}: {err}")

        records = decode_counts(result.stdout, host)
        logger.debug(f"[{context.label}] {len(records)} event ID(s) counted")
        return records

    def _release(self, context: ExecutionContext) -> None:
        proc = context.handle
        if proc is not None and proc.poll() is None:
            logger.debug(f"[{context.label}] killing pending powershell process {proc.pid}")
            proc.kill()
