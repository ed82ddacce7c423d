# services/pprof_cli.py
import re
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
from ..utils.config import get_settings
from ..utils.logger import get_logger

# Shell metacharacters stripped from every argument
_RX_UNSAFE = re.compile(r"[;&|\"'`$(){}\[\]<>]")

GRAPHVIZ_MISSING = "Graphviz not installed. Cannot generate flamegraph."


class CommandNotAllowedError(Exception):
    """Raised when a command is not on the allow-list."""
    def __init__(self, command: str):
        self.command = command
        super().__init__(f"Command not allowed: {command}")


@dataclass
class CommandResult:
    output: bytes
    exit_code: Optional[int]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def sanitize_argument(arg: str) -> str:
    return _RX_UNSAFE.sub("", arg)


class PprofCli:
    """Runs allow-listed pprof-related binaries and captures their output."""

    def __init__(self, allowed_commands: Optional[Sequence[str]] = None):
        self.settings = get_settings()
        if allowed_commands is None:
            allowed_commands = self.settings.allowed_commands
        # an empty list allows nothing
        self.allowed_commands = list(allowed_commands)
        self.log = get_logger("PprofCli")

    def sanitize_command(self, command: str) -> str:
        parts = command.split()
        base = parts[0] if parts else ""
        if base not in self.allowed_commands:
            self.log.warning(f"Rejected command: {base!r}")
            raise CommandNotAllowedError(base)
        return base

    def run_command(self, command: str, args: Optional[List[str]] = None) -> CommandResult:
        """Run `command args...` without a shell.

        Raises:
            CommandNotAllowedError: when the command is not allow-listed.
        """
        cmd = [self.sanitize_command(command)] + [sanitize_argument(a) for a in (args or [])]
        timeout = self.settings.command_timeout_sec
        self.log.info(f"Running command: {' '.join(shlex.quote(c) for c in cmd)}")

        try:
            proc = subprocess.run(cmd, capture_output=True, timeout=timeout)
        except subprocess.TimeoutExpired:
            error_msg = f"Command timed out after {timeout}s"
            self.log.error(error_msg)
            return CommandResult(output=b"", exit_code=1, error=error_msg)
        except OSError as e:
            self.log.error(f"Failed to start {cmd[0]}: {e}")
            return CommandResult(output=b"", exit_code=1, error=str(e))

        stderr = proc.stderr.decode("utf-8", errors="replace")
        self.log.info(f"Command exited with {proc.returncode}, {len(proc.stdout)} bytes of output")
        if stderr:
            self.log.info(f"stderr: {stderr!r}")
        return CommandResult(output=proc.stdout, exit_code=proc.returncode, error=stderr or None)

    def check_tools(self) -> Dict[str, bool]:
        result = {"go": False, "pprof": False}
        go = shutil.which(self.settings.go_binary)
        if not go:
            return result
        try:
            version = subprocess.run([go, "version"], capture_output=True, text=True, timeout=10)
            result["go"] = "go" in version.stdout.lower()
            if result["go"]:
                # pprof prints its usage on stderr and exits non-zero
                help_ = subprocess.run([go, "tool", "pprof", "-help"], capture_output=True, text=True, timeout=10)
                result["pprof"] = "usage" in (help_.stdout + help_.stderr).lower()
        except (subprocess.TimeoutExpired, OSError) as e:
            self.log.warning(f"Tool check failed: {e}")
        self.log.info(f"Tool check: {result}")
        return result

    def fetch_remote_profile(self, url: str, duration: int = 30) -> CommandResult:
        # -proto writes the capture to stdout instead of opening the interactive shell
        return self.run_command("go", ["tool", "pprof", "-proto", "-seconds", str(duration), url])

    def generate_flamegraph(self, profile_path: str) -> CommandResult:
        if not shutil.which("dot"):
            self.log.warning(GRAPHVIZ_MISSING)
            return CommandResult(output=GRAPHVIZ_MISSING.encode(), exit_code=1, error=GRAPHVIZ_MISSING)
        return self.run_command("go", ["tool", "pprof", "-svg", str(profile_path)])
