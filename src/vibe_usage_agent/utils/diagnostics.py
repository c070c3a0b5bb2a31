from typing import Optional
from pydantic import BaseModel

class AgentDiagnostic(BaseModel):
    """
    Standardized report object for problems the agent tolerates but should surface,
    such as a third-party config file that could not be parsed.
    """
    source: str
    error_code: str
    message: str
    severity: str = "warning" # 'info', 'warning', 'error'
    suggestion: Optional[str] = None
    file_path: Optional[str] = None

    def __str__(self) -> str:
        loc = f" (at {self.file_path})" if self.file_path else ""
        return f"[{self.error_code}] {self.source}: {self.message}{loc}"

class AgentError(Exception):
    """Base class for errors raised by the agent."""

class ProcessSpawnError(AgentError):
    """
    Raised when the child process could not be started at all,
    e.g. the runtime binary vanished between detection and invocation.
    """
    def __init__(self, executable_path: str, reason: str):
        self.executable_path = executable_path
        self.reason = reason
        super().__init__(f"Failed to start '{executable_path}': {reason}")

class ProcessTimeoutError(AgentError):
    """
    Raised when the child process outlived its time budget and was terminated.
    Carries whatever output was captured before termination.
    """
    def __init__(self, executable_path: str, timeout_seconds: float, stdout: str = "", stderr: str = ""):
        self.executable_path = executable_path
        self.timeout_seconds = timeout_seconds
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"'{executable_path}' timed out after {timeout_seconds:g}s")

class HookEditError(AgentError):
    """Raised by hook editors when a config document cannot be interpreted."""

class CLIBridgeError(AgentError):
    """Raised when a `vibe-usage` passthrough command fails."""
