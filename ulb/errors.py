"""Error taxonomy for ulb.

Every error carries a stable ``code`` string so the CLI (and any front end
parsing its output) can map failures without matching on messages.
"""

# Error code constants
CONFIG_ERROR = "config_error"
STAGE_ERROR = "stage_failed"
COPY_ERROR = "copy_failed"

# Longest stderr tail kept on a StageError
STDERR_EXCERPT_CHARS = 2000


class UlbError(Exception):
    """Base error for all ulb failures."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ConfigError(UlbError):
    """Raised when the build manifest or workspace inputs are invalid.

    Always raised before any sandbox operation is attempted.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, code=CONFIG_ERROR)


class SandboxError(UlbError):
    """Raised when the sandbox cannot be pulled, created or started."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(
            f"Sandbox {step} failed: {message}", code=f"sandbox_{step}_failed"
        )
        self.step = step


class StageError(UlbError):
    """Raised when a command run inside the sandbox exits non-zero."""

    def __init__(
        self,
        stage: str,
        command: str,
        stderr: str = "",
        exit_code: int | None = None,
        code: str = STAGE_ERROR,
    ) -> None:
        excerpt = excerpt_stderr(stderr)
        message = f"Command failed in {stage}: {command}"
        if exit_code is not None:
            message += f" (exit code {exit_code})"
        if excerpt:
            message += f"\n{excerpt}"
        super().__init__(message, code=code)
        self.stage = stage
        self.command = command
        self.stderr = excerpt
        self.exit_code = exit_code


class CopyError(StageError):
    """Raised when a file cannot be transferred into the sandbox."""

    def __init__(
        self,
        host_path: str,
        dest_path: str,
        stage: str,
        command: str,
        stderr: str = "",
        exit_code: int | None = None,
    ) -> None:
        super().__init__(
            stage, command, stderr=stderr, exit_code=exit_code, code=COPY_ERROR
        )
        self.host_path = host_path
        self.dest_path = dest_path


def excerpt_stderr(stderr: str, limit: int = STDERR_EXCERPT_CHARS) -> str:
    """Return the tail of captured stderr, trimmed for error messages."""
    text = stderr.strip()
    if len(text) <= limit:
        return text
    return "..." + text[-limit:]


__all__ = [
    "CONFIG_ERROR",
    "COPY_ERROR",
    "STAGE_ERROR",
    "ConfigError",
    "CopyError",
    "SandboxError",
    "StageError",
    "UlbError",
    "excerpt_stderr",
]
