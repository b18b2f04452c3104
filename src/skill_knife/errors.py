"""Error types shared across skill-knife services."""

from __future__ import annotations


class SkillKnifeError(Exception):
    """Base class for skill-knife errors."""

    pass


class ScanIOError(SkillKnifeError):
    """Filesystem error while scanning a skills directory.

    Raised internally and swallowed per directory; a scan never propagates it.
    """

    pass


class ParseError(SkillKnifeError):
    """Malformed frontmatter or metadata JSON. The affected field is treated as absent."""

    pass


class ValidationError(SkillKnifeError):
    """A single operation cannot run (missing project root, missing source bundle)."""

    pass


class MarketFetchError(SkillKnifeError):
    """A market catalog could not be fetched (git or network failure)."""

    def __init__(self, market: str, message: str) -> None:
        """Initialize the error.

        Args:
            market: Name or git reference of the failing market.
            message: Diagnostic text, usually stderr from git or the HTTP error.
        """
        super().__init__(f"{market}: {message}")
        self.market = market
        self.message = message


class SubprocessError(SkillKnifeError):
    """An external process exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stderr: str = "") -> None:
        """Initialize the error.

        Args:
            command: Full argument vector that was executed.
            returncode: Exit status of the child process.
            stderr: Captured diagnostic output.
        """
        detail = stderr.strip() or f"exit code {returncode}"
        super().__init__(f"Command failed with exit code {returncode}: {detail}")
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class OperationCancelled(SkillKnifeError):
    """The user cancelled a running operation."""

    pass
