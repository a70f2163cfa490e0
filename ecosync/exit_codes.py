"""
Standard exit codes for ecosync commands.

0-5 are the orchestrator's documented codes; 130 follows the POSIX
convention for termination by Ctrl+C.
"""

SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
INVALID_BRANCH = 2       # Invalid branch name or command usage
SYNC_ISSUE = 3           # Repositories out of sync / partial failure
MERGE_CONFLICT = 4       # Merge or rebase stopped on a conflict
PROTECTED_BRANCH = 5     # Refused operation on a protected branch
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT) or SIGTERM

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': GENERAL_ERROR,
    'PermissionError': GENERAL_ERROR,
    'TimeoutError': GENERAL_ERROR,
    'ValueError': INVALID_BRANCH,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: BaseException) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, CommandError):
        return exc.exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class ConfigError(CommandError):
    """Raised when the ecosystem configuration cannot be used."""
    def __init__(self, message: str):
        super().__init__(message, GENERAL_ERROR)


class InvalidBranchError(CommandError):
    """Raised for a branch name outside the allowed prefixes."""
    def __init__(self, message: str):
        super().__init__(message, INVALID_BRANCH)


class InvalidDomainError(CommandError):
    """Raised when a domain is not part of the discovered ecosystem."""
    def __init__(self, message: str):
        super().__init__(message, GENERAL_ERROR)


class ProtectedBranchError(CommandError):
    """Raised when an operation would rewrite or delete a protected branch."""
    def __init__(self, message: str):
        super().__init__(message, PROTECTED_BRANCH)


class SyncIssueError(CommandError):
    """Raised when repositories are not in the state an operation requires."""
    def __init__(self, message: str):
        super().__init__(message, SYNC_ISSUE)


class MergeConflictError(CommandError):
    """Raised when a merge or rebase stops for manual resolution."""
    def __init__(self, message: str):
        super().__init__(message, MERGE_CONFLICT)


class LockTimeoutError(CommandError):
    """Raised when the registry lock could not be acquired in time."""
    def __init__(self, message: str):
        super().__init__(message, GENERAL_ERROR)


class AlreadyRunningError(CommandError):
    """Raised when a domain already has a live port allocation."""
    def __init__(self, message: str):
        super().__init__(message, GENERAL_ERROR)


class NoPortsAvailableError(CommandError):
    """Raised when the bounded port search finds nothing free."""
    def __init__(self, message: str = "No available ports found"):
        super().__init__(message, GENERAL_ERROR)


class PartialFailureError(CommandError):
    """Raised when some repositories succeeded and some failed."""
    def __init__(self, message: str, succeeded: int = 0, failed: int = 0):
        super().__init__(message, SYNC_ISSUE)
        self.succeeded = succeeded
        self.failed = failed
