"""Error types raised by apass operations."""

from typing import Optional, Sequence


class ApassError(RuntimeError):
    """Base class for every apass failure."""


class PasswordRequired(ApassError):
    """No master password was supplied or entered."""

    def __init__(self, message: str = "Password is required"):
        super().__init__(message)


class AuthenticationFailed(ApassError):
    """The master password does not match the vault."""

    def __init__(self, message: str = "Password is wrong!"):
        super().__init__(message)


class RemoteRequired(ApassError):
    """No remote repository was supplied or entered."""

    def __init__(self, message: str = "Remote is required"):
        super().__init__(message)


class KeyNotFound(ApassError, KeyError):
    """A key to delete is not present in the vault."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Key not found: {key}")

    def __str__(self):
        return self.args[0]


class StoreError(ApassError):
    """The secret file could not be read or written."""


class DecryptionError(StoreError):
    """The secret file could not be opened with the given password."""


class SyncFailure(ApassError):
    """An external version-control command failed."""

    def __init__(
        self,
        command: str,
        args: Sequence[str],
        returncode: Optional[int],
        output: str = ""
    ):
        self.command = command
        self.arguments = list(args)
        self.returncode = returncode
        self.output = output
        line = " ".join([command, *self.arguments])
        message = f"Command failed ({returncode}): {line}"
        if output:
            message = f"{message}\n{output.strip()}"
        super().__init__(message)
