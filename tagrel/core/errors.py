"""Exit codes for the tagrel CLI.

Each pipeline failure class maps to one of these codes so that the caller
(usually a CI job) can tell a bad tag from a broken build from a refused upload.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Process exit codes. Values are stable.

    - 0: Success (including a ref that does not trigger the pipeline)
    - 1: User error (invalid ref, bad config, missing BIN_NAME)
    - 2: Environment error (git/rustup/gh missing, gh not authenticated)
    - 3: Build error (toolchain install failed, compile failed, no artifact)
    - 4: Network error (checkout or release upload failed)
    - 5: I/O error (work directory could not be prepared)
    - 6: Cancelled by a superseding run
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    CANCELLED = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")
