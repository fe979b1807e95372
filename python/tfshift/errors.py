"""
tfshift/errors.py

Error taxonomy for state migrations. Every error carries the phase that produced
it (config, pull, transform, verify, push, restore) so an operator can tell how far
a run got before it failed. Lower-level Terraform diagnostics are always kept
verbatim in the message.
"""

from __future__ import annotations

from typing import Optional


class MigrationError(Exception):
    """Base class for all tfshift errors.

    Attributes:
        message (str): Human readable description, including any CLI diagnostic.
        phase (Optional[str]): The migration phase that produced the error.
    """

    default_phase: Optional[str] = None

    def __init__(self, message: str, phase: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.phase = phase or self.default_phase

    def __str__(self) -> str:
        if self.phase:
            return f"{self.phase}: {self.message}"
        return self.message


class ConfigInvalid(MigrationError):
    """A migration config or action spec is malformed. Raised before any remote call."""

    default_phase = "config"


class CLIError(MigrationError):
    """A Terraform command exited with a failing return code.

    Attributes:
        return_code (Optional[int]): The exit code, if the process ran at all.
        stderr (str): The raw diagnostic text written by Terraform.
    """

    def __init__(
        self,
        message: str,
        return_code: Optional[int] = None,
        stderr: str = "",
        phase: Optional[str] = None,
    ) -> None:
        super().__init__(message, phase)
        self.return_code = return_code
        self.stderr = stderr


class AddressNotFound(MigrationError):
    """A primitive referenced an address that is absent (or a destination that is taken)."""

    default_phase = "transform"


class StateImportError(MigrationError):
    """An import could not attach the external resource to the requested address."""

    default_phase = "transform"


class UnexpectedDiff(MigrationError):
    """The plan check reported changes and neither force nor skip_plan allowed them."""

    default_phase = "verify"


class PushFailed(MigrationError):
    """Committing the transformed state to the remote backend failed."""

    default_phase = "push"


class RestoreFailed(MigrationError):
    """Switching a directory back to its remote backend failed.

    The directory is left pointing at a local override and needs manual attention.

    Attributes:
        primary (Optional[BaseException]): The error the run had already hit, if any.
    """

    default_phase = "restore"

    def __init__(
        self,
        message: str,
        primary: Optional[BaseException] = None,
        phase: Optional[str] = None,
    ) -> None:
        if primary is not None:
            message = f"{message}\nwhile handling an earlier error: {primary}"
        super().__init__(message, phase)
        self.primary = primary


class PartialApply(MigrationError):
    """A two-directory run committed one side only.

    Attributes:
        committed_dir (str): The directory whose new state was pushed.
        failed_dir (str): The directory whose push failed.
        cause (BaseException): The push error on the failed side.
    """

    default_phase = "push"

    def __init__(self, committed_dir: str, failed_dir: str, cause: BaseException) -> None:
        super().__init__(
            f"state was pushed in {committed_dir} but not in {failed_dir}; "
            f"reconcile {failed_dir} manually: {cause}"
        )
        self.committed_dir = committed_dir
        self.failed_dir = failed_dir
        self.cause = cause
