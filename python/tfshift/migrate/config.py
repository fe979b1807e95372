"""
tfshift/migrate/config.py

Defines Pydantic models describing a migration before it runs:
 - StateMigratorConfig: one directory, a list of action specs.
 - MultiStateMigratorConfig: a pair of directories, a list of cross-state specs.

new_migrator() parses the specs and builds the migrator. Any malformed spec, or an
empty list, fails with ConfigInvalid before a single command is run.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from tfshift.errors import ConfigInvalid
from tfshift.migrate.actions import parse_state_action
from tfshift.migrate.multi_actions import parse_multi_state_action
from tfshift.migrate.multi_state_migrator import MultiStateMigrator
from tfshift.migrate.state_migrator import StateMigrator
from tfshift.models.option import MigratorOption
from tfshift.utils.terraform.cli import DEFAULT_WORKSPACE


def _check_workspace(value: str) -> str:
    if not value or any(x in value for x in ["/", "\n"]):
        raise ValueError("Workspace must be non-empty, without slash/newline.")
    return value


class StateMigratorConfig(BaseModel):
    """Config for a single-directory migration.

    Attributes:
        dir: Working directory, relative to the caller's cwd. Empty means ".".
        workspace: Terraform workspace. Defaults to "default".
        actions: Specs such as "mv a.b a.c", "rm a.b", "import a.b id".
        force: Accept a residual diff instead of failing.
        skip_plan: Skip the plan check entirely.
    """

    dir: str = ""
    workspace: str = DEFAULT_WORKSPACE
    actions: List[str] = Field(default_factory=list)
    force: bool = False
    skip_plan: bool = False

    @field_validator("workspace")
    @classmethod
    def validate_workspace(cls, value: str) -> str:
        """Check that `workspace` is a plausible workspace name."""
        return _check_workspace(value)

    def new_migrator(self, option: Optional[MigratorOption] = None) -> StateMigrator:
        """Parse the action specs and build a StateMigrator.

        Raises:
            ConfigInvalid: If there are no actions or any action is malformed.
        """
        if not self.actions:
            raise ConfigInvalid("failed to new migrator: actions must be specified")
        actions = [parse_state_action(spec) for spec in self.actions]
        return StateMigrator(
            self.dir or ".",
            workspace=self.workspace,
            actions=actions,
            option=option,
            force=self.force,
            skip_plan=self.skip_plan,
        )


class MultiStateMigratorConfig(BaseModel):
    """Config for moving resources between two directories.

    Attributes:
        from_dir: Directory the resources leave.
        to_dir: Directory the resources arrive in.
        from_workspace / to_workspace: Terraform workspaces. Default "default".
        actions: Specs such as "mv a.b a.c" (source in from_dir, destination in to_dir).
        force: Accept residual diffs instead of failing.
        skip_plan: Skip the plan checks and use the in-place fast path.
    """

    from_dir: str
    to_dir: str
    from_workspace: str = DEFAULT_WORKSPACE
    to_workspace: str = DEFAULT_WORKSPACE
    actions: List[str] = Field(default_factory=list)
    force: bool = False
    skip_plan: bool = False

    @field_validator("from_workspace", "to_workspace")
    @classmethod
    def validate_workspace(cls, value: str) -> str:
        """Check that each workspace is a plausible workspace name."""
        return _check_workspace(value)

    def new_migrator(self, option: Optional[MigratorOption] = None) -> MultiStateMigrator:
        """Parse the action specs and build a MultiStateMigrator.

        Raises:
            ConfigInvalid: If there are no actions or any action is malformed.
        """
        if not self.actions:
            raise ConfigInvalid("failed to new migrator: actions must be specified")
        actions = [parse_multi_state_action(spec) for spec in self.actions]
        return MultiStateMigrator(
            self.from_dir,
            self.to_dir,
            actions=actions,
            option=option,
            force=self.force,
            skip_plan=self.skip_plan,
            from_workspace=self.from_workspace,
            to_workspace=self.to_workspace,
        )
