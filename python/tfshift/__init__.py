"""
tfshift/__init__.py

Safe, verified migrations of Terraform state: rename, remove, import and move
resources, within one directory or between two.

Exports:
  - Migrators (StateMigrator, MultiStateMigrator) and their configs
  - Actions (StateMvAction, StateRmAction, StateImportAction, MultiStateMvAction)
  - MigratorOption, State
  - The error taxonomy from tfshift.errors
"""

from tfshift.errors import (
    AddressNotFound,
    CLIError,
    ConfigInvalid,
    MigrationError,
    PartialApply,
    PushFailed,
    RestoreFailed,
    StateImportError,
    UnexpectedDiff,
)
from tfshift.migrate.actions import (
    StateAction,
    StateImportAction,
    StateMvAction,
    StateRmAction,
    parse_state_action,
)
from tfshift.migrate.config import MultiStateMigratorConfig, StateMigratorConfig
from tfshift.migrate.multi_actions import (
    MultiStateAction,
    MultiStateMvAction,
    parse_multi_state_action,
)
from tfshift.migrate.multi_state_migrator import MultiStateMigrator
from tfshift.migrate.state_migrator import StateMigrator
from tfshift.models.option import MigratorOption
from tfshift.models.state import Plan, State

__all__ = [
    "AddressNotFound",
    "CLIError",
    "ConfigInvalid",
    "MigrationError",
    "PartialApply",
    "PushFailed",
    "RestoreFailed",
    "StateImportError",
    "UnexpectedDiff",
    "StateAction",
    "StateImportAction",
    "StateMvAction",
    "StateRmAction",
    "parse_state_action",
    "MultiStateMigratorConfig",
    "StateMigratorConfig",
    "MultiStateAction",
    "MultiStateMvAction",
    "parse_multi_state_action",
    "MultiStateMigrator",
    "StateMigrator",
    "MigratorOption",
    "Plan",
    "State",
]
