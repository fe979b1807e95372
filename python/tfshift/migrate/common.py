"""
tfshift/migrate/common.py

Steps shared by the single- and multi-directory migrators:

 - prepare:  init, select workspace, pull the remote state (phase "pull").
 - verify:   push the transformed state to the local override and ask Terraform
             whether the configuration still plans any change (phase "verify").
 - commit:   push the transformed state to the remote backend (phase "push").

Each step tags escaping MigrationErrors with its phase name.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator

from tfshift.errors import CLIError, MigrationError, PushFailed, UnexpectedDiff
from tfshift.models.option import MigratorOption
from tfshift.models.state import State
from tfshift.utils.async_command_runner import run_to_completion
from tfshift.utils.terraform.cli import DEFAULT_WORKSPACE, TerraformCLI

logger = logging.getLogger(__name__)


class MigratorStatus(str, Enum):
    created = "created"
    planned = "planned"
    applied = "applied"
    failed = "failed"


@contextmanager
def phase(name: str) -> Iterator[None]:
    """Label any MigrationError escaping the block that has no phase yet."""
    try:
        yield
    except MigrationError as exc:
        if exc.phase is None:
            exc.phase = name
        raise


async def prepare(tf: TerraformCLI, workspace: str) -> State:
    """Initialize the directory, select the workspace and pull the current state."""
    with phase("pull"):
        logger.info("[migrator@%s] check if terraform init is needed", tf.dir)
        await tf.init()
        if workspace != DEFAULT_WORKSPACE:
            logger.info("[migrator@%s] switch to workspace %s", tf.dir, workspace)
            await tf.workspace_select(workspace)
        logger.info("[migrator@%s] get the current remote state", tf.dir)
        return await tf.state_pull()


async def has_unexpected_diff(tf: TerraformCLI, state: State, option: MigratorOption) -> bool:
    """Push `state` to the (overridden, local) backend and run a plan check on it."""
    with phase("verify"):
        logger.info("[migrator@%s] push the new state to local", tf.dir)
        await tf.state_push(state, force=True)
        logger.info("[migrator@%s] check diffs", tf.dir)
        return await tf.plan_has_change(variables=option.variables, opts=option.plan_args)


async def verify(tf: TerraformCLI, state: State, option: MigratorOption, force: bool) -> None:
    """
    Fail with UnexpectedDiff if the transformed state still plans changes.

    With `force`, a diff is tolerated: a warning is logged and, if `plan_out` is set,
    the plan is saved under the directory for out-of-band inspection or application.
    """
    if not await has_unexpected_diff(tf, state, option):
        return
    accept_diff(tf, option, force)
    if option.plan_out:
        await save_plan(tf, option)


def accept_diff(tf: TerraformCLI, option: MigratorOption, force: bool) -> None:
    """Raise UnexpectedDiff for a reported diff, unless `force` is set."""
    if not force:
        logger.error("[migrator@%s] unexpected diffs", tf.dir)
        raise UnexpectedDiff(f"terraform plan command returns unexpected diffs in {tf.dir}")
    logger.warning("[migrator@%s] unexpected diffs, ignoring as force option is true", tf.dir)


async def save_plan(tf: TerraformCLI, option: MigratorOption) -> None:
    with phase("verify"):
        logger.info("[migrator@%s] save the plan to %s", tf.dir, option.plan_out)
        await tf.plan(out=option.plan_out, variables=option.variables, opts=option.plan_args)


async def commit(tf: TerraformCLI, state: State, force: bool) -> None:
    """Push `state` to the remote backend. Not interruptible once issued."""
    logger.info("[migrator@%s] push the new state to remote", tf.dir)
    try:
        await run_to_completion(tf.state_push(state, force=force))
    except CLIError as exc:
        raise PushFailed(f"failed to push the new state in {tf.dir}: {exc}") from exc
