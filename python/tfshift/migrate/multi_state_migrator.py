"""
tfshift/migrate/multi_state_migrator.py

Implements the two-directory migration protocol. Both directories are pulled, the
MultiStateActions thread both states through each move, each directory is checked
against its own configuration, and both backends are restored unconditionally.

apply() pushes the "to" directory first: if the process dies between the two
pushes, a moved resource is tracked twice rather than lost. A failed second push
is reported as PartialApply and never rolled back. Once the first push starts,
both pushes run to completion even if the caller is cancelled.

Both directories must differ: two workspaces of one directory cannot be
selected at the same time.

With skip_plan the fast path is used: both states are pulled into ephemeral files
and every move mutates those files in place.
"""

from __future__ import annotations

import os
import logging
from contextlib import AsyncExitStack
from typing import List, Optional, Sequence, Tuple

from tfshift.errors import ConfigInvalid, PartialApply, UnexpectedDiff
from tfshift.migrate.common import (
    MigratorStatus,
    commit,
    has_unexpected_diff,
    phase,
    prepare,
    save_plan,
)
from tfshift.migrate.multi_actions import (
    MultiStateAction,
    apply_multi_state_action,
    fast_apply_multi_state_action,
)
from tfshift.models.option import MigratorOption
from tfshift.models.state import State
from tfshift.utils.async_command_runner import run_to_completion
from tfshift.utils.ephemeral_file import ephemeral_manager
from tfshift.utils.terraform.cli import DEFAULT_WORKSPACE, TerraformCLI
from tfshift.utils.terraform.commands import SubprocessTerraformCLI
from tfshift.utils.terraform.ephemeral import (
    local_backend_override,
    read_state_file,
    write_state_file,
)

logger = logging.getLogger(__name__)


def same_dir(a: str, b: str) -> bool:
    """True if two directory references resolve to the same path."""
    return os.path.realpath(a or ".") == os.path.realpath(b or ".")


class MultiStateMigrator:
    """Moves resources between two directories with a list of MultiStateActions.

    Example:
        m = MultiStateMigrator(
            "envs/old", "envs/new",
            actions=[MultiStateMvAction(source="aws_s3_bucket.a", destination="aws_s3_bucket.a")],
        )
        await m.plan()
        await m.apply()
    """

    def __init__(
        self,
        from_dir: str,
        to_dir: str,
        actions: Sequence[MultiStateAction] = (),
        option: Optional[MigratorOption] = None,
        force: bool = False,
        skip_plan: bool = False,
        from_workspace: str = DEFAULT_WORKSPACE,
        to_workspace: str = DEFAULT_WORKSPACE,
        from_tf: Optional[TerraformCLI] = None,
        to_tf: Optional[TerraformCLI] = None,
    ) -> None:
        self.option = option if option is not None else MigratorOption()
        self.from_tf = (
            from_tf if from_tf is not None else SubprocessTerraformCLI(from_dir, self.option.exec_path)
        )
        self.to_tf = to_tf if to_tf is not None else SubprocessTerraformCLI(to_dir, self.option.exec_path)
        # Workspaces of one directory share its .terraform/environment selection.
        if same_dir(self.from_tf.dir, self.to_tf.dir):
            raise ConfigInvalid(
                f"from_dir and to_dir must be different directories: {self.from_tf.dir}"
            )
        self.from_workspace = from_workspace
        self.to_workspace = to_workspace
        self.actions: List[MultiStateAction] = list(actions)
        self.force = force
        self.skip_plan = skip_plan
        self.status = MigratorStatus.created

    async def _prepare(self) -> Tuple[State, State]:
        from_state = await prepare(self.from_tf, self.from_workspace)
        to_state = await prepare(self.to_tf, self.to_workspace)
        return from_state, to_state

    async def _plan(self) -> Tuple[State, State]:
        """Run the shared pull/transform/verify protocol and return (from, to) states."""
        if self.skip_plan:
            return await self._fast_plan()

        from_state, to_state = await self._prepare()

        # Exiting the stack restores "to" first, then "from"; errors are merged.
        async with AsyncExitStack() as stack:
            with phase("verify"):
                await stack.enter_async_context(
                    local_backend_override(
                        self.from_tf, self.from_workspace, self.option.backend_config
                    )
                )
                await stack.enter_async_context(
                    local_backend_override(
                        self.to_tf, self.to_workspace, self.option.backend_config
                    )
                )

            with phase("transform"):
                for action in self.actions:
                    from_state, to_state = await apply_multi_state_action(
                        action, self.from_tf, self.to_tf, from_state, to_state
                    )

            await self._verify(from_state, to_state)

        return from_state, to_state

    async def _verify(self, from_state: State, to_state: State) -> None:
        """Both directories must plan no changes, unless force is set."""
        changed = [
            tf
            for tf, state in ((self.from_tf, from_state), (self.to_tf, to_state))
            if await has_unexpected_diff(tf, state, self.option)
        ]
        if not changed:
            return
        dirs = ", ".join(tf.dir for tf in changed)
        if not self.force:
            logger.error("[migrator@%s] unexpected diffs in %s", self.from_tf.dir, dirs)
            raise UnexpectedDiff(f"terraform plan command returns unexpected diffs in {dirs}")
        logger.warning(
            "[migrator@%s] unexpected diffs in %s, ignoring as force option is true",
            self.from_tf.dir,
            dirs,
        )
        if self.option.plan_out:
            for tf in changed:
                await save_plan(tf, self.option)

    async def _fast_plan(self) -> Tuple[State, State]:
        """Apply every move to file-resident copies of both states, without a plan check."""
        logger.warning(
            "[migrator@%s] skip plan, moving resources in place without verification",
            self.from_tf.dir,
        )
        from_state, to_state = await self._prepare()
        async with ephemeral_manager(file_names=["from.tfstate", "to.tfstate"]) as paths:
            assert isinstance(paths, dict)
            with phase("transform"):
                await write_state_file(paths["from.tfstate"], from_state)
                await write_state_file(paths["to.tfstate"], to_state)
                for action in self.actions:
                    await fast_apply_multi_state_action(
                        action,
                        self.from_tf,
                        self.to_tf,
                        paths["from.tfstate"],
                        paths["to.tfstate"],
                    )
                return await read_state_file(paths["from.tfstate"]), await read_state_file(
                    paths["to.tfstate"]
                )

    async def _commit_both(self, from_state: State, to_state: State) -> None:
        """Push "to", then "from". A failure after the first push is a PartialApply."""
        await commit(self.to_tf, to_state, force=self.force)
        try:
            await commit(self.from_tf, from_state, force=self.force)
        except Exception as exc:
            logger.error(
                "[migrator@%s] partial apply: %s committed, %s not committed",
                self.from_tf.dir,
                self.to_tf.dir,
                self.from_tf.dir,
            )
            raise PartialApply(self.to_tf.dir, self.from_tf.dir, exc) from exc

    async def plan(self) -> None:
        """Compute both new states and check them, without changing either remote backend."""
        logger.info("[migrator@%s] start multi state migrator plan", self.from_tf.dir)
        try:
            await self._plan()
        except BaseException:
            self.status = MigratorStatus.failed
            raise
        self.status = MigratorStatus.planned
        logger.info("[migrator@%s] multi state migrator plan success!", self.from_tf.dir)

    async def apply(self) -> None:
        """Compute and check both states again, then push "to" and "from" in that order."""
        logger.info(
            "[migrator@%s] start multi state migrator plan phase for apply", self.from_tf.dir
        )
        try:
            from_state, to_state = await self._plan()
            logger.info("[migrator@%s] start multi state migrator apply phase", self.from_tf.dir)
            # Once the "to" push starts, both pushes run even if we are cancelled.
            await run_to_completion(self._commit_both(from_state, to_state))
        except BaseException:
            self.status = MigratorStatus.failed
            raise
        self.status = MigratorStatus.applied
        logger.info("[migrator@%s] multi state migrator apply success!", self.from_tf.dir)
