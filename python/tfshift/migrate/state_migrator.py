"""
tfshift/migrate/state_migrator.py

Implements the single-directory migration protocol:

  plan():  pull -> override backend to local -> apply actions -> plan check
           -> restore backend (always). Never pushes to the remote backend.
  apply(): the full plan() protocol again, then push the new state to remote.

Each run re-pulls and re-transforms; plan() and apply() share nothing but the
migrator's configuration.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from typing import List, Optional, Sequence

from tfshift.migrate.actions import StateAction, apply_state_action
from tfshift.migrate.common import MigratorStatus, commit, phase, prepare, verify
from tfshift.models.option import MigratorOption
from tfshift.models.state import State
from tfshift.utils.terraform.cli import DEFAULT_WORKSPACE, TerraformCLI
from tfshift.utils.terraform.commands import SubprocessTerraformCLI
from tfshift.utils.terraform.ephemeral import local_backend_override

logger = logging.getLogger(__name__)


class StateMigrator:
    """Migrates the state of one directory/workspace with a list of StateActions.

    Example:
        m = StateMigrator("envs/prod", actions=[StateMvAction(source="a.b", destination="a.c")])
        await m.plan()
        await m.apply()
    """

    def __init__(
        self,
        dir: str,
        workspace: str = DEFAULT_WORKSPACE,
        actions: Sequence[StateAction] = (),
        option: Optional[MigratorOption] = None,
        force: bool = False,
        skip_plan: bool = False,
        tf: Optional[TerraformCLI] = None,
    ) -> None:
        """
        Args:
            dir (str): The Terraform working directory. Ignored when `tf` is given;
                `tf.dir` is used instead.
            workspace (str): The workspace to migrate.
            actions (Sequence[StateAction]): Applied strictly in order.
            option (Optional[MigratorOption]): Shared options; read from env if None.
            force (bool): Accept a residual diff instead of failing.
            skip_plan (bool): Trust the transform and skip the plan check entirely.
            tf (Optional[TerraformCLI]): CLI to use; a SubprocessTerraformCLI by default.
        """
        self.option = option if option is not None else MigratorOption()
        self.tf = tf if tf is not None else SubprocessTerraformCLI(dir, self.option.exec_path)
        self.workspace = workspace
        self.actions: List[StateAction] = list(actions)
        self.force = force
        self.skip_plan = skip_plan
        self.status = MigratorStatus.created

    async def _plan(self) -> State:
        """Run the shared pull/transform/verify protocol and return the new state."""
        current_state = await prepare(self.tf, self.workspace)

        async with AsyncExitStack() as stack:
            if self.skip_plan:
                logger.info("[migrator@%s] skip overriding backend", self.tf.dir)
            else:
                with phase("verify"):
                    await stack.enter_async_context(
                        local_backend_override(
                            self.tf, self.workspace, self.option.backend_config
                        )
                    )

            with phase("transform"):
                for action in self.actions:
                    current_state = await apply_state_action(action, self.tf, current_state)

            if self.skip_plan:
                logger.warning(
                    "[migrator@%s] skip plan, the new state is not verified", self.tf.dir
                )
            else:
                await verify(self.tf, current_state, self.option, self.force)

        return current_state

    async def plan(self) -> None:
        """Compute the new state and check it, without changing the remote backend."""
        logger.info("[migrator@%s] start state migrator plan", self.tf.dir)
        try:
            await self._plan()
        except BaseException:
            self.status = MigratorStatus.failed
            raise
        self.status = MigratorStatus.planned
        logger.info("[migrator@%s] state migrator plan success!", self.tf.dir)

    async def apply(self) -> None:
        """Compute and check the new state again, then push it to the remote backend."""
        logger.info("[migrator@%s] start state migrator plan phase for apply", self.tf.dir)
        try:
            new_state = await self._plan()
            logger.info("[migrator@%s] start state migrator apply phase", self.tf.dir)
            await commit(self.tf, new_state, force=self.force)
        except BaseException:
            self.status = MigratorStatus.failed
            raise
        self.status = MigratorStatus.applied
        logger.info("[migrator@%s] state migrator apply success!", self.tf.dir)
