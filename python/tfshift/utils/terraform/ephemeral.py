"""
tfshift/utils/terraform/ephemeral.py

Ephemeral usage around Terraform commands:

  - local_backend_override: points a directory at a local backend for the duration
    of a block (so a transformed state can be pushed locally and planned against),
    then switches it back to the remote backend on every exit path.
  - maybe_tfvars: writes variables to an ephemeral .auto.tfvars.json for plan/import.
  - read_state_file / write_state_file: move State values in and out of the
    ephemeral files Terraform reads and writes.
"""

from __future__ import annotations

import os
import json
import logging
import aiofiles
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional, Sequence

from tfshift.errors import RestoreFailed
from tfshift.models.state import State
from tfshift.utils.async_command_runner import run_to_completion
from tfshift.utils.ephemeral_file import ephemeral_manager
from tfshift.utils.terraform.cli import DEFAULT_WORKSPACE, TerraformCLI

logger = logging.getLogger(__name__)

OVERRIDE_FILE_NAME = "_tfshift_override.tf"

_LOCAL_BACKEND_OVERRIDE = """terraform {
  backend "local" {
  }
}
"""


async def write_state_file(path: str, state: State) -> None:
    """Write a State to `path`. An empty State leaves no file, which Terraform reads as empty."""
    if not state.raw:
        return
    async with aiofiles.open(path, "wb") as f:
        await f.write(state.raw)


async def read_state_file(path: str) -> State:
    """Read a State back from `path`; a missing file is an empty State."""
    try:
        async with aiofiles.open(path, "rb") as f:
            return State(await f.read())
    except FileNotFoundError:
        return State.empty()


async def _switch_back_to_remote(
    tf: TerraformCLI,
    override_path: str,
    backend_config: Sequence[str],
) -> None:
    """Remove the override file and re-initialize against the remote backend."""
    if os.path.exists(override_path):
        os.remove(override_path)
    await tf.init(reconfigure=True, backend_config=backend_config)


async def _restore_or_merge(
    tf: TerraformCLI,
    override_path: str,
    backend_config: Sequence[str],
    primary: Optional[BaseException],
) -> None:
    """
    Run the backend restoration to completion. On failure raise RestoreFailed,
    which carries `primary` (if any) so neither error masks the other.
    """
    logger.info("[migrator@%s] switch back to remote backend", tf.dir)
    try:
        await run_to_completion(_switch_back_to_remote(tf, override_path, backend_config))
    except Exception as exc:
        logger.error("[migrator@%s] failed to switch back to remote backend: %s", tf.dir, exc)
        raise RestoreFailed(
            f"failed to switch back to remote backend in {tf.dir}: {exc}", primary=primary
        ) from exc


@asynccontextmanager
async def local_backend_override(
    tf: TerraformCLI,
    workspace: str = DEFAULT_WORKSPACE,
    backend_config: Sequence[str] = (),
) -> AsyncGenerator[None, None]:
    """
    Asynchronous context manager that overrides the directory's backend to local.

    Steps:
      1) Write an override file declaring a local backend into tf.dir.
      2) `terraform init -reconfigure`, and create the workspace locally if needed.
      3) Yield control for local pushes and plan checks.
      4) Always: remove the override file and `terraform init -reconfigure` with
         `backend_config` against the original backend.

    If step 4 fails, RestoreFailed is raised and carries whatever error the block
    raised, instead of letting one mask the other.

    Args:
        tf (TerraformCLI):
            The CLI bound to the directory to override.
        workspace (str):
            The workspace the migration runs in.
        backend_config (Sequence[str]):
            -backend-config values needed to re-initialize the remote backend.

    Yields:
        None
    """
    override_path = os.path.join(tf.dir, OVERRIDE_FILE_NAME)
    logger.info("[migrator@%s] override backend to local", tf.dir)
    async with aiofiles.open(override_path, "w") as f:
        await f.write(_LOCAL_BACKEND_OVERRIDE)

    try:
        await tf.init(reconfigure=True)
        if workspace != DEFAULT_WORKSPACE:
            await tf.workspace_new(workspace)
        yield
    except BaseException as exc:
        await _restore_or_merge(tf, override_path, backend_config, primary=exc)
        raise
    else:
        await _restore_or_merge(tf, override_path, backend_config, primary=None)


@asynccontextmanager
async def maybe_tfvars(
    action: str, variables: Optional[Dict[str, Any]]
) -> AsyncGenerator[List[str], None]:
    """
    Creates an ephemeral .auto.tfvars.json file if `variables` are provided and the
    Terraform action is 'plan' or 'import'. Then yields the `-var-file` argument so
    you can pass it to the Terraform command.

    Args:
        action (str):
            One of "plan", "import", "init", etc.
        variables (Optional[Dict[str, Any]]):
            Key-value pairs to place into a .auto.tfvars.json file. If None or empty,
            no ephemeral file is created.

    Yields:
        List[str]: e.g. ["-var-file=/dev/shm/xxxx/vars.auto.tfvars.json"] if needed,
        or an empty list otherwise.
    """
    if action not in ("plan", "import") or not variables:
        yield []
        return

    async with ephemeral_manager(single_file_name="vars.auto.tfvars.json") as tfvars_file:
        assert isinstance(tfvars_file, str)
        async with aiofiles.open(tfvars_file, "w") as f:
            await f.write(json.dumps(variables, indent=2))

        yield [f"-var-file={tfvars_file}"]
