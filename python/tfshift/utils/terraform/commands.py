"""
tfshift/utils/terraform/commands.py

Implements the TerraformCLI contract by running the Terraform binary through
`run_command`. In-memory State values are staged in ephemeral files (see
ephemeral_file.py) so the engine never writes state next to the configuration.

Exports:
    - SubprocessTerraformCLI
"""

from __future__ import annotations

import os
import shlex
import aiofiles
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tfshift.models.state import Plan, State
from tfshift.utils.async_command_runner import CommandResult, run_command
from tfshift.utils.ephemeral_file import ephemeral_manager
from tfshift.utils.terraform.cli import TerraformCLI
from tfshift.utils.terraform.ephemeral import maybe_tfvars, read_state_file, write_state_file

# Never leave *.backup files behind next to ephemeral state.
_NO_BACKUP = "-backup=/dev/null"


def _make_base_command(exec_path: str, action: str) -> List[str]:
    """Builds the initial Terraform command for a (possibly multi-word) action.

    Args:
        exec_path: The Terraform invocation, e.g. "terraform" or "direnv exec . terraform".
        action: "init", "plan", "state mv", "workspace select", etc.

    Returns:
        A list of command tokens, e.g. ["terraform", "state", "mv"].
    """
    return shlex.split(exec_path) + action.split()


class SubprocessTerraformCLI(TerraformCLI):
    """Runs Terraform as a subprocess with cwd set to the bound directory.

    Example:
        tf = SubprocessTerraformCLI("envs/prod", exec_path="terraform")
        state = await tf.state_pull()
    """

    def __init__(
        self,
        dir: str,
        exec_path: str = "terraform",
        env: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Initialize a SubprocessTerraformCLI.

        Args:
            dir (str): The Terraform working directory. An empty string means ".".
            exec_path (str): How to invoke Terraform.
            env (Optional[Dict[str, str]]): Extra environment variables for every command.
        """
        super().__init__(dir or ".")
        self.exec_path = exec_path
        self.env = env

    async def _run(
        self,
        action: str,
        args: Sequence[str] = (),
        successful_return_codes: Sequence[int] = (0,),
    ) -> CommandResult:
        if not os.path.isdir(self.dir):
            raise ValueError(f"Terraform directory not found: {self.dir}")
        command = _make_base_command(self.exec_path, action) + list(args)
        return await run_command(
            command,
            env=self.env,
            cwd=self.dir,
            successful_return_codes=successful_return_codes,
        )

    async def version(self) -> str:
        result = await self._run("version")
        lines = result.stdout.strip().splitlines()
        return lines[0] if lines else ""

    async def init(
        self,
        *,
        reconfigure: bool = False,
        backend_config: Sequence[str] = (),
        opts: Sequence[str] = (),
    ) -> None:
        args = ["-input=false", "-no-color"]
        if reconfigure:
            args.append("-reconfigure")
        args.extend(f"-backend-config={value}" for value in backend_config)
        await self._run("init", args + list(opts))

    async def plan(
        self,
        *,
        out: Optional[str] = None,
        variables: Optional[Dict[str, Any]] = None,
        opts: Sequence[str] = (),
    ) -> None:
        async with maybe_tfvars("plan", variables) as tfvars_args:
            args = ["-input=false", "-no-color"] + tfvars_args
            if out:
                args.append(f"-out={out}")
            await self._run("plan", args + list(opts))

    async def plan_has_change(
        self,
        *,
        target: Optional[str] = None,
        variables: Optional[Dict[str, Any]] = None,
        opts: Sequence[str] = (),
    ) -> bool:
        async with maybe_tfvars("plan", variables) as tfvars_args:
            args = ["-input=false", "-no-color", "-detailed-exitcode"] + tfvars_args
            if target:
                args.append(f"-target={target}")
            # -detailed-exitcode: 0 = no changes, 2 = changes present, 1 = error
            result = await self._run("plan", args + list(opts), successful_return_codes=(0, 2))
        return result.return_code == 2

    async def apply(self, plan: Optional[Plan] = None, opts: Sequence[str] = ()) -> None:
        args = ["-input=false", "-no-color"] + list(opts)
        if plan is None:
            await self._run("apply", args + ["-auto-approve"])
            return
        async with ephemeral_manager(single_file_name="saved.tfplan") as plan_file:
            assert isinstance(plan_file, str)
            async with aiofiles.open(plan_file, "wb") as f:
                await f.write(plan.raw)
            await self._run("apply", args + [plan_file])

    async def state_list(
        self, state: Optional[State] = None, addresses: Sequence[str] = ()
    ) -> List[str]:
        async with ephemeral_manager(single_file_name="list.tfstate") as state_file:
            assert isinstance(state_file, str)
            args: List[str] = []
            if state is not None:
                await write_state_file(state_file, state)
                args.append(f"-state={state_file}")
            result = await self._run("state list", args + list(addresses))
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    async def state_pull(self) -> State:
        result = await self._run("state pull")
        return State(result.stdout.encode())

    async def state_push(self, state: State, *, force: bool = False) -> None:
        async with ephemeral_manager(single_file_name="push.tfstate") as state_file:
            assert isinstance(state_file, str)
            await write_state_file(state_file, state)
            args = ["-force"] if force else []
            await self._run("state push", args + [state_file])

    async def state_mv(
        self,
        source: str,
        destination: str,
        *,
        state: Optional[State] = None,
        state_out: Optional[State] = None,
        state_path: Optional[str] = None,
        state_out_path: Optional[str] = None,
        opts: Sequence[str] = (),
    ) -> Tuple[Optional[State], Optional[State]]:
        async with ephemeral_manager(file_names=["in.tfstate", "out.tfstate"]) as paths:
            assert isinstance(paths, dict)
            in_path = state_path
            if state is not None:
                in_path = paths["in.tfstate"]
                await write_state_file(in_path, state)

            out_path = state_out_path
            if state_out is not None:
                out_path = paths["out.tfstate"]
                await write_state_file(out_path, state_out)

            args = [_NO_BACKUP]
            if in_path:
                args.append(f"-state={in_path}")
            if out_path:
                args.append(f"-state-out={out_path}")
            await self._run("state mv", args + list(opts) + [source, destination])

            new_state = await read_state_file(in_path) if state is not None and in_path else None
            new_out = await read_state_file(out_path) if state_out is not None and out_path else None
        return new_state, new_out

    async def state_rm(
        self,
        addresses: Sequence[str],
        *,
        state: Optional[State] = None,
        state_path: Optional[str] = None,
        opts: Sequence[str] = (),
    ) -> Optional[State]:
        async with ephemeral_manager(single_file_name="rm.tfstate") as state_file:
            assert isinstance(state_file, str)
            path = state_path
            if state is not None:
                path = state_file
                await write_state_file(path, state)
            args = [_NO_BACKUP]
            if path:
                args.append(f"-state={path}")
            await self._run("state rm", args + list(opts) + list(addresses))
            return await read_state_file(path) if state is not None and path else None

    async def import_state(
        self,
        address: str,
        import_id: str,
        *,
        state: State,
        variables: Optional[Dict[str, Any]] = None,
        opts: Sequence[str] = (),
    ) -> State:
        async with ephemeral_manager(single_file_name="import.tfstate") as state_file:
            assert isinstance(state_file, str)
            await write_state_file(state_file, state)
            async with maybe_tfvars("import", variables) as tfvars_args:
                args = ["-input=false", "-no-color", f"-state={state_file}", _NO_BACKUP]
                await self._run("import", args + tfvars_args + list(opts) + [address, import_id])
            return await read_state_file(state_file)

    async def workspace_show(self) -> str:
        result = await self._run("workspace show")
        return result.stdout.strip()

    async def workspace_select(self, name: str) -> None:
        await self._run("workspace select", [name])

    async def workspace_new(self, name: str) -> None:
        await self._run("workspace new", [name])
