"""Shared fixtures for tfshift tests.

FakeTerraformCLI implements the TerraformCLI contract over v4 JSON state documents
kept in memory. It has a remote and a local backend; which one is active is decided
the way Terraform decides it: by whether the override file exists when `init` runs.
No Terraform binary is needed.
"""

import json
import os
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import pytest

from tfshift.errors import CLIError
from tfshift.models.state import Plan, State
from tfshift.utils.terraform.cli import TerraformCLI
from tfshift.utils.terraform.ephemeral import OVERRIDE_FILE_NAME


def cli_error(stderr: str) -> CLIError:
    """Build the CLIError run_command raises for a failing Terraform command."""
    return CLIError(f"command failed with return code 1\n{stderr}", return_code=1, stderr=stderr)


def _block(address: str) -> Dict[str, Any]:
    rtype, name = address.split(".", 1)
    return {
        "mode": "managed",
        "type": rtype,
        "name": name,
        "provider": 'provider["registry.terraform.io/hashicorp/null"]',
        "instances": [{"schema_version": 0, "attributes": {"id": address}}],
    }


def make_state(addresses: Sequence[str], serial: int = 1, lineage: str = "lineage-1") -> State:
    """Build a v4 state document tracking simple `type.name` addresses."""
    doc = {
        "version": 4,
        "terraform_version": "1.5.7",
        "serial": serial,
        "lineage": lineage,
        "outputs": {},
        "resources": [_block(a) for a in addresses],
    }
    return State(json.dumps(doc).encode())


def _load(raw: bytes) -> Dict[str, Any]:
    if not raw.strip():
        return {"version": 4, "serial": 0, "lineage": "", "outputs": {}, "resources": []}
    return json.loads(raw)


def _dump(doc: Dict[str, Any]) -> bytes:
    return json.dumps(doc).encode()


def _address(block: Dict[str, Any]) -> str:
    return f"{block['type']}.{block['name']}"


def _read(path: str) -> bytes:
    if not os.path.exists(path):
        return b""
    with open(path, "rb") as f:
        return f.read()


def _write(path: str, raw: bytes) -> None:
    with open(path, "wb") as f:
        f.write(raw)


class FakeTerraformCLI(TerraformCLI):
    """In-memory Terraform double.

    Attributes:
        remote: The state held by the remote backend.
        local: The state held by the local (override) backend.
        backend: "remote" or "local", set by init().
        desired: Addresses the configuration declares; a plan reports a change
            whenever the active state tracks a different set.
        calls: Names of every method invoked, in order.
        fail: Method name -> exception raised on the next call. "restore" fails
            the init that switches back to remote.
        importable: Import IDs the fake provider can resolve.
        hooks: Method name -> coroutine function awaited during the call
            ("init", "plan_has_change", "state_push").
    """

    def __init__(
        self,
        dir: str,
        remote: Optional[State] = None,
        desired: Optional[Set[str]] = None,
        importable: Sequence[str] = (),
    ) -> None:
        super().__init__(dir)
        self.remote = remote if remote is not None else State.empty()
        self.local = State.empty()
        self.backend = "remote"
        self.desired = desired
        self.calls: List[str] = []
        self.fail: Dict[str, BaseException] = {}
        self.importable = set(importable)
        self.hooks: Dict[str, Any] = {}

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise self.fail.pop(name)

    def _active(self) -> State:
        return self.local if self.backend == "local" else self.remote

    def count(self, name: str) -> int:
        return self.calls.count(name)

    async def version(self) -> str:
        self._record("version")
        return "Terraform v1.5.7"

    async def init(
        self,
        *,
        reconfigure: bool = False,
        backend_config: Sequence[str] = (),
        opts: Sequence[str] = (),
    ) -> None:
        overridden = os.path.exists(os.path.join(self.dir, OVERRIDE_FILE_NAME))
        if reconfigure and not overridden:
            self._record("restore")
        self._record("init")
        hook = self.hooks.get("init")
        if hook is not None:
            await hook()
        self.backend = "local" if overridden else "remote"
        if overridden:
            self.local = State.empty()

    async def plan(
        self,
        *,
        out: Optional[str] = None,
        variables: Optional[Dict[str, Any]] = None,
        opts: Sequence[str] = (),
    ) -> None:
        self._record("plan")
        if out:
            _write(os.path.join(self.dir, out), b"saved plan")

    async def plan_has_change(
        self,
        *,
        target: Optional[str] = None,
        variables: Optional[Dict[str, Any]] = None,
        opts: Sequence[str] = (),
    ) -> bool:
        self._record("plan_has_change")
        hook = self.hooks.get("plan_has_change")
        if hook is not None:
            await hook()
        if self.desired is None:
            return False
        return set(self._active().addresses()) != self.desired

    async def apply(self, plan: Optional[Plan] = None, opts: Sequence[str] = ()) -> None:
        self._record("apply")

    async def state_list(
        self, state: Optional[State] = None, addresses: Sequence[str] = ()
    ) -> List[str]:
        self._record("state_list")
        return (state if state is not None else self._active()).addresses()

    async def state_pull(self) -> State:
        self._record("state_pull")
        return self._active()

    async def state_push(self, state: State, *, force: bool = False) -> None:
        self._record("state_push")
        hook = self.hooks.get("state_push")
        if hook is not None:
            await hook()
        if self.backend == "local":
            self.local = state
        else:
            self.remote = state

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
        self._record("state_mv")
        in_raw = state.raw if state is not None else _read(state_path) if state_path else self._active().raw
        in_doc = _load(in_raw)
        separate_out = state_out is not None or state_out_path is not None
        if state_out is not None:
            out_doc = _load(state_out.raw)
        elif state_out_path is not None:
            out_doc = _load(_read(state_out_path))
        else:
            out_doc = in_doc

        moving = [b for b in in_doc["resources"] if _address(b) == source]
        if not moving:
            raise cli_error(f"Error: Invalid source address\n\nCannot move {source}: does not match anything in the current state.")
        in_doc["resources"] = [b for b in in_doc["resources"] if _address(b) != source]
        for block in moving:
            rtype, name = destination.split(".", 1)
            moved = dict(block, type=rtype, name=name)
            out_doc["resources"].append(moved)
        in_doc["serial"] += 1
        if separate_out:
            out_doc["serial"] += 1

        if state_path and state is None:
            _write(state_path, _dump(in_doc))
        if state_out_path and state_out is None:
            _write(state_out_path, _dump(out_doc))

        new_in = State(_dump(in_doc)) if state is not None else None
        new_out = State(_dump(out_doc)) if state_out is not None else None
        return new_in, new_out

    async def state_rm(
        self,
        addresses: Sequence[str],
        *,
        state: Optional[State] = None,
        state_path: Optional[str] = None,
        opts: Sequence[str] = (),
    ) -> Optional[State]:
        self._record("state_rm")
        doc = _load(state.raw if state is not None else _read(state_path) if state_path else b"")
        doc["resources"] = [b for b in doc["resources"] if _address(b) not in set(addresses)]
        doc["serial"] += 1
        if state_path and state is None:
            _write(state_path, _dump(doc))
            return None
        return State(_dump(doc))

    async def import_state(
        self,
        address: str,
        import_id: str,
        *,
        state: State,
        variables: Optional[Dict[str, Any]] = None,
        opts: Sequence[str] = (),
    ) -> State:
        self._record("import_state")
        if import_id not in self.importable:
            raise cli_error("Error: Cannot import non-existent remote object")
        doc = _load(state.raw)
        doc["resources"].append(_block(address))
        doc["serial"] += 1
        return State(_dump(doc))

    async def workspace_show(self) -> str:
        self._record("workspace_show")
        return "default"

    async def workspace_select(self, name: str) -> None:
        self._record("workspace_select")

    async def workspace_new(self, name: str) -> None:
        self._record("workspace_new")


def fail_nth_init(tf: FakeTerraformCLI, n: int, stderr: str):
    """Install an init hook that fails the n-th `init` (1-based) with `stderr`."""
    seen = []

    async def hook():
        seen.append(True)
        if len(seen) == n:
            raise cli_error(stderr)

    tf.hooks["init"] = hook


@pytest.fixture
def work_dir(tmp_path):
    d = tmp_path / "dir1"
    d.mkdir()
    return d


@pytest.fixture
def to_dir(tmp_path):
    d = tmp_path / "dir2"
    d.mkdir()
    return d
