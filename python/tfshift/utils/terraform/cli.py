"""
tfshift/utils/terraform/cli.py

Defines the abstract TerraformCLI contract the migration engine talks to. Every
instance is bound to one working directory; the workspace is selected through the
workspace_* methods.

State-manipulating methods take either in-memory State values (written to and
read back from ephemeral files) or explicit file paths. The file form is the fast
path for large documents, where a single on-disk document is mutated in place by
successive commands.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tfshift.models.state import Plan, State

DEFAULT_WORKSPACE = "default"


class TerraformCLI(ABC):
    """Abstract base class for running Terraform commands against one directory.

    Every method may raise CLIError carrying Terraform's raw diagnostic text.
    """

    def __init__(self, dir: str) -> None:
        """
        Initialize a TerraformCLI.

        Args:
            dir (str): The Terraform working directory.
        """
        self.dir = dir

    @abstractmethod
    async def version(self) -> str:
        """Return the first line of `terraform version`."""
        pass

    @abstractmethod
    async def init(
        self,
        *,
        reconfigure: bool = False,
        backend_config: Sequence[str] = (),
        opts: Sequence[str] = (),
    ) -> None:
        """Run `terraform init`, optionally with -reconfigure and -backend-config values."""
        pass

    @abstractmethod
    async def plan(
        self,
        *,
        out: Optional[str] = None,
        variables: Optional[Dict[str, Any]] = None,
        opts: Sequence[str] = (),
    ) -> None:
        """Run `terraform plan`, saving the plan to `out` (relative to dir) if given."""
        pass

    @abstractmethod
    async def plan_has_change(
        self,
        *,
        target: Optional[str] = None,
        variables: Optional[Dict[str, Any]] = None,
        opts: Sequence[str] = (),
    ) -> bool:
        """Return True if a plan against the current configuration reports changes."""
        pass

    @abstractmethod
    async def apply(self, plan: Optional[Plan] = None, opts: Sequence[str] = ()) -> None:
        """Apply a previously saved plan (or the current configuration if None)."""
        pass

    @abstractmethod
    async def state_list(
        self, state: Optional[State] = None, addresses: Sequence[str] = ()
    ) -> List[str]:
        """List tracked addresses in `state`, or in the configured backend if None."""
        pass

    @abstractmethod
    async def state_pull(self) -> State:
        """Read the current state from the configured backend."""
        pass

    @abstractmethod
    async def state_push(self, state: State, *, force: bool = False) -> None:
        """Write `state` to the configured backend; `force` skips lineage/serial checks."""
        pass

    @abstractmethod
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
        """Move an address, returning the updated (state, state_out).

        Each element is None when the corresponding side was given as a file path
        (or not given at all) rather than an in-memory State.
        """
        pass

    @abstractmethod
    async def state_rm(
        self,
        addresses: Sequence[str],
        *,
        state: Optional[State] = None,
        state_path: Optional[str] = None,
        opts: Sequence[str] = (),
    ) -> Optional[State]:
        """Remove addresses in a single command; returns the new State if one was given."""
        pass

    @abstractmethod
    async def import_state(
        self,
        address: str,
        import_id: str,
        *,
        state: State,
        variables: Optional[Dict[str, Any]] = None,
        opts: Sequence[str] = (),
    ) -> State:
        """Attach the resource identified by `import_id` to `address` in `state`."""
        pass

    @abstractmethod
    async def workspace_show(self) -> str:
        """Return the name of the selected workspace."""
        pass

    @abstractmethod
    async def workspace_select(self, name: str) -> None:
        """Select an existing workspace."""
        pass

    @abstractmethod
    async def workspace_new(self, name: str) -> None:
        """Create and select a new workspace."""
        pass
