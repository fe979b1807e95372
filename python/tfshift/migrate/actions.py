"""
tfshift/migrate/actions.py

Single-state primitives. StateAction is a closed union of frozen pydantic models
discriminated on `kind`; each member transforms one State into a new State with
exactly one Terraform command:

 - StateMvAction:     mv <source> <destination>
 - StateRmAction:     rm <address> [address...]
 - StateImportAction: import <address> <import_id>

Address checks run against the local State before the command is issued, so a bad
action list fails without touching any backend.
"""

from __future__ import annotations

import shlex
import logging
from typing import List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing_extensions import Annotated, assert_never

from tfshift.errors import AddressNotFound, CLIError, ConfigInvalid, StateImportError
from tfshift.models.state import State
from tfshift.utils.terraform.cli import TerraformCLI

logger = logging.getLogger(__name__)


class StateMvAction(BaseModel):
    """Moves (renames) a resource or module address within one state.

    Attributes:
        source: The address to move.
        destination: The new address. Must not be tracked yet.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["mv"] = "mv"
    source: str
    destination: str

    async def state_update(self, tf: TerraformCLI, state: State) -> State:
        if not state.has_address(self.source):
            raise AddressNotFound(f"Invalid source address: {self.source} is not tracked")
        if state.has_address(self.destination):
            raise AddressNotFound(
                f"Invalid destination address: {self.destination} is already tracked"
            )
        new_state, _ = await tf.state_mv(self.source, self.destination, state=state)
        assert new_state is not None, "state_mv returned no state for an in-memory input"
        return new_state


class StateRmAction(BaseModel):
    """Stops tracking one or more addresses; the infrastructure itself is untouched.

    All addresses must be tracked, otherwise nothing is removed.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["rm"] = "rm"
    addresses: List[str]

    @field_validator("addresses")
    @classmethod
    def validate_addresses(cls, value: List[str]) -> List[str]:
        """Check that at least one address is given."""
        if not value:
            raise ValueError("rm needs at least one address.")
        return value

    async def state_update(self, tf: TerraformCLI, state: State) -> State:
        missing = [addr for addr in self.addresses if not state.has_address(addr)]
        if missing:
            raise AddressNotFound(f"Invalid target address: {', '.join(missing)} not tracked")
        new_state = await tf.state_rm(self.addresses, state=state)
        assert new_state is not None, "state_rm returned no state for an in-memory input"
        return new_state


class StateImportAction(BaseModel):
    """Attaches an existing resource, identified by `import_id`, to an untracked address."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["import"] = "import"
    address: str
    import_id: str

    async def state_update(self, tf: TerraformCLI, state: State) -> State:
        if state.has_address(self.address):
            raise StateImportError(f"Resource already managed: {self.address} is already tracked")
        try:
            return await tf.import_state(self.address, self.import_id, state=state)
        except CLIError as exc:
            raise StateImportError(
                f"failed to import {self.import_id} as {self.address}: {exc}"
            ) from exc


StateAction = Annotated[
    Union[StateMvAction, StateRmAction, StateImportAction],
    Field(discriminator="kind"),
]


async def apply_state_action(action: StateAction, tf: TerraformCLI, state: State) -> State:
    """Apply any StateAction. Exhaustive over the union."""
    if isinstance(action, (StateMvAction, StateRmAction, StateImportAction)):
        logger.info("[migrator@%s] apply %s", tf.dir, describe_action(action))
        return await action.state_update(tf, state)
    assert_never(action)


def describe_action(action: StateAction) -> str:
    """Render an action back in the action-spec grammar."""
    if isinstance(action, StateMvAction):
        return f"mv {action.source} {action.destination}"
    if isinstance(action, StateRmAction):
        return "rm " + " ".join(action.addresses)
    if isinstance(action, StateImportAction):
        return f"import {action.address} {action.import_id}"
    assert_never(action)


def split_action_spec(spec: str) -> List[str]:
    """Split an action spec with shell quoting rules, raising ConfigInvalid on bad quoting."""
    try:
        args = shlex.split(spec)
    except ValueError as exc:
        raise ConfigInvalid(f"failed to parse action: {spec!r}: {exc}") from exc
    if not args:
        raise ConfigInvalid("empty action")
    return args


def parse_state_action(spec: str) -> StateAction:
    """Parse `mv <src> <dst>`, `rm <addr>...` or `import <addr> <id>`.

    Raises:
        ConfigInvalid: On an unknown verb or wrong number of arguments.
    """
    args = split_action_spec(spec)
    verb, rest = args[0], args[1:]
    if verb == "mv":
        if len(rest) != 2:
            raise ConfigInvalid(f"mv action requires 2 arguments: {spec!r}")
        return StateMvAction(source=rest[0], destination=rest[1])
    if verb == "rm":
        if len(rest) < 1:
            raise ConfigInvalid(f"rm action requires at least 1 argument: {spec!r}")
        return StateRmAction(addresses=rest)
    if verb == "import":
        if len(rest) != 2:
            raise ConfigInvalid(f"import action requires 2 arguments: {spec!r}")
        return StateImportAction(address=rest[0], import_id=rest[1])
    raise ConfigInvalid(f"unknown action type: {verb!r} in {spec!r}")
