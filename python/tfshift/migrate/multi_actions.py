"""
tfshift/migrate/multi_actions.py

Cross-state primitives. Terraform can only move an address within one state
document, so a move between two backends goes through an empty buffer state:

  1) from_state --(source -> source)--> buffer
  2) buffer     --(source -> destination)--> to_state

The resource is in exactly one of {from, buffer, to} after each hop, and the buffer
never outlives a single action.
"""

from __future__ import annotations

import logging
from typing import List, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict
from typing_extensions import assert_never

from tfshift.errors import AddressNotFound, ConfigInvalid
from tfshift.migrate.actions import split_action_spec
from tfshift.models.state import State
from tfshift.utils.terraform.cli import TerraformCLI

logger = logging.getLogger(__name__)


class MultiStateMvAction(BaseModel):
    """Moves a resource from one directory's state to another's, optionally renaming it.

    Attributes:
        source: Address in the "from" state.
        destination: Address in the "to" state.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["mv"] = "mv"
    source: str
    destination: str

    async def multi_state_update(
        self,
        from_tf: TerraformCLI,
        to_tf: TerraformCLI,
        from_state: State,
        to_state: State,
    ) -> Tuple[State, State]:
        """Move the resource between two in-memory states, returning (from, to)."""
        if not from_state.has_address(self.source):
            raise AddressNotFound(
                f"Invalid source address: {self.source} is not tracked in {from_tf.dir}"
            )
        if to_state.has_address(self.destination):
            raise AddressNotFound(
                f"Invalid destination address: {self.destination} is already tracked in {to_tf.dir}"
            )

        new_from, buffer = await from_tf.state_mv(
            self.source, self.source, state=from_state, state_out=State.empty()
        )
        assert new_from is not None and buffer is not None

        _, new_to = await to_tf.state_mv(
            self.source, self.destination, state=buffer, state_out=to_state
        )
        assert new_to is not None
        return new_from, new_to

    async def fast_multi_state_update(
        self,
        from_tf: TerraformCLI,
        to_tf: TerraformCLI,
        from_state_file: str,
        to_state_file: str,
    ) -> None:
        """Move the resource between two state files in place.

        No address pre-check is possible without reading the documents back, so
        Terraform's own diagnostic is the error on this path.
        """
        _, buffer = await from_tf.state_mv(
            self.source, self.source, state_path=from_state_file, state_out=State.empty()
        )
        assert buffer is not None
        await to_tf.state_mv(
            self.source, self.destination, state=buffer, state_out_path=to_state_file
        )


# Closed union; mv is currently its only member.
MultiStateAction = Union[MultiStateMvAction]


async def apply_multi_state_action(
    action: MultiStateAction,
    from_tf: TerraformCLI,
    to_tf: TerraformCLI,
    from_state: State,
    to_state: State,
) -> Tuple[State, State]:
    """Apply any MultiStateAction to in-memory states. Exhaustive over the union."""
    if isinstance(action, MultiStateMvAction):
        logger.info(
            "[migrator@%s] apply mv %s %s (to %s)",
            from_tf.dir,
            action.source,
            action.destination,
            to_tf.dir,
        )
        return await action.multi_state_update(from_tf, to_tf, from_state, to_state)
    assert_never(action)


async def fast_apply_multi_state_action(
    action: MultiStateAction,
    from_tf: TerraformCLI,
    to_tf: TerraformCLI,
    from_state_file: str,
    to_state_file: str,
) -> None:
    """Apply any MultiStateAction to file-resident states. Exhaustive over the union."""
    if isinstance(action, MultiStateMvAction):
        logger.info(
            "[migrator@%s] apply mv %s %s (to %s, in place)",
            from_tf.dir,
            action.source,
            action.destination,
            to_tf.dir,
        )
        await action.fast_multi_state_update(from_tf, to_tf, from_state_file, to_state_file)
        return
    assert_never(action)


def parse_multi_state_action(spec: str) -> MultiStateAction:
    """Parse `mv <src> <dst>` for a cross-directory migration.

    Raises:
        ConfigInvalid: On an unknown verb or wrong number of arguments.
    """
    args: List[str] = split_action_spec(spec)
    verb, rest = args[0], args[1:]
    if verb == "mv":
        if len(rest) != 2:
            raise ConfigInvalid(f"mv action requires 2 arguments: {spec!r}")
        return MultiStateMvAction(source=rest[0], destination=rest[1])
    raise ConfigInvalid(f"unknown multi state action type: {verb!r} in {spec!r}")
