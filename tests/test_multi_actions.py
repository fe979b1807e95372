"""Tests for cross-state moves through the transfer buffer."""

import pytest

from tfshift.errors import AddressNotFound, CLIError, ConfigInvalid
from tfshift.migrate.multi_actions import (
    MultiStateMvAction,
    apply_multi_state_action,
    fast_apply_multi_state_action,
    parse_multi_state_action,
)
from tfshift.models.state import State

from conftest import FakeTerraformCLI, make_state


class TestParseMultiStateAction:
    def test_mv(self):
        assert parse_multi_state_action("mv a.foo a.bar") == MultiStateMvAction(
            source="a.foo", destination="a.bar"
        )

    @pytest.mark.parametrize("spec", ["mv a.foo", "rm a.foo", "import a.foo id"])
    def test_invalid(self, spec):
        with pytest.raises(ConfigInvalid):
            parse_multi_state_action(spec)


class TestMultiStateMvAction:
    """Tests for moving resources between two in-memory states."""

    @pytest.mark.asyncio
    async def test_move_and_rename(self, work_dir, to_dir):
        from_tf = FakeTerraformCLI(str(work_dir))
        to_tf = FakeTerraformCLI(str(to_dir))
        from_state = make_state(["null_resource.foo", "null_resource.bar"])
        to_state = make_state(["null_resource.qux"], lineage="lineage-2")

        new_from, new_to = await MultiStateMvAction(
            source="null_resource.bar", destination="null_resource.bar2"
        ).multi_state_update(from_tf, to_tf, from_state, to_state)

        assert new_from.addresses() == ["null_resource.foo"]
        assert sorted(new_to.addresses()) == ["null_resource.bar2", "null_resource.qux"]
        # one hop into the buffer in "from", one hop out of it in "to"
        assert from_tf.calls == ["state_mv"]
        assert to_tf.calls == ["state_mv"]
        assert new_to.lineage == "lineage-2"

    @pytest.mark.asyncio
    async def test_no_resource_is_duplicated_or_lost(self, work_dir, to_dir):
        from_tf = FakeTerraformCLI(str(work_dir))
        to_tf = FakeTerraformCLI(str(to_dir))
        from_state = make_state(["null_resource.a", "null_resource.b", "null_resource.c"])
        to_state = make_state(["null_resource.x"])
        before = set(from_state.addresses()) | set(to_state.addresses())

        new_from, new_to = await apply_multi_state_action(
            MultiStateMvAction(source="null_resource.b", destination="null_resource.y"),
            from_tf,
            to_tf,
            from_state,
            to_state,
        )

        after = new_from.addresses() + new_to.addresses()
        assert len(after) == len(set(after))
        assert set(after) == (before - {"null_resource.b"}) | {"null_resource.y"}

    @pytest.mark.asyncio
    async def test_missing_source(self, work_dir, to_dir):
        from_tf = FakeTerraformCLI(str(work_dir))
        to_tf = FakeTerraformCLI(str(to_dir))

        with pytest.raises(AddressNotFound) as excinfo:
            await MultiStateMvAction(
                source="null_resource.nope", destination="null_resource.nope"
            ).multi_state_update(from_tf, to_tf, make_state(["null_resource.a"]), make_state([]))

        assert str(work_dir) in str(excinfo.value)
        assert from_tf.calls == [] and to_tf.calls == []

    @pytest.mark.asyncio
    async def test_destination_taken_in_to_state(self, work_dir, to_dir):
        from_tf = FakeTerraformCLI(str(work_dir))
        to_tf = FakeTerraformCLI(str(to_dir))

        with pytest.raises(AddressNotFound):
            await MultiStateMvAction(
                source="null_resource.a", destination="null_resource.a"
            ).multi_state_update(
                from_tf, to_tf, make_state(["null_resource.a"]), make_state(["null_resource.a"])
            )


class TestFastMultiStateUpdate:
    """Tests for the file-resident path."""

    @pytest.mark.asyncio
    async def test_moves_between_files_in_place(self, tmp_path, work_dir, to_dir):
        from_tf = FakeTerraformCLI(str(work_dir))
        to_tf = FakeTerraformCLI(str(to_dir))
        from_file = tmp_path / "from.tfstate"
        to_file = tmp_path / "to.tfstate"
        from_file.write_bytes(make_state(["null_resource.foo", "null_resource.bar"]).raw)
        to_file.write_bytes(make_state(["null_resource.qux"]).raw)

        await fast_apply_multi_state_action(
            MultiStateMvAction(source="null_resource.foo", destination="null_resource.foo"),
            from_tf,
            to_tf,
            str(from_file),
            str(to_file),
        )

        assert State(from_file.read_bytes()).addresses() == ["null_resource.bar"]
        assert sorted(State(to_file.read_bytes()).addresses()) == [
            "null_resource.foo",
            "null_resource.qux",
        ]

    @pytest.mark.asyncio
    async def test_missing_source_surfaces_terraform_diagnostic(self, tmp_path, work_dir, to_dir):
        from_tf = FakeTerraformCLI(str(work_dir))
        to_tf = FakeTerraformCLI(str(to_dir))
        from_file = tmp_path / "from.tfstate"
        to_file = tmp_path / "to.tfstate"
        from_file.write_bytes(make_state(["null_resource.bar"]).raw)

        with pytest.raises(CLIError) as excinfo:
            await MultiStateMvAction(
                source="null_resource.foo", destination="null_resource.foo"
            ).fast_multi_state_update(from_tf, to_tf, str(from_file), str(to_file))

        assert "Invalid source address" in excinfo.value.stderr
        assert not to_file.exists()
