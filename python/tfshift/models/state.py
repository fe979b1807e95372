"""
tfshift/models/state.py

Defines the immutable pydantic values threaded through a migration:
 - State: the raw bytes of a Terraform state document.
 - Plan: the raw bytes of a saved plan file.

State is opaque to the engine apart from the address lookups below, which read
the v4 JSON format Terraform has written since 0.12.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict


def _index_suffix(index_key: Any) -> str:
    """Render an instance index_key the way Terraform prints it in an address."""
    if index_key is None:
        return ""
    if isinstance(index_key, int):
        return f"[{index_key}]"
    return f"[{json.dumps(index_key, ensure_ascii=False)}]"


def _resource_address(block: Dict[str, Any]) -> str:
    """Build the resource address (without instance key) of a raw state block."""
    parts: List[str] = []
    module = block.get("module")
    if module:
        parts.append(module)
    if block.get("mode") == "data":
        parts.append("data")
    parts.append(block.get("type", ""))
    parts.append(block.get("name", ""))
    return ".".join(parts)


class State(BaseModel):
    """A byte-exact snapshot of the resources tracked by one backend.

    Attributes:
        raw: The serialized state document. An empty value is a valid, empty state.
    """

    model_config = ConfigDict(frozen=True)

    raw: bytes = b""

    def __init__(__pydantic_self__, raw: bytes = b"", **data: Any) -> None:
        """Create a State from raw bytes, positionally or by keyword."""
        super().__init__(raw=raw, **data)

    @classmethod
    def empty(cls) -> "State":
        """Return the zero-length state used as a transfer buffer."""
        return cls(b"")

    def is_empty(self) -> bool:
        """True if the document tracks no resources at all."""
        return not self.addresses()

    def _document(self) -> Dict[str, Any]:
        if not self.raw.strip():
            return {}
        return json.loads(self.raw)

    def addresses(self) -> List[str]:
        """List every tracked resource-instance address, in document order.

        Returns:
            e.g. ["null_resource.foo", "module.app.aws_instance.web[0]"].
        """
        doc = self._document()
        result: List[str] = []
        for block in doc.get("resources", []):
            base = _resource_address(block)
            instances = block.get("instances") or [{}]
            for instance in instances:
                result.append(base + _index_suffix(instance.get("index_key")))
        return result

    def has_address(self, address: str) -> bool:
        """Check whether `address` names something tracked in this state.

        A match is an exact instance address, a resource whose instances are
        tracked (`type.name` for `type.name[0]`), or a module path prefix.
        """
        for tracked in self.addresses():
            if tracked == address:
                return True
            if tracked.startswith(address + "[") or tracked.startswith(address + "."):
                return True
        return False

    @property
    def serial(self) -> int:
        """The document serial, or 0 for an empty state."""
        return int(self._document().get("serial", 0))

    @property
    def lineage(self) -> str:
        """The document lineage, or an empty string for an empty state."""
        return str(self._document().get("lineage", ""))


class Plan(BaseModel):
    """The raw bytes of a plan file saved with `terraform plan -out`."""

    model_config = ConfigDict(frozen=True)

    raw: bytes

    def __init__(__pydantic_self__, raw: bytes, **data: Any) -> None:
        super().__init__(raw=raw, **data)
