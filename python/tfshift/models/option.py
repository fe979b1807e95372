# tfshift/models/option.py

from typing import Any, Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MigratorOption(BaseSettings):
    """
    Pydantic settings shared by every migrator in a run.
    By default, these fields map to environment variables prefixed with `TFSHIFT_`.
    For example, `TFSHIFT_EXEC_PATH="direnv exec . terraform"`.
    """

    model_config = SettingsConfigDict(env_prefix="TFSHIFT_", frozen=True)

    exec_path: str = "terraform"
    # Written under the migration dir when force is set and a diff remains.
    plan_out: Optional[str] = None
    # -backend-config values used when switching back to the remote backend.
    backend_config: List[str] = Field(default_factory=list)
    # Written to an ephemeral .auto.tfvars.json and passed to plan.
    variables: Dict[str, Any] = Field(default_factory=dict)
    plan_args: List[str] = Field(default_factory=list)
