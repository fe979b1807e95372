"""
tfshift/utils/terraform/__init__.py

Provides a convenient import interface for the Terraform submodules:

- cli.py for the abstract TerraformCLI contract
- commands.py for the subprocess implementation
- ephemeral.py for the local backend override and ephemeral files

Exports:
  - TerraformCLI, SubprocessTerraformCLI
  - Ephemeral context managers (local_backend_override, maybe_tfvars)
"""

from tfshift.utils.terraform.cli import DEFAULT_WORKSPACE, TerraformCLI
from tfshift.utils.terraform.commands import SubprocessTerraformCLI
from tfshift.utils.terraform.ephemeral import (
    OVERRIDE_FILE_NAME,
    local_backend_override,
    maybe_tfvars,
    read_state_file,
    write_state_file,
)

__all__ = [
    "DEFAULT_WORKSPACE",
    "TerraformCLI",
    "SubprocessTerraformCLI",
    "OVERRIDE_FILE_NAME",
    "local_backend_override",
    "maybe_tfvars",
    "read_state_file",
    "write_state_file",
]
