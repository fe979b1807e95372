"""
tfshift/utils/ephemeral_file.py

Provides a generalized async context manager for ephemeral files that supports both:

1) **Single-file mode**: Create one ephemeral file path, yield that path (as a string).
2) **Multi-file mode**: Create one path per name in `file_names`, yield a dict of
   name -> ephemeral path.

State documents handed to `terraform state mv/rm/import` and read back afterwards
live here; nothing is left on disk once the block exits. The directory is created
under `/dev/shm` when available so state never touches persistent storage.
"""

import os
import shutil
import tempfile
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional, Sequence, Union

_SHM_DIR = "/dev/shm"


def default_parent_dir() -> Optional[str]:
    """Return /dev/shm if it exists, otherwise None (the platform temp dir)."""
    return _SHM_DIR if os.path.isdir(_SHM_DIR) else None


@asynccontextmanager
async def ephemeral_manager(
    *,
    single_file_name: Optional[str] = None,
    file_names: Optional[Sequence[str]] = None,
    prefix: str = "tfshift-",
    parent_dir: Optional[str] = None,
) -> AsyncGenerator[Union[str, Dict[str, str]], None]:
    """
    A generalized async context manager for ephemeral files.

    Files are only named here, not created: callers (or Terraform itself) create
    them. Everything in the ephemeral directory is removed on exit.

    Args:
        single_file_name: The ephemeral filename if you only want one file.
        file_names: Several ephemeral filenames, yielded as a dict.
        prefix: Prefix for the ephemeral directory name.
        parent_dir: Where to place the ephemeral directory. Defaults to /dev/shm
            when present.

    Yields:
        str or Dict[str,str], depending on the mode.

    Raises:
        ValueError: If both single_file_name and file_names are provided, or neither is.
    """
    if (single_file_name is not None and file_names is not None) or (
        single_file_name is None and file_names is None
    ):
        raise ValueError("Must provide exactly one of 'single_file_name' or 'file_names'.")

    ephemeral_dir = tempfile.mkdtemp(dir=parent_dir or default_parent_dir(), prefix=prefix)

    try:
        if single_file_name is not None:
            yield os.path.join(ephemeral_dir, single_file_name)
        else:
            assert file_names is not None, "file_names unexpectedly None"
            yield {name: os.path.join(ephemeral_dir, name) for name in file_names}
    finally:
        shutil.rmtree(ephemeral_dir, ignore_errors=True)
