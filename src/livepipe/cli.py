"""Shared logic for CLI subcommands and in-app actions."""

import logging
import os
from pathlib import Path

from livepipe.config import LIVEPIPE_HOME, SETTINGS_FILE

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_YAML = """\
livepipe:
  shell: bash
  prompt: "| "

capture:
  buffer_size: 41943040

script:
  prefix: up

logging:
  # file: ~/.livepipe/livepipe.log
  level: WARNING
"""

SCRIPT_SHEBANG = "#!/bin/bash"


def run_init() -> None:
    """Bootstrap the ~/.livepipe directory with a default settings file.

    Idempotent: never overwrites an existing settings.yaml.
    """
    home = LIVEPIPE_HOME.expanduser()
    created_anything = False

    if not home.exists():
        home.mkdir(parents=True)
        print(f"Created {home}")
        created_anything = True

    settings_path = home / SETTINGS_FILE
    if not settings_path.exists():
        settings_path.write_text(DEFAULT_SETTINGS_YAML)
        print(f"Created {settings_path}")
        created_anything = True

    if not created_anything:
        print(f"Already initialized: {home}")


def save_script(command: str, directory: Path, prefix: str = "up") -> Path:
    """Write ``command`` to the first free ``<prefix>N.sh`` in ``directory``.

    The script is created executable and never overwrites an existing file.

    Returns:
        Path of the written script.
    """
    n = 1
    while True:
        path = directory / f"{prefix}{n}.sh"
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o755)
        except FileExistsError:
            n += 1
            continue
        with os.fdopen(fd, "w") as f:
            f.write(f"{SCRIPT_SHEBANG}\n{command}\n")
        logger.info("saved %r to %s", command, path)
        return path
