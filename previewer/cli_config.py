"""Configuration loading helpers for CLI entrypoints."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable


def load_config(
    *,
    config_dir: Path,
    config_env_file: Path,
    cwd: Path,
    load_env: Callable[[Path], bool],
    copy_file: Callable[[Path, Path], str],
    example_file: Path,
) -> None:
    """Load .env from the working directory, else from the user config dir.

    When neither exists, the packaged ``.env.example`` seeds the user config
    file so there is something to edit.
    """
    local_env = cwd / ".env"
    if local_env.is_file():
        load_env(local_env)
        return

    if config_env_file.is_file():
        load_env(config_env_file)
        return

    if not example_file.is_file():
        return

    try:
        config_dir.mkdir(parents=True, exist_ok=True)
        copy_file(example_file, config_env_file)
    except OSError as exc:
        logging.warning("Could not create %s: %s", config_env_file, exc)
        return

    logging.info(
        "Created config file at %s from .env.example. "
        "Set PREVIEW_ADMIN_SECRET and GITHUB_TOKEN there.",
        config_env_file,
    )
    load_env(config_env_file)
