import os
import io
import logging
import configparser
from pathlib import Path
from collections import namedtuple
from typing import Union

from .errors import ConfigBuildError

log = logging.getLogger(__name__)

DefaultPaths = namedtuple("DefaultPaths", ["pid_file", "error_log", "listen"])

GLOBAL_SECTION = "global"
POOL_SECTION = "www"


def default_paths(prefix: Union[str, Path], name: str) -> DefaultPaths:
    """
    Derives the pid file, error log and listen socket paths for a run name.

    :param prefix: The data directory.
    :param name: The base name of the files.
    :return: '<prefix>/<name>.pid', '<prefix>/<name>.error_log', '<prefix>/<name>.sock'
    """
    prefix = str(prefix)
    return DefaultPaths(
        pid_file=os.path.join(prefix, name + ".pid"),
        error_log=os.path.join(prefix, name + ".error_log"),
        listen=os.path.join(prefix, name + ".sock"),
    )


def build_config(pid_file: str, error_log: str, listen: str, workers: int, user: str = "") -> configparser.ConfigParser:
    """
    Generates a minimalistic php-fpm config running a single static pool.

    The `listen` value is written raw; php-fpm interprets the syntax itself.

    :raises ConfigBuildError: If the document cannot be constructed.
    """
    document = configparser.ConfigParser(interpolation=None)
    try:
        #* --- global ---
        document.add_section(GLOBAL_SECTION)
        document.set(GLOBAL_SECTION, "pid", str(pid_file))
        document.set(GLOBAL_SECTION, "error_log", str(error_log))

        #* --- www pool ---
        document.add_section(POOL_SECTION)
        document.set(POOL_SECTION, "listen", str(listen))
        document.set(POOL_SECTION, "pm", "static")
        document.set(POOL_SECTION, "pm.max_children", f"{workers:d}")
        if user:
            document.set(POOL_SECTION, "user", user)
    except (configparser.Error, TypeError, ValueError) as e:
        raise ConfigBuildError(f"Failed to build php-fpm config: {e}") from e
    return document


def render_config(document: configparser.ConfigParser) -> str:
    """Returns the config document as the text that would be written to disk."""
    buffer = io.StringIO()
    document.write(buffer)
    return buffer.getvalue()


def save_config(document: configparser.ConfigParser, path: Union[str, Path]) -> Path:
    """
    Writes the config document to `path`.

    :raises ConfigBuildError: If the file cannot be written.
    """
    path = Path(path)
    try:
        with path.open("w") as f:
            document.write(f)
    except OSError as e:
        raise ConfigBuildError(f"Failed to write php-fpm config to '{path}': {e}") from e
    log.debug(f"php-fpm config written to '{path}'.")
    return path
