"""
Mass Contrib Update
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import json
import logging
import sys
from pathlib import Path

LOGGER_NAME = "mass_contrib_update"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "NOTICE": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def log_message(message, level="INFO"):
    """
    Unified logger used by the orchestrator and every component.
    Args:
        message (str): The message to log.
        level (str): Log level (e.g., 'INFO', 'ERROR').
    """
    logging.getLogger(LOGGER_NAME).log(_LEVELS.get(level.upper(), logging.INFO), message)


def get_module_version(module_path: str) -> str:
    """
    Get the schema version from a package's index.json file.

    Returns:
        str: The schema version from index.json, or "unknown" if not found
    """
    try:
        with open(Path(module_path) / "index.json", 'r') as f:
            return json.load(f).get("metadata", {}).get("schema_version", "unknown")
    except (OSError, ValueError) as e:
        log_message(f"Failed to read module version from {module_path}: {e}", "ERROR")
        return "unknown"


def setup_global_update_logging(debug: bool = False) -> None:
    """
    Log to stdout only; callers redirect to a file if they want one.
    """
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    unified_format = logging.Formatter('[%(asctime)s] [%(levelname)s] %(message)s',
                                       datefmt='%Y-%m-%d %H:%M:%S')
    console_handler.setFormatter(unified_format)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.addHandler(console_handler)
    log_message("=" * 80)
    log_message("MASS CONTRIB UPDATE SESSION STARTED")
    log_message(f"Command: {' '.join(sys.argv)}")
    log_message("=" * 80)
    log_message(f"Python Version: {sys.version}", "DEBUG")


def enable_debug_logging() -> None:
    """Raise console verbosity to DEBUG after logging is already set up."""
    for handler in logging.getLogger(LOGGER_NAME).handlers:
        handler.setLevel(logging.DEBUG)


def confirm(question: str, assume_yes: bool = False) -> bool:
    """
    Ask a yes/no question on the terminal.

    Returns True without asking when assume_yes is set. Anything other than
    y/yes, including end of input, counts as no.
    """
    if assume_yes:
        log_message(f"{question}[y/n] y (assumed)")
        return True
    try:
        answer = input(f"{question}[y/n] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")
