# utils.py
"""
Utility functions for the simulation framework.

This module provides logging setup and configuration loading. They are
used by the application shell but do not belong to the physics or the
seed codec.
"""
import copy
import json
import logging
import logging.handlers
import os
from typing import Any, Dict

# --- Data Contracts ---
#
# setup_logging(config: Dict[str, Any]) -> None:
#   - Inputs:
#     - config: A dictionary with an optional "logging" key holding
#       "level", "format" and "log_file" sub-keys. An empty "log_file"
#       disables the file handler.
#   - Side Effects: Configures the root Python logger. Creates the log
#     directory if it doesn't exist.
#
# load_config(path: str) -> Dict[str, Any]:
#   - Outputs: DEFAULT_CONFIG overlaid, section by section, with the file.
#   - Errors: FileNotFoundError, json.JSONDecodeError, ValueError for a
#     section that is not a JSON object.

DEFAULT_CONFIG: Dict[str, Any] = {
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(levelname)s - %(message)s",
        "log_file": "logs/particle_life.log",
    },
    "simulation_parameters": {
        "seed": None,
        "population": 4000,
        "attraction_seed": None,
        "physics": {},
    },
    "run_control": {
        "max_steps": 0,
        "log_throttle_steps": 300,
        "headless": False,
    },
    "visualization": {
        "particle_size": 3,
    },
}


def setup_logging(config: Dict[str, Any]) -> None:
    """
    Configures the logging system from a configuration dictionary.

    Sets up logging to the console and, unless disabled, a rotating file.
    An empty "log_file" turns the file handler off, which keeps headless and
    test runs from leaving log files in the working directory.
    """
    log_config = config.get('logging', {})
    log_level = log_config.get('level', 'INFO').upper()
    log_format = log_config.get('format', DEFAULT_CONFIG['logging']['format'])
    log_file_path = log_config.get('log_file', DEFAULT_CONFIG['logging']['log_file'])

    logger = logging.getLogger()
    logger.setLevel(log_level)

    # Clear existing handlers to avoid duplication
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file_path:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        # Rotates at 1MB, keeps 5 backups.
        file_handler = logging.handlers.RotatingFileHandler(
            log_file_path, maxBytes=1024*1024, backupCount=5
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logging.info("Logging system initialized.")
    logging.debug(f"Log level set to {log_level}.")
    logging.debug(f"Log file path: {log_file_path or '(disabled)'}")


def load_config(path: str) -> Dict[str, Any]:
    """Loads a JSON configuration file on top of DEFAULT_CONFIG."""
    logging.info(f"Loading configuration from {path}...")
    try:
        with open(path, 'r') as f:
            loaded = json.load(f)
    except FileNotFoundError:
        logging.error(f"Configuration file not found at {path}.")
        raise
    except json.JSONDecodeError:
        logging.error(f"Error decoding JSON from {path}.")
        raise

    config = copy.deepcopy(DEFAULT_CONFIG)
    for section, values in loaded.items():
        if not isinstance(values, dict):
            msg = f"Configuration section '{section}' must be an object."
            logging.error(msg)
            raise ValueError(msg)
        config.setdefault(section, {}).update(values)
    logging.info("Configuration loaded successfully.")
    return config
