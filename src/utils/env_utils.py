"""
Environment Utility Functions
===========================

This module loads the project ``.env`` file and reads credentials from the
environment. Credentials are returned to the caller and handed to client
factories explicitly; nothing here stores them globally.

Functions:
    load_env_variables: Load environment variables from a .env file.
    get_api_key: Read a required credential from the environment.

Example:
    >>> from src.utils.env_utils import load_env_variables, get_api_key
    >>> dotenv_path, success = load_env_variables()
    >>> ors_key = get_api_key("ORS_API_KEY")
"""

# Standard library imports
import os
import logging
from pathlib import Path
from typing import Tuple, List, Optional, Union

# Third-party imports
from dotenv import load_dotenv

# Local imports
from src.utils.logging_utils import LogContext, with_log_context
from src.utils.error_utils import (
    handle_exception,
    ExceptionContext,
    ConfigMissingError,
    ConfigError,
)

DEFAULT_DOTENV_PATH = Path(__file__).resolve().parent.parent.parent / ".env"


@handle_exception(custom_mapping={Exception: ConfigError})
@with_log_context(module="env_utils", operation="load_env_variables")
def load_env_variables(
    required_vars: Optional[List[str]] = None,
    dotenv_path: Optional[Union[str, Path]] = None,
) -> Tuple[Path, bool]:
    """
    Load environment variables from a .env file.

    Variables already present in the process environment are kept; the file
    only fills in what is missing. Required variables are checked even when no
    .env file exists, since they may come from the shell.

    Args:
        required_vars: List of required environment variable names
        dotenv_path: Optional path to the .env file (project root by default)

    Returns:
        Tuple of (dotenv_path, loaded)

    Raises:
        ConfigMissingError: When required variables are missing
    """
    dotenv_path = Path(dotenv_path) if dotenv_path else DEFAULT_DOTENV_PATH

    with LogContext(file_path=str(dotenv_path)):
        with ExceptionContext("Loading .env file", ConfigError):
            loaded = load_dotenv(dotenv_path=dotenv_path)

        if loaded:
            logging.info(".env file loaded successfully")
        else:
            logging.warning(f".env file not found at {dotenv_path}")

        if required_vars:
            missing_vars = [var for var in required_vars if not os.environ.get(var)]
            if missing_vars:
                missing_vars_str = ", ".join(missing_vars)
                logging.error(
                    f"Missing required environment variables: {missing_vars_str}"
                )
                raise ConfigMissingError(
                    f"Missing required environment variables: {missing_vars_str}"
                )
            logging.info(
                f"All required environment variables are present ({len(required_vars)} checked)"
            )

    return dotenv_path, loaded


def get_api_key(var_name: str = "ORS_API_KEY") -> str:
    """
    Read a credential from the environment.

    Raises:
        ConfigMissingError: When the variable is unset or empty
    """
    api_key = os.environ.get(var_name, "").strip()
    if not api_key:
        raise ConfigMissingError(
            f"{var_name} not found. Set it in the environment or in the .env file."
        )
    return api_key
