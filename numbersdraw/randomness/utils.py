import os
import logging
from typing import Optional

import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Ensure environment variables from .env are loaded when this module is imported.
load_dotenv()


def open_session(api_key: Optional[str] = None) -> requests.Session:
    """Open a requests session authenticated against the randomness provider.

    Parameters
    ----------
    api_key : Optional[str]
        Bearer token for the provider. Falls back to ``RANDOMNESS_API_KEY``.

    Returns
    -------
    requests.Session
        Session with JSON and authorization headers preset.

    Raises
    ------
    RuntimeError
        If no API key is supplied or configured.
    """
    token = api_key or os.environ.get("RANDOMNESS_API_KEY")
    if not token:
        raise RuntimeError("Environment variable 'RANDOMNESS_API_KEY' is not set")

    session = requests.Session()
    session.headers.update(
        {
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
        }
    )
    # Never log the token itself
    logger.debug("Randomness provider session opened")
    return session
