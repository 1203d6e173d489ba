"""
Google Cloud credential discovery.

Precedence:
1. Service account JSON named by GOOGLE_APPLICATION_CREDENTIALS
2. gcloud application default credentials in the well-known config path
3. Compute Engine metadata server
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import google.auth
import requests
from google.auth import compute_engine
from google.auth import exceptions as auth_exceptions
from google.auth.credentials import Credentials

from spanner_pitr.errors import ConfigError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]
ADC_FILENAME = "application_default_credentials.json"
DEFAULT_METADATA_HOST = "metadata.google.internal"
METADATA_TIMEOUT = 3  # seconds


@dataclass(frozen=True)
class DiscoveredCredentials:
    credentials: Credentials
    project_id: Optional[str]
    source: str


def gcloud_config_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    """
    Locate the gcloud configuration directory.

    Args:
        env: Environment mapping (os.environ by default)

    Returns:
        CLOUDSDK_CONFIG if set, %APPDATA%/gcloud on Windows, ~/.config/gcloud otherwise
    """
    env = os.environ if env is None else env
    if env.get("CLOUDSDK_CONFIG"):
        return Path(env["CLOUDSDK_CONFIG"])
    if os.name == "nt" and env.get("APPDATA"):
        return Path(env["APPDATA"]) / "gcloud"
    return Path.home() / ".config" / "gcloud"


def _load_file(path: Path, source: str) -> DiscoveredCredentials:
    try:
        credentials, project_id = google.auth.load_credentials_from_file(str(path), scopes=SCOPES)
    except auth_exceptions.DefaultCredentialsError as e:
        raise ConfigError(f"Invalid credentials file {path}: {e}") from e
    logger.debug(f"Loaded credentials from {source}: {path}")
    return DiscoveredCredentials(credentials, project_id, source)


def metadata_project_id(env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Ask the metadata server for the project ID.

    Returns:
        Project ID, or None if no metadata server answered
    """
    env = os.environ if env is None else env
    host = env.get("GCE_METADATA_HOST", DEFAULT_METADATA_HOST)
    try:
        response = requests.get(
            f"http://{host}/computeMetadata/v1/project/project-id",
            headers={"Metadata-Flavor": "Google"},
            timeout=METADATA_TIMEOUT,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        logger.debug(f"Metadata server unavailable: {e}")
        return None

    if response.headers.get("Metadata-Flavor") != "Google":
        return None
    return response.text.strip() or None


def discover_credentials(env: Optional[Mapping[str, str]] = None) -> DiscoveredCredentials:
    """
    Find credentials following the documented precedence.

    Args:
        env: Environment mapping (os.environ by default)

    Returns:
        Credentials, the project they belong to (if known) and where they came from

    Raises:
        ConfigError: If no source provides credentials
    """
    env = os.environ if env is None else env

    explicit = env.get("GOOGLE_APPLICATION_CREDENTIALS")
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise ConfigError(f"GOOGLE_APPLICATION_CREDENTIALS points to a missing file: {path}")
        return _load_file(path, "GOOGLE_APPLICATION_CREDENTIALS")

    well_known = gcloud_config_dir(env) / ADC_FILENAME
    if well_known.is_file():
        return _load_file(well_known, "gcloud")

    project_id = metadata_project_id(env)
    if project_id is not None:
        logger.debug(f"Using metadata server credentials for project {project_id}")
        return DiscoveredCredentials(
            compute_engine.Credentials(scopes=SCOPES), project_id, "metadata"
        )

    raise ConfigError(
        "No Google Cloud credentials found. Set GOOGLE_APPLICATION_CREDENTIALS, "
        "run `gcloud auth application-default login`, or run on Google Cloud."
    )
