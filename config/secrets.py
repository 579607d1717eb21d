"""
Secret Manager accessor utility.

Loads secrets from GCP Secret Manager in production,
falls back to environment variables for local development.
"""
import logging
import os
from typing import Optional

from config.settings import settings

logger = logging.getLogger(__name__)


def _env_key(secret_id: str) -> str:
    return secret_id.upper().replace("-", "_")


def get_secret(secret_id: str, version: str = "latest") -> Optional[str]:
    """
    Retrieve a secret value from Secret Manager.

    Falls back to environment variable with same name (uppercase, hyphens
    replaced with underscores) for local development.

    Args:
        secret_id: The secret name in Secret Manager (e.g. "frase-api-key").
        version: Secret version. Defaults to "latest".

    Returns:
        The secret value, or None if not found.
    """
    # Try environment variable first (local dev)
    env_val = os.getenv(_env_key(secret_id))
    if env_val:
        return env_val

    try:
        from google.cloud import secretmanager

        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{settings.GCP_PROJECT}/secrets/{secret_id}/versions/{version}"
        response = client.access_secret_version(request={"name": name})
        return response.payload.data.decode("utf-8")
    except Exception as e:
        logger.error(f"Failed to access secret '{secret_id}': {e}")
        return None


def load_credentials(*secret_ids: str) -> dict[str, str]:
    """
    Resolve a group of required secrets in one pass.

    Raises:
        ValueError: naming every secret that is missing, not just the first.
    """
    values = {secret_id: get_secret(secret_id) for secret_id in secret_ids}
    missing = [secret_id for secret_id, value in values.items() if not value]
    if missing:
        raise ValueError(
            "Missing credentials: "
            + ", ".join(f"{m} (env {_env_key(m)})" for m in missing)
        )
    return values


def store_secret(secret_id: str, value: str) -> None:
    """
    Store a value as a new version of a Secret Manager secret.

    The secret is created on first use. Used for OAuth tokens, which are
    refreshed at runtime and must survive restarts.
    """
    from google.api_core.exceptions import NotFound
    from google.cloud import secretmanager

    client = secretmanager.SecretManagerServiceClient()
    project = f"projects/{settings.GCP_PROJECT}"
    parent = f"{project}/secrets/{secret_id}"
    payload = {"data": value.encode("utf-8")}

    try:
        client.add_secret_version(request={"parent": parent, "payload": payload})
    except NotFound:
        client.create_secret(
            request={
                "parent": project,
                "secret_id": secret_id,
                "secret": {"replication": {"automatic": {}}},
            }
        )
        client.add_secret_version(request={"parent": parent, "payload": payload})
    logger.info(f"Secret '{secret_id}' stored in Secret Manager")
