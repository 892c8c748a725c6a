"""
Load environment variables from AWS Secrets Manager before Django settings are loaded.
Import this module first in manage.py and asgi.py so os.environ is populated
before relay_server.settings and relay_server.applib.config are evaluated.

Secret name: set RELAY_SECRET_NAME (e.g. "relay-prod/secrets"). When it is not
set nothing is fetched and the process runs from its plain environment, which
is the normal local setup.
Uses setdefault so existing env vars (e.g. from the host dashboard) override secret values.
"""
import json
import logging
import os

import boto3

logger = logging.getLogger(__name__)


def load_secrets_from_aws(secret_name: str, region: str | None = None) -> int:
    """Copy every key of the JSON secret into os.environ. Returns how many keys were set."""
    region = region or os.environ.get("AWS_REGION", "us-east-2")
    client = boto3.client("secretsmanager", region_name=region)
    response = client.get_secret_value(SecretId=secret_name)
    secret_str = response.get("SecretString")
    if not secret_str:
        raise RuntimeError(f"Secret {secret_name!r} has no SecretString")
    data = json.loads(secret_str)
    loaded = 0
    for key, value in data.items():
        if value is not None and key not in os.environ:
            os.environ[key] = str(value)
            loaded += 1
    return loaded


def bootstrap() -> None:
    secret_name = (os.environ.get("RELAY_SECRET_NAME") or "").strip()
    if not secret_name:
        return
    loaded = load_secrets_from_aws(secret_name)
    logger.info("Loaded %d environment values from secret %s", loaded, secret_name)


# Run on import so that any later import of settings sees the env
bootstrap()
