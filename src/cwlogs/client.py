"""CloudWatch Logs client factory for cwlogs.

Credentials, region and profile come from the usual AWS sources (environment,
shared config files, instance metadata). A local .env file is loaded first so
AWS_PROFILE / AWS_REGION can live next to the project.
"""

from __future__ import annotations

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError
from dotenv import load_dotenv

from cwlogs.adapters.cloudwatch_client import CloudWatchLogsClient
from cwlogs.core.errors import CwError

LOGGER = logging.getLogger(__name__)

# Standard retry mode retries throttling and transient errors with backoff.
RETRY_CONFIG = Config(retries={"mode": "standard", "max_attempts": 5})


def build_client(profile: Optional[str] = None, region: Optional[str] = None) -> CloudWatchLogsClient:
    """Create a CloudWatch Logs client, failing fast on unusable settings."""

    load_dotenv()

    try:
        session = boto3.session.Session(profile_name=profile, region_name=region)
        boto_client = session.client("logs", config=RETRY_CONFIG)
    except BotoCoreError as exc:
        raise CwError(f"Failed creating AWS client: {exc}") from exc

    LOGGER.info(
        "Initializing CloudWatch Logs client (profile=%s, region=%s)",
        profile or session.profile_name,
        boto_client.meta.region_name,
    )
    return CloudWatchLogsClient(boto_client)
