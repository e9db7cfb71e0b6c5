from __future__ import annotations

from typing import TYPE_CHECKING

from skillmesh_core.errors import ConfigError
from skillmesh_core.logging import get_logger

if TYPE_CHECKING:
    from nats.aio.client import Client as NATSClient

logger = get_logger("backend.nats")


async def connect(
    nats_url: str,
    creds_file: str | None = None,
) -> NATSClient:
    """Connect to NATS and return the client."""
    try:
        import nats
    except ModuleNotFoundError as exc:
        raise ConfigError(
            "nats extra is required for the NATS backend. "
            "Install with: pip install skillmesh[nats]"
        ) from exc

    connect_kwargs: dict = {"servers": [nats_url]}
    if creds_file:
        connect_kwargs["user_credentials"] = creds_file

    try:
        nc: NATSClient = await nats.connect(**connect_kwargs)
    except Exception:
        logger.exception("Failed to connect to NATS at %s", nats_url)
        raise

    logger.info("Connected to NATS at %s", nats_url)
    return nc
