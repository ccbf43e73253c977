"""
Bearer-key check for the webhook

The bridge sends `Authorization: Bearer <key>`; any key listed in
WEBHOOK_API_KEYS is accepted. Several keys may be configured so a bridge can
be re-keyed without downtime. Keys never reach the logs, only a short
SHA-256 fingerprint.
"""
import hashlib
import hmac
import logging

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from drasbot import config

logger = logging.getLogger(__name__)

bearer = HTTPBearer(description="Webhook key shared with the WhatsApp bridge")


def fingerprint(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:8]


def _matches(candidate: str, keys: list[str]) -> bool:
    # Compare against every key so timing does not reveal which one is close
    found = False
    for key in keys:
        found |= hmac.compare_digest(candidate.encode(), key.encode())
    return found


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials = Security(bearer)
) -> str:
    """
    FastAPI dependency guarding the webhook.

    Returns:
        The fingerprint of the accepted key

    Raises:
        HTTPException: 503 with no keys configured, 401 for an unknown key
    """
    keys = list(config.WEBHOOK_API_KEYS)
    if not keys:
        logger.error("WEBHOOK_API_KEYS is empty, refusing webhook traffic")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook authentication not configured"
        )

    presented = credentials.credentials
    if not _matches(presented, keys):
        logger.warning(f"Rejected webhook call with unknown key {fingerprint(presented)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return fingerprint(presented)
