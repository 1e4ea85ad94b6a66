"""
Admin authentication for the wallet routes.

The dashboard signs admins in through its own auth provider and calls this
service server-to-server with a shared key in the X-Admin-Key header.
"""

import hmac
import os
from fastapi import Header
from dotenv import load_dotenv
from pnd_wallet.core.exceptions import SecurityError
import logging

load_dotenv()

logger = logging.getLogger(__name__)

ADMIN_API_KEY = os.getenv("ADMIN_API_KEY")
MONITORING_API_KEY = os.getenv("MONITORING_API_KEY")


async def verify_admin_key(x_admin_key: str = Header(None)):
    """
    Reject requests without a valid admin key.

    Raises:
        SecurityError: If the key is not configured, missing, or wrong
    """
    if not ADMIN_API_KEY:
        logger.error("ADMIN_API_KEY is not configured; denying wallet request")
        raise SecurityError("Admin access not configured", "admin_authentication")

    if not x_admin_key:
        logger.warning("Missing admin key header in wallet request")
        raise SecurityError("Missing admin key header", "admin_authentication")

    # Constant-time comparison to prevent timing attacks
    if not hmac.compare_digest(x_admin_key, ADMIN_API_KEY):
        logger.warning("Invalid admin key in wallet request")
        raise SecurityError("Invalid admin key", "admin_authentication")

    return True


async def verify_monitoring_access(x_monitoring_key: str = Header(None)):
    """
    API key check for the internal monitoring endpoint. Fails closed when no
    key is configured.
    """
    if not MONITORING_API_KEY:
        raise SecurityError("Monitoring access not configured", "monitoring_authentication")

    if not x_monitoring_key or not hmac.compare_digest(x_monitoring_key, MONITORING_API_KEY):
        raise SecurityError("Invalid monitoring credentials", "monitoring_authentication")

    return True
