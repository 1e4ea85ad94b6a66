"""
Rate limiter shared by the wallet routes.

Transfers move money, so they get a tighter per-client budget than reads.
Budgets come from the loaded configuration and are resolved on every request;
before `load_config()` has run the `RateLimitConfig` defaults apply.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from pnd_wallet.core.config import RateLimitConfig, get_config
from pnd_wallet.core.exceptions import ConfigurationError

limiter = Limiter(key_func=get_remote_address, default_limits=["100 per minute"])


def _rate_limits() -> RateLimitConfig:
    try:
        return get_config().rate_limit
    except ConfigurationError:
        return RateLimitConfig()


def transfer_rate_limit() -> str:
    return _rate_limits().transfer_rate_limit


def api_rate_limit() -> str:
    return _rate_limits().api_rate_limit
