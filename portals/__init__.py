"""Acquisition client factory and exports."""

import logging
from typing import Any, Dict, Optional

from portals.base import AcquisitionClient, BrowserLaunchError, ChallengeError, TransportError
from utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def get_client(
    config: Dict[str, Any], rate_limiter: Optional[RateLimiter] = None
) -> AcquisitionClient:
    """
    Factory function to get the configured acquisition strategy.

    Args:
        config: Configuration dictionary from config.json
        rate_limiter: Limiter shared by every outbound acquisition call

    Returns:
        FundaApiClient, FundaBrowserClient or a FallbackAcquisitionClient
        combining both

    Raises:
        ValueError: If the strategy is not supported

    Example:
        >>> client = get_client({"acquisition": {"strategy": "direct"}})
        >>> client.get_strategy_name()
        'direct'
    """
    acquisition = config.get("acquisition", {})
    strategy = acquisition.get("strategy", "auto").lower()
    if rate_limiter is None:
        rate_limiter = RateLimiter(acquisition.get("min_interval_seconds", 1.0))

    from portals.funda.api_client import FundaApiClient

    if strategy == "direct":
        logger.info("Initializing direct HTTP acquisition client")
        return FundaApiClient(config, rate_limiter=rate_limiter)

    from portals.funda.browser_client import FundaBrowserClient

    if strategy == "browser":
        logger.info("Initializing browser acquisition client")
        return FundaBrowserClient(config, rate_limiter=rate_limiter)

    if strategy == "auto":
        from portals.fallback import FallbackAcquisitionClient

        logger.info("Initializing direct acquisition client with browser fallback")
        direct = FundaApiClient(config, rate_limiter=rate_limiter)
        browser = FundaBrowserClient(config, rate_limiter=rate_limiter, api_client=direct)
        return FallbackAcquisitionClient(config, primary=direct, fallback=browser)

    raise ValueError(
        f"Unsupported acquisition strategy: {strategy}. "
        f"Supported strategies: 'auto', 'direct', 'browser'"
    )


__all__ = ["get_client", "AcquisitionClient", "TransportError", "ChallengeError", "BrowserLaunchError"]
