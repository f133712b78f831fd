from marketview.coingecko.client import CoinGeckoClient
from marketview.coingecko.errors import (
    CoinGeckoHttpError,
    FatalHttpError,
    RateLimitedError,
    RequestTimeoutError,
    TransientHttpError,
)

__all__ = [
    "CoinGeckoClient",
    "CoinGeckoHttpError",
    "FatalHttpError",
    "RateLimitedError",
    "RequestTimeoutError",
    "TransientHttpError",
]
