"""Oracle and execution service clients."""

from pulse_app.clients.hermes_rest import HermesRestClient, RateLimiter
from pulse_app.clients.hermes_ws import (
    HermesPriceListener,
    HermesPriceStream,
    HermesStreamError,
    create_stream_factory,
)
from pulse_app.clients.execution_client import ExecutionServiceClient

__all__ = [
    "HermesRestClient",
    "RateLimiter",
    "HermesPriceListener",
    "HermesPriceStream",
    "HermesStreamError",
    "create_stream_factory",
    "ExecutionServiceClient",
]
