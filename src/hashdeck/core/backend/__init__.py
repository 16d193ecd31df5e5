"""Backend HTTP access — liveness probe and request/response client."""

from hashdeck.core.backend.client import BackendClient
from hashdeck.core.backend.prober import BackendProber

__all__ = ["BackendClient", "BackendProber"]
