"""Site clients for discovery and enrichment sources."""

from .headers import HeaderRotation
from .metacritic_client import MetacriticClient, MetacriticResult
from .steam_client import SearchPage, SteamClient
from .turnbasedlovers_client import TurnBasedLoversClient

__all__ = [
    "HeaderRotation",
    "MetacriticClient",
    "MetacriticResult",
    "SearchPage",
    "SteamClient",
    "TurnBasedLoversClient",
]
