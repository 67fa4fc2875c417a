"""
Discovery Strategies
====================

Strategy pattern implementations turning seed artists into ordered
candidate batches.

Available strategies:
- ArtistDiscoveryStrategy: similar artists of every seed, expanded to top tracks
- TrackDiscoveryStrategy: similar tracks of every seed track
- GenreDiscoveryStrategy: top artists of the seed genres/tags
- ContextDiscoveryStrategy: mood/activity recommendations blended with seed similarity
"""

from .artist_strategy import ArtistDiscoveryStrategy
from .base_strategy import CandidateBatch, DiscoveryStrategy
from .blending import blend_pools, split_counts
from .context_strategy import ContextDiscoveryStrategy
from .genre_strategy import GenreDiscoveryStrategy
from .strategy_factory import create_strategy, get_supported_modes
from .track_strategy import TrackDiscoveryStrategy

__all__ = [
    "ArtistDiscoveryStrategy",
    "CandidateBatch",
    "ContextDiscoveryStrategy",
    "DiscoveryStrategy",
    "GenreDiscoveryStrategy",
    "TrackDiscoveryStrategy",
    "blend_pools",
    "create_strategy",
    "get_supported_modes",
    "split_counts",
]
