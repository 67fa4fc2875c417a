"""
Strategy Factory
================

Maps a DiscoveryMode to its strategy implementation.

Usage:
    strategy = create_strategy(DiscoveryMode.ARTIST, lastfm)
    for batch in strategy.discover_batches(seeds, run_config):
        ...
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Type

from ..run_config import DiscoveryMode
from .artist_strategy import ArtistDiscoveryStrategy
from .base_strategy import DiscoveryStrategy
from .context_strategy import ContextDiscoveryStrategy
from .genre_strategy import GenreDiscoveryStrategy
from .track_strategy import TrackDiscoveryStrategy

logger = logging.getLogger(__name__)

_SIMILARITY_STRATEGIES: Dict[DiscoveryMode, Type[DiscoveryStrategy]] = {
    DiscoveryMode.ARTIST: ArtistDiscoveryStrategy,
    DiscoveryMode.TRACK: TrackDiscoveryStrategy,
    DiscoveryMode.GENRE: GenreDiscoveryStrategy,
}


def create_strategy(
    mode,
    similarity,
    context=None,
    *,
    checkpoint: Optional[Callable[[], None]] = None,
) -> DiscoveryStrategy:
    """Create the discovery strategy for a mode.

    Args:
        mode: DiscoveryMode (or its value)
        similarity: Similarity adapter
        context: Context adapter, required for mood and activity
        checkpoint: Cancellation checkpoint handed to the strategy

    Returns:
        DiscoveryStrategy instance

    Raises:
        ValueError: If the mode is unknown or mood/activity lacks a context adapter
    """
    try:
        mode = DiscoveryMode(mode)
    except ValueError:
        error = f"No discovery strategy for mode '{mode}'"
        logger.error(error)
        raise ValueError(error) from None

    if mode.is_context:
        if context is None:
            raise ValueError(f"{mode.label()} discovery needs a context adapter")
        strategy: DiscoveryStrategy = ContextDiscoveryStrategy(similarity, context, mode, checkpoint=checkpoint)
    else:
        strategy = _SIMILARITY_STRATEGIES[mode](similarity, checkpoint=checkpoint)

    logger.debug(f"Created strategy: mode={mode.value} strategy={strategy.__class__.__name__}")
    return strategy


def get_supported_modes() -> List[str]:
    """Values of every DiscoveryMode that has a strategy."""
    return [mode.value for mode in DiscoveryMode]
