"""
Domain module - Business models

Contains pure data types shared by the engine, the store and the providers.
"""

from arbedge.domain.models import (
    DRAW_LABEL,
    Event,
    Leg,
    Opportunity,
    Quote,
    RefreshResult,
    Sport,
    build_quote,
    is_valid_price,
    make_event_id,
    normalize_side,
    side_key,
)

__all__ = [
    "DRAW_LABEL",
    "Event",
    "Leg",
    "Opportunity",
    "Quote",
    "RefreshResult",
    "Sport",
    "build_quote",
    "is_valid_price",
    "make_event_id",
    "normalize_side",
    "side_key",
]
