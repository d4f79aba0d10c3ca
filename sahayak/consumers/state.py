"""
Base state for consumer state containers.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ConsumerState(BaseModel):
    """
    Loading flags and freshness metadata shared by every consumer state.

    Subclasses add their own payload fields; use `model_copy(update=...)`
    to derive new states. Staleness is judged by the owning consumer's
    `StalenessPolicy`, not by the state itself.
    """

    model_config = ConfigDict(frozen=True)

    is_loading: bool = False
    is_refreshing: bool = False
    error: Optional[str] = None
    last_updated: Optional[datetime] = None
    is_from_cache: bool = False
