from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    """Whole on-disk content of one collection."""

    # Only items and lastUpdated are persisted; anything else at the top level is dropped
    model_config = ConfigDict(extra="ignore")

    items: list[dict[str, Any]] = Field(default_factory=list)
    lastUpdated: datetime | None = None

    def find_index(self, entity_id: str) -> int | None:
        for i, item in enumerate(self.items):
            if item.get("id") == entity_id:
                return i
        return None
