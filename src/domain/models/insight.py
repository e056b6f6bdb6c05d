"""Persona insight domain model.

Insights are produced by analysis outside the interview loop and read back
for the persona profile view.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class Insight(BaseModel):
    id: str
    session_id: str
    category: str  # snake_case facet, e.g. "core_values"
    key_phrase: str
    content: str
    confidence: float = Field(ge=0.0, le=1.0)
    category_id: Optional[str] = None
    category_name: str = "General"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
