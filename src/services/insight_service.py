"""
Persona insight read side.

Insights are written by analysis outside the interview loop (record_insight
is its entry point) and read back grouped by category for the persona
profile.
"""

from collections import OrderedDict
from enum import Enum
from typing import Dict, List, Optional

import structlog

from src.core.exceptions import ValidationError
from src.domain.models.insight import Insight
from src.persistence.change_feed import Subscription
from src.services.context import SessionContext

log = structlog.get_logger(__name__)


class ConfidenceBand(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def confidence_band(confidence: float) -> ConfidenceBand:
    if confidence >= 0.8:
        return ConfidenceBand.HIGH
    if confidence >= 0.6:
        return ConfidenceBand.MEDIUM
    return ConfidenceBand.LOW


def group_by_category(insights: List[Insight]) -> Dict[str, List[Insight]]:
    """Group by category name, keeping first-seen order of the groups."""
    grouped: Dict[str, List[Insight]] = OrderedDict()
    for insight in insights:
        grouped.setdefault(insight.category_name or "General", []).append(insight)
    return grouped


class InsightService:
    def __init__(self, context: SessionContext):
        self.context = context

    async def list_insights(self, session_id: str) -> List[Insight]:
        """Insights newest first."""
        return await self.context.insights().list_for_session(session_id)

    async def record_insight(
        self,
        session_id: str,
        category: str,
        key_phrase: str,
        content: str,
        confidence: float,
        category_id: Optional[str] = None,
    ) -> Insight:
        """
        Store one insight from the analyser.

        Raises:
            ValidationError: Confidence outside [0, 1] or empty text
        """
        if not 0.0 <= confidence <= 1.0:
            raise ValidationError(f"Confidence must be within [0, 1], got {confidence}")
        if not key_phrase.strip() or not content.strip():
            raise ValidationError("Insight key phrase and content must not be empty")

        insight = await self.context.insights().create(
            Insight(
                id="",
                session_id=session_id,
                category=category,
                key_phrase=key_phrase,
                content=content,
                confidence=confidence,
                category_id=category_id,
            )
        )
        log.info(
            "insight_recorded",
            session_id=session_id,
            category=category,
            confidence=confidence,
        )
        return insight

    def subscribe(self, session_id: str) -> Subscription:
        """Change events for the session's insights."""
        return self.context.change_feed.subscribe("persona_insights", session_id=session_id)
