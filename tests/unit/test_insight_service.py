"""Tests for persona insights."""

import pytest

from src.core.exceptions import ValidationError
from src.persistence.change_feed import ChangeType
from src.services.insight_service import (
    ConfidenceBand,
    InsightService,
    confidence_band,
    group_by_category,
)


@pytest.fixture
def service(context):
    return InsightService(context)


@pytest.mark.parametrize(
    "confidence,band",
    [(0.95, ConfidenceBand.HIGH), (0.8, ConfidenceBand.HIGH), (0.6, ConfidenceBand.MEDIUM),
     (0.59, ConfidenceBand.LOW), (0.0, ConfidenceBand.LOW)],
)
def test_confidence_band(confidence, band):
    assert confidence_band(confidence) == band


async def test_grouped_by_category_name(service, session):
    await service.record_insight(session.id, "origins", "Porto", "Grew up in Porto", 0.9, "early_life")
    await service.record_insight(session.id, "habits", "tea", "Drinks tea", 0.5)
    await service.record_insight(session.id, "siblings", "two brothers", "Has two brothers", 0.7, "early_life")

    groups = group_by_category(await service.list_insights(session.id))

    assert list(groups) == ["Early Life & Family", "General"]
    assert [i.key_phrase for i in groups["Early Life & Family"]] == ["two brothers", "Porto"]


@pytest.mark.parametrize("confidence", [-0.1, 1.2])
async def test_confidence_out_of_range_rejected(service, session, confidence):
    with pytest.raises(ValidationError):
        await service.record_insight(session.id, "x", "phrase", "content", confidence)


async def test_subscribe_receives_new_insights(service, session):
    subscription = service.subscribe(session.id)

    await service.record_insight(session.id, "origins", "Porto", "Grew up in Porto", 0.9)

    event = await subscription.get(timeout=1.0)
    assert event.change == ChangeType.INSERT
    assert event.record["key_phrase"] == "Porto"
    subscription.close()
