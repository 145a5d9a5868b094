import json

import pytest

from aqar.services.claude_service import (
    ClaudeCriteriaService,
    get_claude_service,
    strip_code_fence,
)
from tests.helpers import FakeAnthropic

REPLY = {
    "type": "فلة",
    "city": "رياض",
    "districts": ["نرجس"],
    "features": {"required": ["حمام سباحة"], "optional": []},
    "room_count": 5,
    "max_price": 3500000,
}


def test_strip_code_fence():
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('  {"a": 1} ') == '{"a": 1}'


def test_no_service_without_key(settings):
    assert get_claude_service(settings) is None


async def test_extract_criteria(settings, ar_extractor):
    client = FakeAnthropic("```json\n" + json.dumps(REPLY, ensure_ascii=False) + "\n```")
    service = ClaudeCriteriaService(settings, client=client)

    criteria = await service.extract_criteria("ابي فلة برياض فيها حمام سباحة", ar_extractor)

    assert criteria.type == "فيلا"
    assert criteria.city == "الرياض"
    assert criteria.districts == ["النرجس"]
    assert criteria.features.required == ["مسبح"]
    assert criteria.room_count == 5
    assert criteria.max_price == 3_500_000

    [request] = client.requests
    assert request["model"] == settings.claude_model
    assert "الرياض" in request["system"]
    assert "ابي فلة" in request["messages"][0]["content"]


async def test_invalid_json(settings, ar_extractor):
    service = ClaudeCriteriaService(settings, client=FakeAnthropic("I could not help"))
    with pytest.raises(ValueError):
        await service.extract_criteria("فيلا", ar_extractor)


async def test_invalid_criteria(settings, ar_extractor):
    reply = json.dumps({"min_price": 5_000_000, "max_price": 1_000_000})
    service = ClaudeCriteriaService(settings, client=FakeAnthropic(reply))
    with pytest.raises(ValueError):
        await service.extract_criteria("فيلا", ar_extractor)
