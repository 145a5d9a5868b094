from types import SimpleNamespace
from typing import List

from aqar.models.property import Property


def make_property(pid: str, **overrides) -> Property:
    values = {
        "id": pid,
        "title": f"عقار {pid}",
        "description": "",
        "type": "شقة",
        "city": "الرياض",
        "district": "النرجس",
        "price": 1_000_000,
        "features": [],
    }
    values.update(overrides)
    return Property(**values)


class FakeEmbeddingProvider:
    """Returns a fixed query vector and records every call."""

    def __init__(self, vector: List[float]) -> None:
        self.vector = vector
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        return list(self.vector)


class FakeAnthropic:
    """Stands in for AsyncAnthropic; answers every request with `reply`."""

    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.requests = []
        self.messages = SimpleNamespace(create=self._create)

    async def _create(self, **kwargs):
        self.requests.append(kwargs)
        return SimpleNamespace(content=[SimpleNamespace(text=self.reply)])
