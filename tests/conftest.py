"""Shared test fixtures."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from eis_dashboard.history.retriever import ContextRetriever
from eis_dashboard.history.store import RunStore
from eis_dashboard.llm.client import CompletionClient
from eis_dashboard.llm.transport import CompletionRequest, TransportError


# Sample uploads, as the device exports them

SWEEP_CSV = """Freq,Impedance,Phase,Temperature
1000,850.5,-30.2,21.5
100,1520.0,-62.5,21.4
5000,410.25,-12.0,21.6
"""

MAP_CSV = """x,y,frequency,mag,phase
0,0,100,1500,-60
0,0,1000,900,-35
1,0,100,1300,-55
1,0,1000,800,-30
0,1,100,1700,-65
0,1,1000,950,-40
"""

REPORT = {
    "title": "Soil Analysis Report",
    "summary": "Moist, moderately saline soil.",
    "metrics": [
        {"name": "Moisture Index", "value": "High", "insight": "Based on low-freq phase"},
        {"name": "Salinity", "value": "Moderate", "insight": "Based on high-freq magnitude"},
    ],
}

REPORT_JSON = json.dumps(REPORT)


class FakeTransport:
    """Scripted completion service. Each send pops the next response."""

    def __init__(self, *responses: str | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[CompletionRequest] = []

    async def send(self, request: CompletionRequest) -> str:
        self.requests.append(request)
        if not self.responses:
            raise TransportError("no scripted response left", status_code=500)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_client(transport: FakeTransport, sleep: SleepRecorder | None = None, api_key: str = "test-key") -> CompletionClient:
    return CompletionClient(
        transport=transport,
        api_key=api_key,
        max_attempts=3,
        backoff=1.0,
        sleep=sleep or SleepRecorder(),
    )


def days_ago(n: int) -> datetime:
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc) - timedelta(days=n)


@pytest.fixture
def sweep_csv() -> str:
    return SWEEP_CSV


@pytest.fixture
def map_csv() -> str:
    return MAP_CSV


@pytest.fixture
def store(tmp_path) -> RunStore:
    return RunStore(data_dir=tmp_path)


@pytest.fixture
def retriever(store) -> ContextRetriever:
    return ContextRetriever(store=store, owner="tester", limit=5)


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()
