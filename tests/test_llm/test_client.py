"""Tests for the completion client against a scripted transport."""

from __future__ import annotations

import json

import pytest

from eis_dashboard.errors import NotConfigured, Unavailable, Unparseable
from eis_dashboard.llm.client import build_request, parse_payload, serialize_content
from eis_dashboard.llm.contract import FREE_TEXT, FreeText, Structured, select_contract
from eis_dashboard.llm.prompts import topic_schema
from eis_dashboard.llm.transport import AnthropicTransport, TransportError
from eis_dashboard.models.conversation import StructuredReport, Turn
from tests.conftest import REPORT, REPORT_JSON, FakeTransport, make_client

SCHEMA = Structured(topic_schema("general", "sweep"))


def _turns(n: int) -> list[Turn]:
    turns = []
    for i in range(n):
        if i % 2 == 0:
            turns.append(Turn(role="requester", content=f"question {i}"))
        else:
            turns.append(Turn(role="responder", content=StructuredReport.model_validate(REPORT)))
    return turns


class TestSelectContract:
    def test_first_exchange_keeps_structured(self):
        assert select_contract(_turns(1), SCHEMA) is SCHEMA

    def test_follow_up_downgrades(self):
        assert isinstance(select_contract(_turns(3), SCHEMA), FreeText)

    def test_free_text_never_upgrades(self):
        assert select_contract(_turns(1), FREE_TEXT) is FREE_TEXT


class TestBuildRequest:
    def test_roles_and_order(self):
        request = build_request(_turns(3), "be brief", FREE_TEXT)
        assert [role for role, _ in request.messages] == ["user", "assistant", "user"]
        assert request.messages[0][1] == "question 0"
        assert request.schema is None
        assert request.system == "be brief"

    def test_structured_content_serialized_canonically(self):
        request = build_request(_turns(2), "x", FREE_TEXT)
        text = request.messages[1][1]
        assert json.loads(text)["summary"] == REPORT["summary"]
        assert text == serialize_content(_turns(2)[1])
        assert text.index('"metrics"') < text.index('"summary"') < text.index('"title"')

    def test_structured_contract_adds_schema(self):
        request = build_request(_turns(1), "analyze", SCHEMA)
        assert request.schema == SCHEMA.schema
        assert request.system.startswith("analyze")
        assert '"metrics"' in request.system


class TestParsePayload:
    def test_structured(self):
        report = parse_payload(REPORT_JSON, SCHEMA)
        assert isinstance(report, StructuredReport)
        assert report.title == "Soil Analysis Report"
        assert len(report.metrics) == 2

    def test_structured_in_code_fence(self):
        report = parse_payload(f"```json\n{REPORT_JSON}\n```", SCHEMA)
        assert report.summary == REPORT["summary"]

    def test_legacy_report_title_alias(self):
        data = dict(REPORT)
        data["report_title"] = data.pop("title")
        assert parse_payload(json.dumps(data), SCHEMA).title == "Soil Analysis Report"

    def test_free_text_under_structured_is_unparseable(self):
        with pytest.raises(Unparseable):
            parse_payload("The soil looks wet.", SCHEMA)

    def test_wrong_shape_is_unparseable(self):
        with pytest.raises(Unparseable):
            parse_payload('{"title": "only a title"}', SCHEMA)

    def test_empty_payload(self):
        with pytest.raises(Unparseable):
            parse_payload("   ", FREE_TEXT)
        with pytest.raises(Unparseable):
            parse_payload(None, SCHEMA)

    def test_free_text(self):
        assert parse_payload("  Looks capacitive.\n", FREE_TEXT) == "Looks capacitive."


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_transient_failures_exhaust_retries(self, sleep):
        transport = FakeTransport(
            TransportError("boom", status_code=503),
            TransportError("boom", status_code=500),
            TransportError("boom", status_code=502),
        )
        client = make_client(transport, sleep)
        with pytest.raises(Unavailable) as exc:
            await client.complete(_turns(1), "x", SCHEMA)
        assert len(transport.requests) == 3
        assert sleep.delays == [1.0, 2.0]
        assert exc.value.status_code == 502

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, sleep):
        transport = FakeTransport(TransportError("bad request", status_code=400), REPORT_JSON)
        client = make_client(transport, sleep)
        with pytest.raises(Unavailable) as exc:
            await client.complete(_turns(1), "x", SCHEMA)
        assert len(transport.requests) == 1
        assert sleep.delays == []
        assert exc.value.status_code == 400

    @pytest.mark.asyncio
    async def test_recovers_after_network_error(self, sleep):
        transport = FakeTransport(TransportError("connection reset"), REPORT_JSON)
        client = make_client(transport, sleep)
        report = await client.complete(_turns(1), "x", SCHEMA)
        assert isinstance(report, StructuredReport)
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_not_configured_makes_no_call(self, sleep):
        transport = FakeTransport(REPORT_JSON)
        client = make_client(transport, sleep, api_key="")
        with pytest.raises(NotConfigured):
            await client.complete(_turns(1), "x", SCHEMA)
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_unparseable_is_not_retried(self, sleep):
        transport = FakeTransport("not json at all", REPORT_JSON)
        client = make_client(transport, sleep)
        with pytest.raises(Unparseable):
            await client.complete(_turns(1), "x", SCHEMA)
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_follow_up_switches_to_free_text(self, sleep):
        transport = FakeTransport("It is mostly resistive.")
        client = make_client(transport, sleep)
        answer = await client.complete(_turns(3), "x", SCHEMA)
        assert answer == "It is mostly resistive."
        assert transport.requests[0].schema is None

    @pytest.mark.asyncio
    async def test_unexpected_transport_failure_is_wrapped(self, sleep):
        transport = FakeTransport(RuntimeError("unexpected SDK failure"), REPORT_JSON)
        client = make_client(transport, sleep)
        with pytest.raises(Unavailable, match="unexpected SDK failure"):
            await client.complete(_turns(1), "x", SCHEMA)
        assert len(transport.requests) == 1
        assert sleep.delays == []


class TestAnthropicTransport:
    @pytest.mark.asyncio
    async def test_other_sdk_errors_become_transport_errors(self, monkeypatch):
        import anthropic
        import httpx
        from langchain_anthropic import ChatAnthropic

        async def fail(self, messages, *args, **kwargs):
            raise anthropic.APIError("malformed body", httpx.Request("POST", "https://api.anthropic.com"), body=None)

        monkeypatch.setattr(ChatAnthropic, "ainvoke", fail)
        transport = AnthropicTransport("test-key")
        request = build_request(_turns(1), "x", FREE_TEXT)

        with pytest.raises(TransportError) as exc:
            await transport.send(request)
        assert exc.value.status_code is None
        assert "malformed body" in str(exc.value)
