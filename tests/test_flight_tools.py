"""
Tests for FlightCostLookup and FlightBooking, with the pricing backend mocked through httpx.MockTransport.
"""

import json

import httpx
import pytest

from app.agent.tools import FlightBookingTool, FlightCostLookupTool
from app.core.errors import ToolInputValidationError
from app.services.flight_service import LOOKUP_FAILED_MESSAGE, build_cost_url, lookup_flight_cost
from app.schemas.tools import FlightCostLookupInput

LOOKUP_ARGS = {
    "departure_airport_code": "JFK",
    "arrival_airport_code": "LHR",
    "departure_date": "2026-12-14",
    "number_of_adults": 2,
    "number_of_children": 1,
    "number_of_infants": 0,
    "cabin_class": 1,
}

PRICING_BODY = {
    "itineraries": [
        {"id": "it-1", "pricing_options": [{"id": "po-1", "price": {"amount": 432.5, "update_status": "current"}}]}
    ],
    "legs": [
        {
            "id": "leg-1",
            "origin_place_id": "JFK",
            "destination_place_id": "LHR",
            "departure": "2026-12-14T18:30:00",
            "arrival": "2026-12-15T06:45:00",
        }
    ],
    "segments": [{"id": "seg-1", "mode": "flight"}],
}


def _transport(requests: list[httpx.Request], status_code: int = 200, body=PRICING_BODY) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if isinstance(body, (dict, list)):
            return httpx.Response(status_code, json=body)
        return httpx.Response(status_code, text=body)

    return httpx.MockTransport(handler)


def test_cost_url_path_segments() -> None:
    url = build_cost_url(FlightCostLookupInput(**LOOKUP_ARGS), base_url="https://pricing.example/cost/")
    assert url == "https://pricing.example/cost/JFK/LHR/2026-12-14/2/1/0/1/USD"


def test_cost_url_quotes_each_segment() -> None:
    request = FlightCostLookupInput.model_construct(**{**LOOKUP_ARGS, "departure_airport_code": "../", "arrival_airport_code": "L?R"})
    url = build_cost_url(request, base_url="https://pricing.example/cost")
    assert url == "https://pricing.example/cost/..%2F/L%3FR/2026-12-14/2/1/0/1/USD"


class TestFlightCostLookup:
    @pytest.mark.asyncio
    async def test_single_get_with_path_params(self) -> None:
        requests: list[httpx.Request] = []
        tool = FlightCostLookupTool(transport=_transport(requests))

        output = await tool.run(LOOKUP_ARGS)

        assert len(requests) == 1
        assert requests[0].method == "GET"
        assert requests[0].url.path.split("/")[-8:] == ["JFK", "LHR", "2026-12-14", "2", "1", "0", "1", "USD"]
        data = json.loads(output)
        assert data["itineraries"][0]["pricing_options"][0]["price"]["amount"] == 432.5
        assert data["legs"][0]["destination_place_id"] == "LHR"
        assert data["segments"] == [{"id": "seg-1", "mode": "flight"}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [404, 500])
    async def test_non_2xx_is_a_tool_failure(self, status_code) -> None:
        requests: list[httpx.Request] = []
        tool = FlightCostLookupTool(transport=_transport(requests, status_code=status_code, body={"error": "x"}))
        with pytest.raises(ToolInputValidationError) as exc_info:
            await tool.run(LOOKUP_ARGS)
        assert str(exc_info.value) == LOOKUP_FAILED_MESSAGE
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_network_error_is_a_tool_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        tool = FlightCostLookupTool(transport=httpx.MockTransport(handler))
        with pytest.raises(ToolInputValidationError) as exc_info:
            await tool.run(LOOKUP_ARGS)
        assert str(exc_info.value) == LOOKUP_FAILED_MESSAGE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"itineraries": "nope"}, "<html>gateway</html>"])
    async def test_malformed_body_is_a_tool_failure(self, body) -> None:
        tool = FlightCostLookupTool(transport=_transport([], body=body))
        with pytest.raises(ToolInputValidationError):
            await tool.run(LOOKUP_ARGS)

    @pytest.mark.asyncio
    async def test_bad_date_rejected_before_any_request(self) -> None:
        requests: list[httpx.Request] = []
        tool = FlightCostLookupTool(transport=_transport(requests))
        with pytest.raises(ToolInputValidationError) as exc_info:
            await tool.run({**LOOKUP_ARGS, "departure_date": "14/12/2026"})
        assert "departure_date" in str(exc_info.value)
        assert requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field,code",
        [
            ("departure_airport_code", "J\x00K"),
            ("departure_airport_code", "../"),
            ("arrival_airport_code", "L?R"),
            ("arrival_airport_code", "LH1"),
        ],
    )
    async def test_bad_airport_code_rejected_before_any_request(self, field, code) -> None:
        requests: list[httpx.Request] = []
        tool = FlightCostLookupTool(transport=_transport(requests))
        with pytest.raises(ToolInputValidationError) as exc_info:
            await tool.run({**LOOKUP_ARGS, field: code})
        assert field in str(exc_info.value)
        assert requests == []

    @pytest.mark.asyncio
    async def test_invalid_url_is_a_tool_failure(self) -> None:
        requests: list[httpx.Request] = []
        with pytest.raises(ToolInputValidationError) as exc_info:
            await lookup_flight_cost(
                FlightCostLookupInput(**LOOKUP_ARGS),
                transport=_transport(requests),
                base_url="https://pricing.example/co\x00st",
            )
        assert str(exc_info.value) == LOOKUP_FAILED_MESSAGE
        assert requests == []


class TestFlightBooking:
    @pytest.mark.asyncio
    async def test_confirmation_from_llm(self) -> None:
        prompts: list[str] = []

        async def fake_llm(prompt: str, model=None, max_tokens=512) -> str:
            prompts.append(prompt)
            return "  Booking confirmed: FL-123, JFK to LHR on 2026-12-14.  "

        tool = FlightBookingTool(llm=fake_llm)
        output = await tool.run({"flight_id": "FL-123", "itinerary_details": "JFK to LHR, 2 adults"})

        assert json.loads(output) == {"confirmation": "Booking confirmed: FL-123, JFK to LHR on 2026-12-14."}
        assert len(prompts) == 1
        assert "Flight ID: FL-123" in prompts[0]
        assert "Itinerary Details: JFK to LHR, 2 adults" in prompts[0]
        assert "Do not generate any information that is not explicitly stated" in prompts[0]

    @pytest.mark.asyncio
    async def test_empty_confirmation_is_a_tool_failure(self) -> None:
        async def fake_llm(prompt: str, model=None, max_tokens=512) -> str:
            return "   "

        with pytest.raises(ToolInputValidationError):
            await FlightBookingTool(llm=fake_llm).run({"flight_id": "FL-1", "itinerary_details": "x"})

    @pytest.mark.asyncio
    async def test_missing_flight_id_rejected(self) -> None:
        async def fake_llm(prompt: str, model=None, max_tokens=512) -> str:
            raise AssertionError("LLM must not be called")

        with pytest.raises(ToolInputValidationError):
            await FlightBookingTool(llm=fake_llm).run({"itinerary_details": "x"})
