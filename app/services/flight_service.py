"""
Flight services: price lookup against the external pricing backend and booking confirmations.

No real booking system exists; book_flight asks an LLM for a confirmation built only from
the details it was given.
"""

import logging
from typing import Awaitable, Callable
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from app.agent.llm import complete
from app.core.config import BOOKING_LLM_MODEL, FLIGHT_COST_API_URL, FLIGHT_CURRENCY, TOOLS_HTTP_TIMEOUT
from app.core.errors import ToolInputValidationError
from app.schemas.tools import FlightBookingResponse, FlightCostLookupInput, FlightCostLookupResponse

logger = logging.getLogger(__name__)

LOOKUP_FAILED_MESSAGE = "Invalid input or data fetch failed."


def build_cost_url(request: FlightCostLookupInput, base_url: str = FLIGHT_COST_API_URL) -> str:
    """Pricing endpoint addressed by path segments: airports, date, passenger counts, cabin, currency."""
    params = [
        request.departure_airport_code,
        request.arrival_airport_code,
        request.departure_date,
        str(request.number_of_adults),
        str(request.number_of_children),
        str(request.number_of_infants),
        str(request.cabin_class),
        FLIGHT_CURRENCY,
    ]
    return "/".join([base_url.rstrip("/")] + [quote(p, safe="") for p in params])


async def lookup_flight_cost(
    request: FlightCostLookupInput,
    transport: httpx.AsyncBaseTransport | None = None,
    base_url: str = FLIGHT_COST_API_URL,
) -> FlightCostLookupResponse:
    """
    Fetch itineraries and prices. Any failure (network, non-2xx, malformed body) raises
    ToolInputValidationError with the same message.
    """
    url = build_cost_url(request, base_url)
    logger.info("[flight_service:lookup] GET %s", url)
    try:
        async with httpx.AsyncClient(timeout=TOOLS_HTTP_TIMEOUT, transport=transport) as client:
            response = await client.get(url)
            response.raise_for_status()
            data = response.json()
        result = FlightCostLookupResponse.model_validate(data)
    except (httpx.HTTPError, httpx.InvalidURL, ValueError, ValidationError) as e:
        logger.warning("[flight_service:lookup] failed to fetch flight cost data: %s", e)
        raise ToolInputValidationError(LOOKUP_FAILED_MESSAGE) from e
    logger.info(
        "[flight_service:lookup] OUT itineraries=%d legs=%d segments=%d",
        len(result.itineraries),
        len(result.legs),
        len(result.segments),
    )
    return result


async def book_flight(
    flight_id: str,
    itinerary_details: str,
    llm: Callable[..., Awaitable[str]] = complete,
) -> FlightBookingResponse:
    """Generate a booking confirmation for flight_id without inventing details."""
    prompt = "\n".join(
        [
            "You are a mock system for flight booking that returns a realistic output of flight booking. "
            "Do not indicate that your response is synthetic.\n",
            "Warning: Do not generate any information that is not explicitly stated in the input.",
            f"Flight ID: {flight_id}",
            f"Itinerary Details: {itinerary_details}",
        ]
    )
    text = (await llm(prompt, model=BOOKING_LLM_MODEL)).strip()
    if not text:
        raise ToolInputValidationError("Booking confirmation could not be generated.")
    logger.info("[flight_service:book] flight_id=%s confirmation_len=%d", flight_id, len(text))
    return FlightBookingResponse(confirmation=text)
