"""Schemas for agent tool inputs and structured tool outputs."""

from pydantic import BaseModel, Field

# IATA (3) or ICAO (4) letters; codes become URL path segments.
AIRPORT_CODE_PATTERN = r"^[A-Za-z]{3,4}$"


class CalculatorInput(BaseModel):
    expression: str = Field(..., description="Math expression to evaluate (e.g. 2+3*4, (1200-150)/3)")


class FlightCostLookupInput(BaseModel):
    departure_airport_code: str = Field(..., pattern=AIRPORT_CODE_PATTERN, description="IATA code of the origin airport, e.g. JFK")
    arrival_airport_code: str = Field(..., pattern=AIRPORT_CODE_PATTERN, description="IATA code of the destination airport, e.g. LHR")
    departure_date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="Departure date in YYYY-MM-DD format")
    number_of_adults: int = Field(..., ge=0)
    number_of_children: int = Field(..., ge=0)
    number_of_infants: int = Field(..., ge=0)
    cabin_class: int = Field(..., ge=0, description="Cabin class code used by the pricing service")


class Price(BaseModel):
    amount: float
    update_status: str = ""


class PricingOption(BaseModel):
    id: str
    price: Price


class Itinerary(BaseModel):
    id: str
    pricing_options: list[PricingOption] = Field(default_factory=list)


class Leg(BaseModel):
    id: str
    origin_place_id: str
    destination_place_id: str
    departure: str
    arrival: str


class Segment(BaseModel):
    id: str
    mode: str


class FlightCostLookupResponse(BaseModel):
    """Itineraries with prices plus the legs and segments they reference."""

    itineraries: list[Itinerary]
    legs: list[Leg]
    segments: list[Segment]


class FlightBookingInput(BaseModel):
    flight_id: str = Field(..., min_length=1, description="Identifier of the itinerary to book")
    itinerary_details: str = Field(
        ...,
        description="Everything known about the itinerary (route, dates, passengers, price); used to describe the booking",
    )


class FlightBookingResponse(BaseModel):
    confirmation: str


class ReminderInput(BaseModel):
    naturalLanguageInput: str = Field(
        "",
        description="A single complete natural language instruction describing the reminder task",
    )
