import pytest
from pydantic import ValidationError

from trip_planner.errors import InvalidInputError
from trip_planner.models import (
    INVALID_PAYLOAD_MESSAGE,
    INVALID_TRIP_INPUT_MESSAGE,
    MISSING_FIELDS_MESSAGE,
    BudgetBreakdown,
    Destination,
    FlightPair,
    Hotel,
    TripType,
    parse_payload,
    parse_trip_input,
    require_fields,
)

from conftest import BUDGET_PAYLOAD, FLIGHTS_PAYLOAD

TRIP_BODY = {
    "origin": "Delhi",
    "budget": 80000,
    "startDate": "2023-05-15",
    "endDate": "2023-05-21",
    "tripType": "relaxation",
}


def test_parse_trip_input_from_camel_case_body():
    trip_input = parse_trip_input(TRIP_BODY)
    assert trip_input.origin == "Delhi"
    assert trip_input.trip_type is TripType.RELAXATION
    assert trip_input.nights == 6
    assert trip_input.day_count == 7
    assert trip_input.activities == []


def test_trip_input_is_immutable():
    trip_input = parse_trip_input(TRIP_BODY)
    with pytest.raises(ValidationError):
        trip_input.budget = 1


@pytest.mark.parametrize("missing", ["origin", "budget", "startDate", "endDate", "tripType"])
def test_missing_required_field(missing):
    body = {key: value for key, value in TRIP_BODY.items() if key != missing}
    with pytest.raises(InvalidInputError) as excinfo:
        parse_trip_input(body)
    assert str(excinfo.value) == MISSING_FIELDS_MESSAGE
    assert excinfo.value.missing == [missing]


@pytest.mark.parametrize(
    "override",
    [
        {"budget": -10},
        {"tripType": "business"},
        {"endDate": "2023-05-10"},
        {"origin": "   "},
        {"startDate": "not-a-date"},
    ],
)
def test_invalid_trip_input_values(override):
    with pytest.raises(InvalidInputError) as excinfo:
        parse_trip_input({**TRIP_BODY, **override})
    assert str(excinfo.value) == INVALID_TRIP_INPUT_MESSAGE
    assert excinfo.value.cause is not None


def test_flight_pair_uses_reserved_word_aliases():
    pair = FlightPair.model_validate(FLIGHTS_PAYLOAD)
    assert pair.return_flight.flight_number == "6E-2042"
    assert pair.outbound.cabin_class == "Economy"
    assert pair.total_price == 59500
    payload = pair.to_payload()
    assert "return" in payload
    assert payload["outbound"]["class"] == "Economy"


def test_budget_breakdown_roundtrip_keeps_camel_case():
    breakdown = BudgetBreakdown.model_validate(BUDGET_PAYLOAD)
    assert breakdown.main_plan.category_sum == 115500
    assert breakdown.to_payload()["mainPlan"]["originalBudget"] == 80000
    assert breakdown.alternative_plans[0].breakdown.accommodation == 18000


def test_negative_budget_category_is_rejected():
    bad = {"mainPlan": {**BUDGET_PAYLOAD["mainPlan"], "food": -5}}
    with pytest.raises(ValidationError):
        BudgetBreakdown.model_validate(bad)


def test_hotel_stars_range():
    with pytest.raises(ValidationError):
        Hotel.model_validate({"name": "X", "location": "Y", "pricePerNight": 10, "stars": 7})


def test_unknown_fields_are_ignored():
    destination = Destination.model_validate(
        {"name": "Goa", "country": "India", "description": "Sun", "weather": "hot"}
    )
    assert not hasattr(destination, "weather")


def test_require_fields_and_parse_payload():
    with pytest.raises(InvalidInputError) as excinfo:
        require_fields({"tripInput": TRIP_BODY}, ("tripInput", "destination"))
    assert excinfo.value.missing == ["destination"]

    with pytest.raises(InvalidInputError) as excinfo:
        parse_payload(Destination, {"name": "Goa"})
    assert str(excinfo.value) == INVALID_PAYLOAD_MESSAGE
