"""Fixtures partagées : client de complétion scripté et réponses canoniques."""
import json
from datetime import date, timedelta

import pytest

from trip_planner.agent.runner import RetryPolicy, TripPlanner
from trip_planner.config import AppConfig, PlannerConfig, RetryConfig
from trip_planner.dates import format_day_label
from trip_planner.models import BudgetBreakdown, Destination, FlightPair, Hotel, TripInput, TripType


class FakeLLMClient:
    """Client scripté : renvoie les réponses en file, ou lève les exceptions en file."""

    model = "fake-model"

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.prompts = []
        self.json_modes = []

    def queue(self, *items):
        self.responses.extend(items)

    @property
    def calls(self):
        return len(self.prompts)

    def generate(self, prompt, *, json_mode=False, temperature=0.7):
        self.prompts.append(prompt)
        self.json_modes.append(json_mode)
        if not self.responses:
            raise AssertionError("Appel au modèle non prévu par le test")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def _flight(number, price, dep_code, arr_code, day):
    return {
        "airline": "IndiGo",
        "flightNumber": number,
        "departure": {"airport": f"{dep_code} Airport", "code": dep_code, "time": "08:00", "date": day},
        "arrival": {"airport": f"{arr_code} Airport", "code": arr_code, "time": "10:35", "date": day},
        "duration": "2h 35m",
        "price": price,
        "aircraft": "A320neo",
        "class": "Economy",
    }


DESTINATIONS_PAYLOAD = {
    "destinations": [
        {
            "name": "Goa",
            "country": "India",
            "description": "Beaches, seafood and slow afternoons.",
            "matchPercentage": 94,
            "highlights": ["Palolem beach", "Old Goa churches", "Spice plantations"],
            "language": "Konkani",
            "currency": "INR",
        },
        {
            "name": "Alleppey",
            "country": "India",
            "description": "Backwater houseboats in Kerala.",
            "matchPercentage": 88,
            "highlights": ["Houseboat cruise", "Ayurvedic massage"],
        },
    ]
}

FLIGHTS_PAYLOAD = {
    "outbound": _flight("6E-2041", 28500, "DEL", "GOI", "2023-05-15"),
    "return": _flight("6E-2042", 31000, "GOI", "DEL", "2023-05-21"),
}

HOTELS_PAYLOAD = {
    "hotels": [
        {
            "name": "Taj Holiday Village",
            "location": "Candolim",
            "description": "Beachfront cottages.",
            "pricePerNight": 6000,
            "stars": 5,
            "reviews": 2140,
            "amenities": ["Pool", "Spa"],
            "imageUrls": [],
        },
        {
            "name": "Casa Anjuna",
            "location": "Anjuna",
            "description": "Heritage mansion.",
            "pricePerNight": 4500,
            "stars": 4,
            "reviews": 860,
            "amenities": ["Pool"],
        },
    ]
}

BUDGET_PAYLOAD = {
    "mainPlan": {
        "flights": 59500,
        "accommodation": 36000,
        "activities": 8000,
        "food": 7000,
        "transportation": 3000,
        "miscellaneous": 2000,
        "total": 115500,
        "originalBudget": 80000,
    },
    "alternativePlans": [
        {"name": "Budget-friendly option", "total": 92000, "breakdown": {"accommodation": 18000}},
        {"name": "Premium option", "total": 140000, "breakdown": {"accommodation": 60000}},
    ],
}


def itinerary_payload(start=date(2023, 5, 15), days=7):
    return {
        "Itinerary": [
            {
                "day": number,
                "date": format_day_label(start + timedelta(days=number - 1)),
                "title": f"Day {number}",
                "activities": [
                    {"time": "09:00 AM", "description": "Breakfast", "cost": 500, "location": "Hotel"},
                    {"time": "11:00 AM", "description": "Beach walk", "cost": 0, "location": "Candolim"},
                ],
            }
            for number in range(1, days + 1)
        ]
    }


ACTIVITIES_PAYLOAD = {
    "activities": [
        {
            "name": f"Activity {index}",
            "description": "Something to do",
            "price": 1000 * index,
            "duration": "2 hours",
            "location": "North Goa",
            "recommended": index == 1,
        }
        for index in range(1, 7)
    ]
}


def canonical_responses():
    """Les six réponses canoniques du scénario Delhi, dans l'ordre du pipeline."""
    return [
        json.dumps(DESTINATIONS_PAYLOAD),
        json.dumps(FLIGHTS_PAYLOAD),
        json.dumps(HOTELS_PAYLOAD),
        json.dumps(BUDGET_PAYLOAD),
        json.dumps(itinerary_payload()),
        json.dumps(ACTIVITIES_PAYLOAD),
    ]


@pytest.fixture
def trip_input():
    return TripInput(
        origin="Delhi",
        budget=80000,
        start_date=date(2023, 5, 15),
        end_date=date(2023, 5, 21),
        trip_type=TripType.RELAXATION,
    )


@pytest.fixture
def destination():
    return Destination.model_validate(DESTINATIONS_PAYLOAD["destinations"][0])


@pytest.fixture
def flights():
    return FlightPair.model_validate(FLIGHTS_PAYLOAD)


@pytest.fixture
def hotel():
    return Hotel.model_validate(HOTELS_PAYLOAD["hotels"][0])


@pytest.fixture
def budget():
    return BudgetBreakdown.model_validate(BUDGET_PAYLOAD)


@pytest.fixture
def app_config():
    return AppConfig(
        retry=RetryConfig(max_attempts=2, base_delay_s=0.01, max_delay_s=0.01, jitter_s=0),
        planner=PlannerConfig(currency="INR", run_timeout_s=0),
    )


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def planner(fake_llm, app_config, sleeps):
    policy = RetryPolicy.from_config(app_config.retry)
    policy.sleep = sleeps.append
    return TripPlanner(llm_client=fake_llm, config=app_config, retry_policy=policy)
