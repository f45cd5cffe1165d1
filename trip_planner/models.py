"""
Modèles Pydantic (validation des données).

Les champs Python sont en snake_case ; le format JSON échangé avec le modèle
et avec les clients HTTP est en camelCase (alias).
"""
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from trip_planner.dates import itinerary_day_count, trip_nights
from trip_planner.errors import InvalidInputError

MISSING_FIELDS_MESSAGE = "Missing required fields"
INVALID_TRIP_INPUT_MESSAGE = "Invalid trip input"
INVALID_PAYLOAD_MESSAGE = "Invalid request payload"

TRIP_INPUT_REQUIRED_FIELDS = ("origin", "budget", "startDate", "endDate", "tripType")


class PlannerModel(BaseModel):
    """Base commune : alias camelCase, champs inconnus ignorés."""

    model_config = ConfigDict(
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> Dict[str, Any]:
        """Sérialise au format JSON camelCase."""
        return self.model_dump(mode="json", by_alias=True)


class TripType(str, Enum):
    ADVENTURE = "adventure"
    RELAXATION = "relaxation"
    FAMILY = "family"
    ROMANTIC = "romantic"
    CULTURAL = "cultural"


class TripInput(PlannerModel):
    """Demande de voyage (immuable pendant un run)."""

    model_config = ConfigDict(frozen=True)

    origin: str
    budget: float = Field(gt=0)
    start_date: date
    end_date: date
    trip_type: TripType
    interests: Optional[str] = None
    activities: List[str] = Field(default_factory=list, description="Types d'activités préférés")

    @field_validator("origin")
    @classmethod
    def _origin_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("origin must not be blank")
        return value

    @model_validator(mode="after")
    def _dates_in_order(self) -> "TripInput":
        if self.end_date < self.start_date:
            raise ValueError("endDate must be on or after startDate")
        return self

    @property
    def nights(self) -> int:
        return trip_nights(self.start_date, self.end_date)

    @property
    def day_count(self) -> int:
        return itinerary_day_count(self.start_date, self.end_date)


class Destination(PlannerModel):
    name: str
    country: str
    description: str
    match_percentage: Optional[float] = None  # 60-99 demandé au modèle
    highlights: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    language: Optional[str] = None
    currency: Optional[str] = None


class FlightEndpoint(PlannerModel):
    airport: str
    code: str
    time: str
    date: str


class Flight(PlannerModel):
    airline: str
    flight_number: str
    departure: FlightEndpoint
    arrival: FlightEndpoint
    duration: str
    price: float = Field(ge=0)
    aircraft: Optional[str] = None
    cabin_class: Optional[str] = Field(default=None, alias="class")


class FlightPair(PlannerModel):
    outbound: Flight
    return_flight: Flight = Field(alias="return")

    @property
    def total_price(self) -> float:
        return self.outbound.price + self.return_flight.price


class Hotel(PlannerModel):
    name: str
    location: str
    description: str = ""
    price_per_night: float = Field(ge=0)
    stars: Optional[float] = Field(default=None, ge=1, le=5)
    reviews: Optional[int] = Field(default=None, ge=0)
    amenities: List[str] = Field(default_factory=list)
    image_urls: List[str] = Field(default_factory=list)


class BudgetPlan(PlannerModel):
    """Plan principal : toutes les catégories sont des montants positifs ou nuls."""

    flights: float = Field(ge=0)
    accommodation: float = Field(ge=0)
    activities: float = Field(ge=0)
    food: float = Field(ge=0)
    transportation: float = Field(ge=0)
    miscellaneous: float = Field(ge=0)
    total: float = Field(ge=0)
    original_budget: float = Field(ge=0)

    @property
    def category_sum(self) -> float:
        return (
            self.flights
            + self.accommodation
            + self.activities
            + self.food
            + self.transportation
            + self.miscellaneous
        )


class PartialBreakdown(PlannerModel):
    flights: Optional[float] = None
    accommodation: Optional[float] = None
    activities: Optional[float] = None
    food: Optional[float] = None
    transportation: Optional[float] = None
    miscellaneous: Optional[float] = None


class AlternativePlan(PlannerModel):
    name: str
    total: float = Field(ge=0)
    breakdown: PartialBreakdown = Field(default_factory=PartialBreakdown)


class BudgetBreakdown(PlannerModel):
    main_plan: BudgetPlan
    alternative_plans: List[AlternativePlan] = Field(default_factory=list)


class ItineraryActivity(PlannerModel):
    """Une activité dans une journée de l'itinéraire."""

    time: Optional[str] = None
    description: str
    cost: Optional[float] = Field(default=None, ge=0)
    location: Optional[str] = None
    notes: Optional[str] = None


class ItineraryDay(PlannerModel):
    day: int = Field(ge=1)
    date: str
    title: str = ""
    activities: List[ItineraryActivity] = Field(default_factory=list)


class Activity(PlannerModel):
    """Activité recommandée (non rattachée à un jour)."""

    name: str
    description: str
    price: float = Field(ge=0)
    duration: str = ""
    location: str = ""
    image_url: Optional[str] = None
    recommended: bool = False


class TripPlan(PlannerModel):
    """Plan complet, assemblé seulement quand toutes les étapes ont réussi."""

    destination: Destination
    flights: FlightPair
    hotels: List[Hotel]
    budget: BudgetBreakdown
    itinerary: List[ItineraryDay]
    activities: List[Activity]
    trip_input: TripInput


class TripSummary(PlannerModel):
    title: str
    overview: str
    highlights: List[str] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)
    disclaimers: List[str] = Field(default_factory=list)
    customization_options: List[str] = Field(default_factory=list)


def _missing(payload: Mapping[str, Any], required: Sequence[str]) -> List[str]:
    # Champ absent, vide ou nul
    return [name for name in required if not payload.get(name)]


def parse_trip_input(payload: Any) -> TripInput:
    """Valide un corps de requête TripInput.

    Raises:
        InvalidInputError: champ requis absent ("Missing required fields")
            ou valeur invalide ("Invalid trip input")
    """
    if not isinstance(payload, Mapping):
        raise InvalidInputError(MISSING_FIELDS_MESSAGE, missing=list(TRIP_INPUT_REQUIRED_FIELDS))

    missing = _missing(payload, TRIP_INPUT_REQUIRED_FIELDS)
    if missing:
        raise InvalidInputError(MISSING_FIELDS_MESSAGE, missing=missing)

    try:
        return TripInput.model_validate(payload)
    except ValidationError as e:
        raise InvalidInputError(INVALID_TRIP_INPUT_MESSAGE, cause=e) from e


def require_fields(payload: Any, required: Sequence[str]) -> Mapping[str, Any]:
    """Vérifie la présence des champs d'un corps de requête composite."""
    if not isinstance(payload, Mapping):
        raise InvalidInputError(MISSING_FIELDS_MESSAGE, missing=list(required))
    missing = _missing(payload, required)
    if missing:
        raise InvalidInputError(MISSING_FIELDS_MESSAGE, missing=missing)
    return payload


def parse_payload(model: type, value: Any) -> Any:
    """Valide un sous-objet de requête (destination, hotel, budget...)."""
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise InvalidInputError(INVALID_PAYLOAD_MESSAGE, cause=e) from e
