"""
Séquenceur du pipeline de planification de voyage.

Six étapes dépendantes, exécutées strictement dans l'ordre :
destinations -> vols -> hôtels -> budget -> itinéraire -> activités.
Chaque étape : prompt -> complétion -> normalisation -> validation typée.
Un échec à n'importe quelle étape abandonne tout le run (pas de plan partiel).
"""
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from trip_planner.agent.llm_client import LLMClient
from trip_planner.agent.normalizer import (
    ACTIVITIES,
    BUDGET,
    DESTINATIONS,
    FLIGHTS,
    HOTELS,
    ITINERARY,
    SUMMARY,
    StageShape,
    normalize_list,
    normalize_object,
)
from trip_planner.agent.prompts import (
    DEFAULT_CURRENCY,
    activity_recommendation_prompt,
    budget_optimizer_prompt,
    destination_finder_prompt,
    flight_booking_prompt,
    hotel_booking_prompt,
    itinerary_generator_prompt,
    trip_finalize_prompt,
)
from trip_planner.config import AppConfig, RetryConfig, get_config
from trip_planner.errors import (
    EmptyCompletionError,
    InvalidDestinationError,
    InvalidStageResultError,
    NoDestinationFoundError,
    PipelineStateError,
    RunTimeoutError,
    UnparseableResponseError,
)
from trip_planner.models import (
    Activity,
    BudgetBreakdown,
    Destination,
    FlightPair,
    Hotel,
    ItineraryDay,
    TripInput,
    TripPlan,
    TripSummary,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

# Erreurs transitoires : réseau, réponse vide, JSON introuvable
RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (
    requests.ConnectionError,
    requests.Timeout,
    requests.exceptions.ChunkedEncodingError,
    EmptyCompletionError,
    UnparseableResponseError,
)


class PlanningState(str, Enum):
    IDLE = "idle"
    FINDING_DESTINATIONS = "finding_destinations"
    FINDING_FLIGHTS = "finding_flights"
    FINDING_HOTELS = "finding_hotels"
    OPTIMIZING_BUDGET = "optimizing_budget"
    GENERATING_ITINERARY = "generating_itinerary"
    RECOMMENDING_ACTIVITIES = "recommending_activities"
    ASSEMBLED = "assembled"
    FAILED = "failed"


PIPELINE: Tuple[PlanningState, ...] = (
    PlanningState.FINDING_DESTINATIONS,
    PlanningState.FINDING_FLIGHTS,
    PlanningState.FINDING_HOTELS,
    PlanningState.OPTIMIZING_BUDGET,
    PlanningState.GENERATING_ITINERARY,
    PlanningState.RECOMMENDING_ACTIVITIES,
)


def first_candidate(candidates: Sequence[T]) -> T:
    """Politique de sélection par défaut : le premier candidat du modèle."""
    return candidates[0]


@dataclass
class RetryPolicy:
    """Retry borné avec backoff exponentiel et jitter, par étape.

    Attributes:
        max_attempts: Nombre total de tentatives (1 = pas de retry)
        base_delay_s: Délai de base avant la 2e tentative
        max_delay_s: Plafond du backoff (hors jitter)
        jitter_s: Jitter uniforme ajouté à chaque délai
    """

    max_attempts: int = 1
    base_delay_s: float = 1.0
    max_delay_s: float = 8.0
    jitter_s: float = 0.5
    retry_on: Tuple[Type[BaseException], ...] = RETRYABLE_ERRORS
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    uniform: Callable[[float, float], float] = field(default=random.uniform, repr=False)

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_delay_s=config.base_delay_s,
            max_delay_s=config.max_delay_s,
            jitter_s=config.jitter_s,
        )

    def delay_for(self, attempt: int) -> float:
        """Délai avant la tentative `attempt + 1`."""
        backoff = min(self.max_delay_s, self.base_delay_s * (2 ** (attempt - 1)))
        jitter = self.uniform(0.0, self.jitter_s) if self.jitter_s > 0 else 0.0
        return backoff + jitter


class PlanningRun:
    """
    Un run du pipeline pour une TripInput : état, journal, résultats.

    Chaque run possède ses propres résultats ; aucun état n'est partagé
    entre runs.
    """

    def __init__(
        self,
        trip_input: TripInput,
        *,
        run_timeout_s: Optional[float] = None,
        log_callback: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.trip_input = trip_input
        self.run_timeout_s = run_timeout_s or None
        self.log_callback = log_callback
        self.clock = clock

        self.state = PlanningState.IDLE
        self.history: List[PlanningState] = [PlanningState.IDLE]
        self.logs: List[str] = []
        self.stage_metrics: Dict[str, Dict[str, float]] = {}
        self.error: Optional[BaseException] = None
        self.trip_plan: Optional[TripPlan] = None

        self._results: Dict[str, Any] = {}
        self._started_at = clock()
        self._finished_at: Optional[float] = None

    def log(self, message: str) -> None:
        self.logs.append(message)
        if self.log_callback:
            self.log_callback(message)

    def advance(self, state: PlanningState) -> None:
        if self.state in (PlanningState.ASSEMBLED, PlanningState.FAILED):
            raise PipelineStateError(f"Run terminé ({self.state.value}), transition vers {state.value} refusée")
        self.state = state
        self.history.append(state)
        self.log(f"--- {state.value} ---")

    def store(self, key: str, value: Any) -> None:
        self._results[key] = value

    def require(self, key: str) -> Any:
        value = self._results.get(key)
        if value is None or (isinstance(value, list) and not value):
            raise PipelineStateError(f"Résultat '{key}' absent à l'étape {self.state.value}")
        return value

    @property
    def elapsed_s(self) -> float:
        end = self._finished_at if self._finished_at is not None else self.clock()
        return end - self._started_at

    def check_deadline(self, stage: str, upcoming_delay_s: float = 0.0) -> None:
        """Lève RunTimeoutError si le délai global est (ou serait) dépassé."""
        if not self.run_timeout_s:
            return
        elapsed = self.elapsed_s
        if elapsed + upcoming_delay_s > self.run_timeout_s:
            raise RunTimeoutError(
                f"Délai global du run dépassé à l'étape '{stage}' "
                f"({elapsed:.1f}s écoulées, limite {self.run_timeout_s:.0f}s)",
                stage=stage,
                elapsed_s=elapsed,
                limit_s=self.run_timeout_s,
            )

    def record_stage(self, stage: str, *, attempts: int, duration_s: float) -> None:
        self.stage_metrics[stage] = {"attempts": attempts, "duration_s": duration_s}

    def assemble(self) -> TripPlan:
        self.trip_plan = TripPlan(
            destination=self.require("destination"),
            flights=self.require("flights"),
            hotels=self.require("hotels"),
            budget=self.require("budget"),
            itinerary=self.require("itinerary"),
            activities=self.require("activities"),
            trip_input=self.trip_input,
        )
        self.state = PlanningState.ASSEMBLED
        self.history.append(PlanningState.ASSEMBLED)
        self._finished_at = self.clock()
        self.log(f"Plan assemblé en {self.elapsed_s:.1f}s")
        return self.trip_plan

    def fail(self, error: BaseException) -> None:
        failed_at = self.state
        self.error = error
        self.state = PlanningState.FAILED
        self.history.append(PlanningState.FAILED)
        self._finished_at = self.clock()
        self.log(f"ERREUR ({failed_at.value}): {error}")

    @property
    def execution_time(self) -> float:
        return self.elapsed_s

    @property
    def metrics(self) -> Dict[str, Any]:
        return {
            "execution_time": self.execution_time,
            "stages": dict(self.stage_metrics),
            "model_calls": int(sum(m["attempts"] for m in self.stage_metrics.values())),
        }


class TripPlanner:
    """Orchestrateur : expose chaque étape et le run complet."""

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        log_callback: Optional[Callable[[str], None]] = None,
        *,
        config: Optional[AppConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        select_destination: Callable[[Sequence[Destination]], Destination] = first_candidate,
        select_hotel: Callable[[Sequence[Hotel]], Hotel] = first_candidate,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or get_config()
        self.clock = clock
        self.llm = llm_client or LLMClient.from_config(self.config.llm)
        self.log_callback = log_callback
        self.retry_policy = retry_policy or RetryPolicy.from_config(self.config.retry)
        self.select_destination = select_destination
        self.select_hotel = select_hotel
        self.currency = self.config.planner.currency or DEFAULT_CURRENCY

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs: Any) -> "TripPlanner":
        return cls(config=config, **kwargs)

    def _log(self, run: Optional[PlanningRun], message: str, level: int = logging.INFO) -> None:
        logger.log(level, message)
        if run is not None:
            run.log(message)
        elif self.log_callback:
            self.log_callback(message)

    # --- Mécanique commune d'une étape ---

    def _execute(
        self,
        shape: StageShape,
        prompt: str,
        parse: Callable[[str], T],
        run: Optional[PlanningRun],
    ) -> T:
        """Complétion + normalisation, avec retry borné sur les erreurs transitoires."""
        policy = self.retry_policy
        stage = shape.stage
        started = self.clock()
        attempt = 0

        while True:
            attempt += 1
            if run is not None:
                run.check_deadline(stage)
            self._log(run, f"[{stage}] appel du modèle (tentative {attempt}/{policy.max_attempts})")

            try:
                raw = self.llm.generate(prompt, json_mode=True)
                logger.debug("[%s] réponse brute: %s", stage, raw[:2000])
                result = parse(raw)
            except policy.retry_on as e:
                if attempt >= policy.max_attempts:
                    self._log(run, f"[{stage}] échec définitif: {e}", logging.ERROR)
                    raise
                delay = policy.delay_for(attempt)
                if run is not None:
                    run.check_deadline(stage, upcoming_delay_s=delay)
                self._log(run, f"⚠️  [{stage}] {type(e).__name__}: {e} -> retry dans {delay:.1f}s", logging.WARNING)
                policy.sleep(delay)
                continue

            if run is not None:
                run.record_stage(stage, attempts=attempt, duration_s=self.clock() - started)
            return result

    def _validate_list(self, shape: StageShape, model: Type[M], items: List[Dict[str, Any]]) -> List[M]:
        try:
            return [model.model_validate(item) for item in items]
        except ValidationError as e:
            raise InvalidStageResultError(
                f"Résultat invalide pour l'étape '{shape.stage}'",
                stage=shape.stage,
                details=str(e),
                cause=e,
            ) from e

    def _validate_object(self, shape: StageShape, model: Type[M], item: Dict[str, Any]) -> M:
        return self._validate_list(shape, model, [item])[0]

    def _require_non_empty(self, shape: StageShape, items: List[M]) -> List[M]:
        if not items:
            raise InvalidStageResultError(
                f"Aucun candidat retourné pour l'étape '{shape.stage}'",
                stage=shape.stage,
                details="empty list",
            )
        return items

    # --- Étapes ---

    def find_destinations(self, trip_input: TripInput, *, run: Optional[PlanningRun] = None) -> List[Destination]:
        prompt = destination_finder_prompt(trip_input, self.currency)
        destinations = self._execute(
            DESTINATIONS,
            prompt,
            lambda raw: self._validate_list(DESTINATIONS, Destination, normalize_list(raw, DESTINATIONS)),
            run,
        )
        self._log(run, f"OBSERVATION: {len(destinations)} destination(s) proposée(s)")
        return destinations

    def find_flights(
        self, trip_input: TripInput, destination: Destination, *, run: Optional[PlanningRun] = None
    ) -> FlightPair:
        prompt = flight_booking_prompt(trip_input, destination, self.currency)
        flights = self._execute(
            FLIGHTS,
            prompt,
            lambda raw: self._validate_object(FLIGHTS, FlightPair, normalize_object(raw, FLIGHTS)),
            run,
        )
        self._log(
            run,
            f"OBSERVATION: vols {flights.outbound.flight_number} / {flights.return_flight.flight_number}, "
            f"total {flights.total_price:.0f}",
        )
        return flights

    def find_hotels(
        self, trip_input: TripInput, destination: Destination, *, run: Optional[PlanningRun] = None
    ) -> List[Hotel]:
        prompt = hotel_booking_prompt(trip_input, destination, self.currency)
        hotels = self._execute(
            HOTELS,
            prompt,
            lambda raw: self._validate_list(HOTELS, Hotel, normalize_list(raw, HOTELS)),
            run,
        )
        self._require_non_empty(HOTELS, hotels)
        if len(hotels) != 2:
            self._log(run, f"⚠️  {len(hotels)} hôtel(s) retourné(s), 2 attendus", logging.WARNING)
        self._log(run, f"OBSERVATION: {len(hotels)} hôtel(s) proposé(s)")
        return hotels

    def optimize_budget(
        self,
        trip_input: TripInput,
        destination: Destination,
        flights: FlightPair,
        hotel: Hotel,
        *,
        run: Optional[PlanningRun] = None,
    ) -> BudgetBreakdown:
        prompt = budget_optimizer_prompt(trip_input, destination, flights, hotel, self.currency)
        budget = self._execute(
            BUDGET,
            prompt,
            lambda raw: self._validate_object(BUDGET, BudgetBreakdown, normalize_object(raw, BUDGET)),
            run,
        )
        self._log(
            run,
            f"OBSERVATION: budget total {budget.main_plan.total:.0f} "
            f"(budget initial {trip_input.budget:.0f})",
        )
        return budget

    def generate_itinerary(
        self,
        trip_input: TripInput,
        destination: Destination,
        hotel: Hotel,
        budget: BudgetBreakdown,
        *,
        run: Optional[PlanningRun] = None,
    ) -> List[ItineraryDay]:
        prompt = itinerary_generator_prompt(trip_input, destination, hotel, budget, self.currency)
        itinerary = self._execute(
            ITINERARY,
            prompt,
            lambda raw: self._validate_list(ITINERARY, ItineraryDay, normalize_list(raw, ITINERARY)),
            run,
        )
        self._require_non_empty(ITINERARY, itinerary)
        if len(itinerary) != trip_input.day_count:
            self._log(
                run,
                f"⚠️  Itinéraire de {len(itinerary)} jour(s), {trip_input.day_count} attendus",
                logging.WARNING,
            )
        self._log(run, f"OBSERVATION: itinéraire généré avec {len(itinerary)} jours")
        return itinerary

    def recommend_activities(
        self,
        trip_input: TripInput,
        destination: Destination,
        budget: BudgetBreakdown,
        *,
        run: Optional[PlanningRun] = None,
    ) -> List[Activity]:
        prompt = activity_recommendation_prompt(trip_input, destination, budget, self.currency)
        activities = self._execute(
            ACTIVITIES,
            prompt,
            lambda raw: self._validate_list(ACTIVITIES, Activity, normalize_list(raw, ACTIVITIES)),
            run,
        )
        self._require_non_empty(ACTIVITIES, activities)
        self._log(run, f"OBSERVATION: {len(activities)} activité(s) recommandée(s)")
        return activities

    def finalize_trip_plan(self, trip_plan: TripPlan) -> TripSummary:
        """Résumé final d'un plan déjà assemblé (hors des six étapes)."""
        prompt = trip_finalize_prompt(trip_plan)
        return self._execute(
            SUMMARY,
            prompt,
            lambda raw: self._validate_object(SUMMARY, TripSummary, normalize_object(raw, SUMMARY)),
            None,
        )

    # --- Run complet ---

    def run_pipeline(self, trip_input: TripInput) -> PlanningRun:
        """
        Exécute les six étapes dans l'ordre et assemble le TripPlan.

        Returns:
            Le PlanningRun terminé (état ASSEMBLED, journal, métriques, plan)

        Raises:
            NoDestinationFoundError / InvalidDestinationError: étape 1 inexploitable,
                aucune autre étape n'est lancée
            TripPlannerError / requests.RequestException: échec d'une étape
        """
        run = PlanningRun(
            trip_input,
            run_timeout_s=self.config.planner.run_timeout_s,
            log_callback=self.log_callback,
            clock=self.clock,
        )
        run.log(
            f"Voyage depuis {trip_input.origin}, {trip_input.start_date} -> {trip_input.end_date} "
            f"({trip_input.nights} nuits), budget {trip_input.budget:.0f} {self.currency}, "
            f"type {trip_input.trip_type.value}"
        )

        try:
            run.advance(PlanningState.FINDING_DESTINATIONS)
            destinations = self.find_destinations(trip_input, run=run)
            if not destinations:
                raise NoDestinationFoundError("No suitable destinations found", stage=DESTINATIONS.stage)
            destination = self.select_destination(destinations)
            if not destination.name.strip() or not destination.country.strip():
                raise InvalidDestinationError("Invalid destination data returned from AI", stage=DESTINATIONS.stage)
            run.store("destination", destination)
            run.log(f"Destination sélectionnée: {destination.name}, {destination.country}")

            run.advance(PlanningState.FINDING_FLIGHTS)
            run.store("flights", self.find_flights(trip_input, run.require("destination"), run=run))

            run.advance(PlanningState.FINDING_HOTELS)
            hotels = self.find_hotels(trip_input, run.require("destination"), run=run)
            run.store("hotels", hotels)
            hotel = self.select_hotel(hotels)
            run.store("hotel", hotel)
            run.log(f"Hôtel sélectionné: {hotel.name} ({hotel.price_per_night:.0f}/nuit)")

            run.advance(PlanningState.OPTIMIZING_BUDGET)
            run.store(
                "budget",
                self.optimize_budget(
                    trip_input, run.require("destination"), run.require("flights"), run.require("hotel"), run=run
                ),
            )

            run.advance(PlanningState.GENERATING_ITINERARY)
            run.store(
                "itinerary",
                self.generate_itinerary(
                    trip_input, run.require("destination"), run.require("hotel"), run.require("budget"), run=run
                ),
            )

            run.advance(PlanningState.RECOMMENDING_ACTIVITIES)
            run.store(
                "activities",
                self.recommend_activities(trip_input, run.require("destination"), run.require("budget"), run=run),
            )

            run.assemble()
        except Exception as e:
            run.fail(e)
            logger.error("Run échoué à l'étape %s: %s", run.history[-2].value, e)
            raise

        return run

    def create_trip_plan(self, trip_input: TripInput) -> TripPlan:
        """Run complet ; retourne uniquement le TripPlan."""
        return self.run_pipeline(trip_input).trip_plan
