"""
API HTTP (FastAPI) : un endpoint par étape du pipeline + plan complet.

Lancement :
    uvicorn trip_planner.api:app --reload
"""
import logging
import traceback
from functools import lru_cache
from typing import Any, Callable, Dict

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trip_planner.agent.runner import TripPlanner
from trip_planner.config import AppConfig, configure_logging, get_config
from trip_planner.errors import InvalidInputError
from trip_planner.models import (
    INVALID_PAYLOAD_MESSAGE,
    BudgetBreakdown,
    Destination,
    FlightPair,
    Hotel,
    TripPlan,
    parse_payload,
    parse_trip_input,
    require_fields,
)

logger = logging.getLogger(__name__)


PlannerFactory = Callable[[], TripPlanner]


@lru_cache(maxsize=1)
def get_planner() -> TripPlanner:
    """Orchestrateur partagé, construit au premier appel."""
    return TripPlanner.from_config(get_config())


def get_planner_factory() -> PlannerFactory:
    """Dépendance FastAPI (surchargée dans les tests via dependency_overrides).

    Retourne la fabrique plutôt que l'orchestrateur : sa construction a lieu
    dans `_handle`, et un échec (clé API absente...) reste une réponse JSON.
    """
    return get_planner


def get_app_config() -> AppConfig:
    return get_config()


def _error_response(action: str, error: Exception, config: AppConfig) -> JSONResponse:
    content: Dict[str, Any] = {"error": f"Failed to {action}"}
    if config.debug:
        content["message"] = str(error)
        content["details"] = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return JSONResponse(status_code=500, content=content)


def _handle(action: str, config: AppConfig, call: Callable[[], Dict[str, Any]]) -> Any:
    try:
        return call()
    except InvalidInputError as e:
        logger.warning("Requête refusée (%s): %s %s", action, e.message, e.missing or e.cause or "")
        return JSONResponse(status_code=400, content={"error": e.message})
    except Exception as e:
        logger.exception("Échec: %s", action)
        return _error_response(action, e, config)


def create_app() -> FastAPI:
    app = FastAPI(title="Trip Planner AI")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Corps de requête illisible sur %s", request.url.path)
        return JSONResponse(status_code=400, content={"error": INVALID_PAYLOAD_MESSAGE})

    # Endpoints synchrones : FastAPI les exécute dans son pool de threads

    @app.post("/api/destinations")
    def destinations(
        payload: Any = Body(default=None),
        planner_factory: PlannerFactory = Depends(get_planner_factory),
        config: AppConfig = Depends(get_app_config),
    ):
        def call():
            planner = planner_factory()
            trip_input = parse_trip_input(payload)
            found = planner.find_destinations(trip_input)
            return {"destinations": [d.to_payload() for d in found]}

        return _handle("find destinations", config, call)

    @app.post("/api/flights")
    def flights(
        payload: Any = Body(default=None),
        planner_factory: PlannerFactory = Depends(get_planner_factory),
        config: AppConfig = Depends(get_app_config),
    ):
        def call():
            planner = planner_factory()
            body = require_fields(payload, ("tripInput", "destination"))
            pair = planner.find_flights(
                parse_trip_input(body["tripInput"]),
                parse_payload(Destination, body["destination"]),
            )
            return {"flights": pair.to_payload()}

        return _handle("find flights", config, call)

    @app.post("/api/hotels")
    def hotels(
        payload: Any = Body(default=None),
        planner_factory: PlannerFactory = Depends(get_planner_factory),
        config: AppConfig = Depends(get_app_config),
    ):
        def call():
            planner = planner_factory()
            body = require_fields(payload, ("tripInput", "destination"))
            found = planner.find_hotels(
                parse_trip_input(body["tripInput"]),
                parse_payload(Destination, body["destination"]),
            )
            return {"hotels": [h.to_payload() for h in found]}

        return _handle("find hotels", config, call)

    @app.post("/api/budget")
    def budget(
        payload: Any = Body(default=None),
        planner_factory: PlannerFactory = Depends(get_planner_factory),
        config: AppConfig = Depends(get_app_config),
    ):
        def call():
            planner = planner_factory()
            body = require_fields(payload, ("tripInput", "destination", "flights", "hotel"))
            breakdown = planner.optimize_budget(
                parse_trip_input(body["tripInput"]),
                parse_payload(Destination, body["destination"]),
                parse_payload(FlightPair, body["flights"]),
                parse_payload(Hotel, body["hotel"]),
            )
            return {"budget": breakdown.to_payload()}

        return _handle("optimize budget", config, call)

    @app.post("/api/itinerary")
    def itinerary(
        payload: Any = Body(default=None),
        planner_factory: PlannerFactory = Depends(get_planner_factory),
        config: AppConfig = Depends(get_app_config),
    ):
        def call():
            planner = planner_factory()
            body = require_fields(payload, ("tripInput", "destination", "hotel", "budget"))
            days = planner.generate_itinerary(
                parse_trip_input(body["tripInput"]),
                parse_payload(Destination, body["destination"]),
                parse_payload(Hotel, body["hotel"]),
                parse_payload(BudgetBreakdown, body["budget"]),
            )
            return {"itinerary": [d.to_payload() for d in days]}

        return _handle("generate itinerary", config, call)

    @app.post("/api/activities")
    def activities(
        payload: Any = Body(default=None),
        planner_factory: PlannerFactory = Depends(get_planner_factory),
        config: AppConfig = Depends(get_app_config),
    ):
        def call():
            planner = planner_factory()
            body = require_fields(payload, ("tripInput", "destination", "budget"))
            found = planner.recommend_activities(
                parse_trip_input(body["tripInput"]),
                parse_payload(Destination, body["destination"]),
                parse_payload(BudgetBreakdown, body["budget"]),
            )
            return {"activities": [a.to_payload() for a in found]}

        return _handle("recommend activities", config, call)

    @app.post("/api/plan")
    def plan(
        payload: Any = Body(default=None),
        planner_factory: PlannerFactory = Depends(get_planner_factory),
        config: AppConfig = Depends(get_app_config),
    ):
        def call():
            planner = planner_factory()
            trip_plan = planner.create_trip_plan(parse_trip_input(payload))
            return {"tripPlan": trip_plan.to_payload()}

        return _handle("create trip plan", config, call)

    @app.post("/api/finalize")
    def finalize(
        payload: Any = Body(default=None),
        planner_factory: PlannerFactory = Depends(get_planner_factory),
        config: AppConfig = Depends(get_app_config),
    ):
        def call():
            planner = planner_factory()
            body = require_fields(payload, ("tripPlan",))
            summary = planner.finalize_trip_plan(parse_payload(TripPlan, body["tripPlan"]))
            return {"summary": summary.to_payload()}

        return _handle("finalize trip plan", config, call)

    return app


configure_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("trip_planner.api:app", host="0.0.0.0", port=8000, reload=True)
