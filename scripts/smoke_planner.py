"""
Script de test rapide pour le pipeline complet (sans Streamlit).
"""
import json
from datetime import date

from trip_planner.agent.runner import TripPlanner
from trip_planner.config import configure_logging
from trip_planner.metrics import calculate_quality_score
from trip_planner.models import TripInput, TripType


def test_delhi_relaxation():
    """Voyage de 7 jours depuis Delhi, budget 150000 INR."""
    print("=== TEST: Delhi, relaxation, 7 jours ===\n")

    planner = TripPlanner(log_callback=print)

    run = planner.run_pipeline(
        TripInput(
            origin="Delhi",
            budget=150000,
            start_date=date(2026, 5, 15),
            end_date=date(2026, 5, 21),
            trip_type=TripType.RELAXATION,
            interests="beaches, local food",
            activities=["sightseeing", "food tours"],
        )
    )

    plan = run.trip_plan
    print("\n--- RÉSULTAT ---")
    print(f"État: {run.state.value}")
    print(f"Destination: {plan.destination.name}, {plan.destination.country}")
    print(f"Nombre de jours: {len(plan.itinerary)}")
    print(f"Total budget: {plan.budget.main_plan.total:.0f}")
    print(f"Métriques: {json.dumps(run.metrics, indent=2)}")

    quality = calculate_quality_score(plan)
    print(f"\nScore de qualité: {quality['overall_score']}/100")
    print("\n".join(quality["details"]))


if __name__ == "__main__":
    configure_logging()
    print("🧪 Test du pipeline de planification\n")
    print("⚠️  Ce test fait 6 appels au modèle et peut prendre 1-3 minutes...\n")

    test_delhi_relaxation()

    print("\n✅ Tests terminés!")
