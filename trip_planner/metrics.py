"""
Utilitaires pour l'analyse et le calcul de statistiques d'un plan de voyage.
"""
from typing import Any, Dict, List

from trip_planner.models import BudgetBreakdown, ItineraryDay, TripPlan

BUDGET_CATEGORIES = ("flights", "accommodation", "activities", "food", "transportation", "miscellaneous")

# Écart toléré entre `total` et la somme des catégories
TOTAL_TOLERANCE = 0.05
ACTIVITIES_RANGE = (6, 8)


def budget_category_shares(budget: BudgetBreakdown) -> Dict[str, float]:
    """
    Part de chaque catégorie dans le total du plan principal (en %).

    Returns:
        {"flights": 25.0, "accommodation": 40.0, ...} ; 0 partout si total = 0
    """
    plan = budget.main_plan
    if plan.total <= 0:
        return {category: 0.0 for category in BUDGET_CATEGORIES}
    return {
        category: round(getattr(plan, category) / plan.total * 100, 1)
        for category in BUDGET_CATEGORIES
    }


def calculate_budget_stats(budget: BudgetBreakdown) -> Dict[str, Any]:
    """
    Calcule les statistiques du plan budgétaire principal.

    Returns:
        Dict avec statistiques {
            "category_sum": float,
            "total": float,
            "original_budget": float,
            "deviation": float (écart relatif total / somme),
            "within_budget": bool,
            "remaining": float
        }
    """
    plan = budget.main_plan
    category_sum = plan.category_sum

    if category_sum > 0:
        deviation = abs(plan.total - category_sum) / category_sum
    else:
        deviation = 0.0 if plan.total == 0 else 1.0

    return {
        "category_sum": category_sum,
        "total": plan.total,
        "original_budget": plan.original_budget,
        "deviation": deviation,
        "within_budget": plan.total <= plan.original_budget,
        "remaining": plan.original_budget - plan.total,
    }


def calculate_itinerary_stats(itinerary: List[ItineraryDay]) -> Dict[str, Any]:
    """
    Calcule les statistiques d'un itinéraire.

    Returns:
        Dict avec statistiques {
            "total_days": int,
            "total_activities": int,
            "total_cost": float,
            "avg_cost_per_day": float
        }
    """
    if not itinerary:
        return {"total_days": 0, "total_activities": 0, "total_cost": 0.0, "avg_cost_per_day": 0.0}

    total_activities = 0
    total_cost = 0.0
    for day in itinerary:
        total_activities += len(day.activities)
        total_cost += sum(activity.cost or 0 for activity in day.activities)

    return {
        "total_days": len(itinerary),
        "total_activities": total_activities,
        "total_cost": total_cost,
        "avg_cost_per_day": total_cost / len(itinerary),
    }


def calculate_quality_score(plan: TripPlan) -> Dict[str, Any]:
    """
    Calcule un score de qualité global avec détails.

    Returns:
        {
            "overall_score": int (0-100),
            "checks": {
                "budget_ok": bool,
                "total_consistent": bool,
                "day_count_ok": bool,
                "days_sequential": bool,
                "activities_count_ok": bool
            },
            "details": [str]  # Liste de messages explicatifs
        }
    """
    score = 100
    checks = {
        "budget_ok": True,
        "total_consistent": True,
        "day_count_ok": True,
        "days_sequential": True,
        "activities_count_ok": True,
    }
    details = []

    # 1. Budget respecté
    budget_stats = calculate_budget_stats(plan.budget)
    budget = plan.trip_input.budget
    if plan.budget.main_plan.total > budget:
        score -= 25
        checks["budget_ok"] = False
        details.append(f"⚠️ Total {plan.budget.main_plan.total:.0f} dépasse le budget ({budget:.0f})")
    else:
        details.append(f"✅ Budget respecté ({plan.budget.main_plan.total:.0f} ≤ {budget:.0f})")

    # 2. Total cohérent avec les catégories
    if budget_stats["deviation"] > TOTAL_TOLERANCE:
        score -= 15
        checks["total_consistent"] = False
        details.append(
            f"⚠️ Total incohérent avec la somme des catégories "
            f"({budget_stats['category_sum']:.0f}, écart {budget_stats['deviation']:.0%})"
        )
    else:
        details.append("✅ Total cohérent avec la somme des catégories")

    # 3. Nombre de jours
    expected_days = plan.trip_input.day_count
    if len(plan.itinerary) != expected_days:
        score -= 20
        checks["day_count_ok"] = False
        details.append(f"⚠️ Itinéraire de {len(plan.itinerary)} jours ({expected_days} attendus)")
    else:
        details.append(f"✅ Itinéraire complet ({expected_days} jours)")

    # 4. Jours numérotés 1..N
    day_numbers = [day.day for day in plan.itinerary]
    if day_numbers != list(range(1, len(day_numbers) + 1)):
        score -= 15
        checks["days_sequential"] = False
        details.append(f"⚠️ Numérotation des jours irrégulière ({day_numbers})")
    else:
        details.append("✅ Jours numérotés dans l'ordre")

    # 5. Nombre d'activités recommandées
    low, high = ACTIVITIES_RANGE
    count = len(plan.activities)
    if not low <= count <= high:
        score -= 10
        checks["activities_count_ok"] = False
        details.append(f"⚠️ {count} activités recommandées ({low}-{high} attendues)")
    else:
        details.append(f"✅ {count} activités recommandées")

    return {
        "overall_score": max(0, min(100, score)),
        "checks": checks,
        "details": details,
    }
