"""
Application Streamlit - Planificateur de voyage par étapes (destinations -> activités).
"""
import logging

import streamlit as st
import json
import plotly.graph_objects as go
import pandas as pd
from datetime import datetime, timedelta

from trip_planner.agent.llm_client import LLMClient
from trip_planner.agent.prompts import format_amount
from trip_planner.agent.runner import PIPELINE, PlanningState, TripPlanner
from trip_planner.config import configure_logging, get_config
from trip_planner.errors import TripPlannerError
from trip_planner.metrics import (
    budget_category_shares,
    calculate_budget_stats,
    calculate_itinerary_stats,
    calculate_quality_score,
)
from trip_planner.models import TripInput, TripPlan, TripType

logger = logging.getLogger(__name__)


# Configuration de la page
st.set_page_config(
    page_title="Planificateur de Voyage IA",
    page_icon="✈️",
    layout="wide"
)

STAGE_LABELS = {
    PlanningState.FINDING_DESTINATIONS: "🌍 Recherche des destinations...",
    PlanningState.FINDING_FLIGHTS: "🛫 Recherche des vols...",
    PlanningState.FINDING_HOTELS: "🏨 Recherche des hôtels...",
    PlanningState.OPTIMIZING_BUDGET: "💰 Optimisation du budget...",
    PlanningState.GENERATING_ITINERARY: "🗓️ Génération de l'itinéraire...",
    PlanningState.RECOMMENDING_ACTIVITIES: "🎯 Recommandation d'activités...",
}

ACTIVITY_OPTIONS = [
    "sightseeing", "food tours", "museums", "hiking", "beaches",
    "nightlife", "shopping", "wellness", "wildlife", "water sports"
]


def main():
    """Page principale de l'application."""
    configure_logging()
    config = get_config()

    st.title("✈️ Planificateur de Voyage IA")
    st.markdown("**Destinations, vols, hôtels, budget, itinéraire et activités en un seul run**")

    debug_enabled = False
    with st.sidebar:
        st.subheader("⚙️ Configuration")

        api_key = st.text_input(
            "Clé API OpenAI",
            type="password",
            help="Lue par défaut depuis OPENAI_API_KEY",
            value=config.llm.api_key or ""
        )

        if not api_key:
            st.warning("⚠️ Clé API requise")

        st.caption(f"Modèle: **{config.llm.model}**")
        st.caption(f"Devise: **{config.planner.currency}**")

        st.markdown("---")
        debug_enabled = st.checkbox(
            "Afficher le journal du run (live)",
            value=True,
            help="Affiche en temps réel les étapes, tentatives et observations.",
        )

    trip_input = show_form()

    if trip_input is not None:
        if not api_key:
            st.error("❌ Clé API requise. Veuillez la saisir dans la barre latérale.")
            return
        run_planner(trip_input, api_key, debug_enabled)

    if st.session_state.get("trip_plan") is not None:
        display_results(
            st.session_state["trip_plan"],
            st.session_state.get("run_metrics", {}),
            st.session_state.get("run_logs", []),
            api_key,
        )


def show_form():
    """Formulaire de voyage ; retourne une TripInput validée ou None."""
    st.header("1️⃣ Informations du voyage")

    col1, col2 = st.columns(2)

    with col1:
        origin = st.text_input(
            "Ville de départ",
            placeholder="Ex: Delhi, Mumbai, Paris...",
        )

        budget = st.number_input(
            "Budget total",
            min_value=0.0,
            value=150000.0,
            step=5000.0,
        )

        trip_type = st.selectbox(
            "Type de voyage",
            [t.value for t in TripType],
            index=1,
        )

    with col2:
        today = datetime.now().date()
        start_date = st.date_input(
            "Date de début",
            value=today + timedelta(days=14),
            min_value=today
        )
        end_date = st.date_input(
            "Date de fin",
            value=start_date + timedelta(days=6),
            min_value=start_date
        )

    activities = st.multiselect(
        "Activités préférées",
        ACTIVITY_OPTIONS,
        default=["sightseeing", "food tours"]
    )

    interests = st.text_area(
        "Centres d'intérêt (optionnel)",
        placeholder="Ex: architecture moghole, cuisine de rue, randonnée facile...",
        height=80
    )

    st.markdown("---")

    if not st.button("🚀 Planifier le voyage", type="primary", use_container_width=True):
        return None

    if not origin.strip():
        st.error("Veuillez entrer une ville de départ")
        return None
    if budget <= 0:
        st.error("Le budget doit être positif")
        return None

    return TripInput(
        origin=origin,
        budget=budget,
        start_date=start_date,
        end_date=end_date,
        trip_type=TripType(trip_type),
        interests=interests or None,
        activities=activities,
    )


def run_planner(trip_input: TripInput, api_key: str, debug_enabled: bool):
    """Lance le run complet avec progression et journal live."""
    config = get_config()

    progress_bar = st.progress(0)
    status_text = st.empty()
    live_logs: list[str] = []
    live_log_placeholder = None

    if debug_enabled:
        with st.expander("📋 Journal du run (live)", expanded=True):
            live_log_placeholder = st.empty()
            live_log_placeholder.code("", language="text")

    def push_log(message: str) -> None:
        live_logs.append(message)
        # Les transitions d'état arrivent sous la forme "--- <state> ---"
        for index, state in enumerate(PIPELINE):
            if message == f"--- {state.value} ---":
                status_text.text(STAGE_LABELS[state])
                progress_bar.progress(int(index / len(PIPELINE) * 100))
        if live_log_placeholder is not None:
            live_log_placeholder.code("\n".join(live_logs), language="text")

    st.session_state["trip_plan"] = None
    st.session_state["summary"] = None

    try:
        llm_client = LLMClient(
            model=config.llm.model,
            api_key=api_key,
            base_url=config.llm.base_url,
            timeout_s=config.llm.timeout_s,
            max_tokens=config.llm.max_tokens,
        )
        planner = TripPlanner(llm_client=llm_client, log_callback=push_log, config=config)
        run = planner.run_pipeline(trip_input)

        progress_bar.progress(100)
        status_text.text("✅ Plan terminé!")

        st.session_state["trip_plan"] = run.trip_plan
        st.session_state["run_metrics"] = run.metrics
        st.session_state["run_logs"] = list(run.logs)

    except TripPlannerError as e:
        progress_bar.empty()
        status_text.empty()
        st.error(f"❌ Erreur: {e}")
        st.info("🔁 Réessayez : les réponses du modèle varient d'un appel à l'autre.")
        show_partial_logs(live_logs, debug_enabled)
    except Exception as e:
        progress_bar.empty()
        status_text.empty()
        st.error(f"❌ Erreur: {str(e)}")
        st.exception(e)
        show_partial_logs(live_logs, debug_enabled)


def show_partial_logs(live_logs, debug_enabled):
    if debug_enabled and live_logs:
        with st.expander("📋 Journal du run (partiel)", expanded=True):
            st.code("\n".join(live_logs), language="text")


def display_results(plan: TripPlan, metrics: dict, logs: list, api_key: str):
    """Affiche les résultats de la planification."""
    st.success(f"✅ Voyage planifié : {plan.destination.name}, {plan.destination.country}")

    # Métriques de génération
    st.header("📊 Métriques de Génération")

    col1, col2, col3 = st.columns(3)

    with col1:
        st.metric(
            label="⏱️ Temps d'exécution",
            value=f"{metrics.get('execution_time', 0):.1f}s"
        )

    with col2:
        st.metric(
            label="🔄 Appels au modèle",
            value=metrics.get("model_calls", 0)
        )

    with col3:
        st.metric(
            label="🗓️ Nuits",
            value=plan.trip_input.nights
        )

    quality = calculate_quality_score(plan)
    score = quality["overall_score"]
    st.metric(
        label="✅ Score de Qualité",
        value=f"{score}/100",
        delta="Excellent" if score >= 80 else "Bon" if score >= 60 else "À améliorer"
    )
    with st.expander("🔍 Détails de Validation"):
        for detail in quality["details"]:
            st.markdown(detail)

    display_destination(plan)
    display_flights(plan)
    display_hotels(plan)
    display_budget(plan)
    display_itinerary(plan)
    display_activities(plan)

    # Journal du run
    with st.expander("🔍 Journal du run"):
        st.code("\n".join(logs), language="text")

    display_summary(plan, api_key)
    display_downloads(plan)


def display_destination(plan: TripPlan):
    st.header("2️⃣ Destination")
    destination = plan.destination
    st.subheader(f"📍 {destination.name}, {destination.country}")
    if destination.match_percentage is not None:
        st.caption(f"Correspondance : {destination.match_percentage:.0f}%")
    st.markdown(destination.description)
    if destination.highlights:
        for highlight in destination.highlights:
            st.markdown(f"- {highlight}")
    if destination.language or destination.currency:
        st.caption(f"🗣️ {destination.language or '-'} | 💱 {destination.currency or '-'}")


def display_flights(plan: TripPlan):
    st.header("3️⃣ Vols")
    col1, col2 = st.columns(2)
    for column, label, flight in (
        (col1, "🛫 Aller", plan.flights.outbound),
        (col2, "🛬 Retour", plan.flights.return_flight),
    ):
        with column:
            st.subheader(label)
            st.markdown(f"**{flight.airline}** {flight.flight_number}")
            st.markdown(
                f"{flight.departure.code} {flight.departure.date} {flight.departure.time} → "
                f"{flight.arrival.code} {flight.arrival.date} {flight.arrival.time}"
            )
            st.caption(f"⏱️ {flight.duration}")
            st.markdown(f"💰 {format_amount(flight.price)}")


def display_hotels(plan: TripPlan):
    st.header("4️⃣ Hôtels")
    df_hotels = pd.DataFrame(
        [
            {
                "Hôtel": hotel.name,
                "Quartier": hotel.location,
                "Prix/nuit": hotel.price_per_night,
                "Étoiles": hotel.stars,
                "Avis": hotel.reviews,
            }
            for hotel in plan.hotels
        ]
    )
    st.dataframe(df_hotels, use_container_width=True, hide_index=True)


def display_budget(plan: TripPlan):
    st.header("5️⃣ Budget")
    stats = calculate_budget_stats(plan.budget)
    shares = budget_category_shares(plan.budget)
    main_plan = plan.budget.main_plan

    col1, col2 = st.columns([2, 1])

    with col1:
        fig = go.Figure(
            go.Pie(
                labels=list(shares.keys()),
                values=[getattr(main_plan, category) for category in shares],
                hole=0.5,
            )
        )
        fig.update_layout(height=380)
        st.plotly_chart(fig, use_container_width=True)

    with col2:
        st.metric(
            label="💰 Total planifié",
            value=format_amount(main_plan.total),
            delta=f"{format_amount(stats['remaining'])} restant",
        )
        st.metric(label="🎯 Budget initial", value=format_amount(plan.trip_input.budget))

    if plan.budget.alternative_plans:
        st.subheader("Alternatives")
        df_alternatives = pd.DataFrame(
            [{"Plan": alt.name, "Total": alt.total} for alt in plan.budget.alternative_plans]
        )
        st.dataframe(df_alternatives, use_container_width=True, hide_index=True)


def display_itinerary(plan: TripPlan):
    st.header("6️⃣ Itinéraire détaillé")
    stats = calculate_itinerary_stats(plan.itinerary)
    st.caption(
        f"{stats['total_days']} jours, {stats['total_activities']} activités, "
        f"coût estimé {format_amount(stats['total_cost'])}"
    )

    for day in plan.itinerary:
        with st.expander(f"**📅 Jour {day.day} - {day.date}** {day.title}", expanded=day.day == 1):
            df_day = pd.DataFrame(
                [
                    {
                        "Heure": activity.time,
                        "Activité": activity.description,
                        "Lieu": activity.location,
                        "Coût": activity.cost,
                    }
                    for activity in day.activities
                ]
            )
            st.dataframe(df_day, use_container_width=True, hide_index=True)


def display_activities(plan: TripPlan):
    st.header("7️⃣ Activités recommandées")
    for activity in plan.activities:
        prefix = "⭐ " if activity.recommended else ""
        st.markdown(f"**{prefix}{activity.name}** - {format_amount(activity.price)}")
        st.caption(f"⏱️ {activity.duration} | 📍 {activity.location}")
        st.markdown(activity.description)


def request_summary(planner: TripPlanner, plan: TripPlan):
    """
    Demande le résumé final au modèle.

    Returns:
        (TripSummary, None) si succès, (None, message d'erreur) sinon
    """
    try:
        return planner.finalize_trip_plan(plan), None
    except TripPlannerError as e:
        logger.warning("Résumé impossible: %s", e)
        return None, f"❌ Erreur: {e}"
    except Exception as e:
        logger.exception("Résumé impossible")
        return None, f"❌ Erreur: {str(e)}"


def display_summary(plan: TripPlan, api_key: str):
    st.header("8️⃣ Résumé final")
    if st.button("📝 Générer le résumé"):
        config = get_config()
        with st.spinner("Rédaction du résumé..."):
            try:
                llm_client = LLMClient(
                    model=config.llm.model,
                    api_key=api_key,
                    base_url=config.llm.base_url,
                    timeout_s=config.llm.timeout_s,
                    max_tokens=config.llm.max_tokens,
                )
            except TripPlannerError as e:
                st.error(f"❌ Erreur: {e}")
                return
            planner = TripPlanner(llm_client=llm_client, config=config)
            summary, error = request_summary(planner, plan)
            if error:
                st.error(error)
                st.info("🔁 Réessayez dans quelques instants.")
            else:
                st.session_state["summary"] = summary

    summary = st.session_state.get("summary")
    if summary is not None:
        st.subheader(summary.title)
        st.markdown(summary.overview)
        for title, items in (
            ("✨ Points forts", summary.highlights),
            ("💡 Conseils", summary.tips),
            ("⚠️ Avertissements", summary.disclaimers),
            ("🛠️ Personnalisation", summary.customization_options),
        ):
            if items:
                st.markdown(f"**{title}**")
                for item in items:
                    st.markdown(f"- {item}")


def display_downloads(plan: TripPlan):
    st.header("9️⃣ Téléchargement")

    col1, col2 = st.columns(2)

    with col1:
        st.download_button(
            label="📄 Télécharger en Markdown",
            data=generate_markdown(plan),
            file_name="voyage.md",
            mime="text/markdown"
        )

    with col2:
        st.download_button(
            label="📋 Télécharger en JSON",
            data=json.dumps(plan.to_payload(), indent=2, ensure_ascii=False),
            file_name="voyage.json",
            mime="application/json"
        )


def generate_markdown(plan: TripPlan) -> str:
    """Génère un export Markdown du plan."""
    destination = plan.destination
    main_plan = plan.budget.main_plan

    md = f"# 🗺️ {destination.name}, {destination.country}\n\n"
    md += f"{destination.description}\n\n"

    md += "## 🛫 Vols\n\n"
    for label, flight in (("Aller", plan.flights.outbound), ("Retour", plan.flights.return_flight)):
        md += (
            f"- **{label}**: {flight.airline} {flight.flight_number}, "
            f"{flight.departure.code} → {flight.arrival.code}, {format_amount(flight.price)}\n"
        )

    md += "\n## 🏨 Hôtels\n\n"
    for hotel in plan.hotels:
        md += f"- **{hotel.name}** ({hotel.location}) - {format_amount(hotel.price_per_night)}/nuit\n"

    md += "\n## 💰 Budget\n\n"
    for category, share in budget_category_shares(plan.budget).items():
        md += f"- {category}: {format_amount(getattr(main_plan, category))} ({share}%)\n"
    md += f"- **Total**: {format_amount(main_plan.total)} / {format_amount(plan.trip_input.budget)}\n"

    md += "\n## 📅 Programme\n\n"
    for day in plan.itinerary:
        md += f"### Jour {day.day} - {day.date} {day.title}\n\n"
        for activity in day.activities:
            md += f"- {activity.time or ''} {activity.description}"
            if activity.location:
                md += f" (📍 {activity.location})"
            md += "\n"
        md += "\n"

    md += "## 🎯 Activités recommandées\n\n"
    for activity in plan.activities:
        md += f"- **{activity.name}** - {format_amount(activity.price)}\n"

    return md


if __name__ == "__main__":
    main()
