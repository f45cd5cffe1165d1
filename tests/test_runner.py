import json

import pytest
import requests

from trip_planner.agent.runner import (
    PIPELINE,
    PlanningRun,
    PlanningState,
    RetryPolicy,
    TripPlanner,
    first_candidate,
)
from trip_planner.config import AppConfig, PlannerConfig, RetryConfig
from trip_planner.errors import (
    EmptyCompletionError,
    InvalidDestinationError,
    InvalidStageResultError,
    NoDestinationFoundError,
    PipelineStateError,
    RunTimeoutError,
    UnparseableResponseError,
)

from conftest import (
    ACTIVITIES_PAYLOAD,
    DESTINATIONS_PAYLOAD,
    HOTELS_PAYLOAD,
    FakeLLMClient,
    canonical_responses,
    itinerary_payload,
)


def test_end_to_end_delhi_scenario(planner, fake_llm, trip_input):
    fake_llm.queue(*canonical_responses())

    run = planner.run_pipeline(trip_input)
    plan = run.trip_plan

    assert run.state is PlanningState.ASSEMBLED
    assert len(plan.itinerary) == 7
    assert plan.budget.main_plan.total == 115500
    assert plan.destination.name == "Goa"
    assert plan.flights.total_price == 59500
    assert [h.name for h in plan.hotels] == ["Taj Holiday Village", "Casa Anjuna"]
    assert len(plan.activities) == 6
    assert plan.trip_input == trip_input
    assert fake_llm.calls == 6
    assert all(fake_llm.json_modes)


def test_run_history_follows_pipeline_order(planner, fake_llm, trip_input):
    fake_llm.queue(*canonical_responses())

    run = planner.run_pipeline(trip_input)

    assert run.history == [PlanningState.IDLE, *PIPELINE, PlanningState.ASSEMBLED]
    assert set(run.stage_metrics) == {"destinations", "flights", "hotels", "budget", "itinerary", "activities"}
    assert run.metrics["model_calls"] == 6
    assert run.metrics["execution_time"] >= 0


def test_first_candidate_feeds_downstream_prompts(planner, fake_llm, trip_input):
    fake_llm.queue(*canonical_responses())

    planner.run_pipeline(trip_input)

    flight_prompt, hotel_prompt, budget_prompt = fake_llm.prompts[1:4]
    assert "Goa, India" in flight_prompt
    assert "Alleppey" not in flight_prompt
    assert "Goa, India" in hotel_prompt
    # Premier hôtel : 6000 x 6 nuits
    assert "36000" in budget_prompt
    assert "59500" in budget_prompt


def test_first_destination_wins_regardless_of_match_percentage(planner, fake_llm, trip_input):
    goa, alleppey = DESTINATIONS_PAYLOAD["destinations"]
    reordered = {"destinations": [{**alleppey, "matchPercentage": 61}, {**goa, "matchPercentage": 99}]}
    responses = canonical_responses()
    responses[0] = json.dumps(reordered)
    fake_llm.queue(*responses)

    plan = planner.create_trip_plan(trip_input)

    assert plan.destination.name == "Alleppey"


def test_custom_selectors_are_used(fake_llm, app_config, trip_input):
    planner = TripPlanner(
        llm_client=fake_llm,
        config=app_config,
        select_destination=lambda candidates: candidates[-1],
        select_hotel=lambda candidates: candidates[-1],
    )
    fake_llm.queue(*canonical_responses())

    plan = planner.create_trip_plan(trip_input)

    assert plan.destination.name == "Alleppey"
    # Casa Anjuna : 4500 x 6 nuits
    assert "27000" in fake_llm.prompts[3]


def test_empty_destinations_abort_before_any_other_stage(planner, fake_llm, trip_input):
    fake_llm.queue(json.dumps({"destinations": []}))

    with pytest.raises(NoDestinationFoundError):
        planner.run_pipeline(trip_input)

    assert fake_llm.calls == 1


def test_destination_without_country_is_rejected(planner, fake_llm, trip_input):
    bad = {**DESTINATIONS_PAYLOAD["destinations"][0], "country": "  "}
    fake_llm.queue(json.dumps({"destinations": [bad]}))

    with pytest.raises(InvalidDestinationError):
        planner.run_pipeline(trip_input)

    assert fake_llm.calls == 1


def test_failure_mid_pipeline_stops_run(planner, fake_llm, trip_input):
    responses = canonical_responses()
    responses[2] = json.dumps({"hotels": []})
    fake_llm.queue(*responses[:3])

    with pytest.raises(InvalidStageResultError) as excinfo:
        planner.run_pipeline(trip_input)

    assert excinfo.value.stage == "hotels"
    assert fake_llm.calls == 3


def test_failed_run_records_failed_state(fake_llm, app_config, trip_input):
    logs = []
    planner = TripPlanner(llm_client=fake_llm, config=app_config, log_callback=logs.append)
    fake_llm.queue(json.dumps({"destinations": []}))

    with pytest.raises(NoDestinationFoundError):
        planner.run_pipeline(trip_input)

    assert any(line.startswith("ERREUR (finding_destinations)") for line in logs)


def test_invalid_field_values_raise_stage_error(planner, fake_llm, trip_input, destination, budget):
    activities = [{**ACTIVITIES_PAYLOAD["activities"][0], "price": -20}]
    fake_llm.queue(json.dumps({"activities": activities}))

    with pytest.raises(InvalidStageResultError) as excinfo:
        planner.recommend_activities(trip_input, destination, budget)

    assert excinfo.value.stage == "activities"
    assert fake_llm.calls == 1


def test_transient_error_is_retried(planner, fake_llm, sleeps, trip_input):
    fake_llm.queue(requests.ConnectionError("reset"), json.dumps(DESTINATIONS_PAYLOAD))

    destinations = planner.find_destinations(trip_input)

    assert [d.name for d in destinations] == ["Goa", "Alleppey"]
    assert fake_llm.calls == 2
    assert len(sleeps) == 1


def test_unparseable_response_is_retried_then_raised(planner, fake_llm, trip_input):
    fake_llm.queue("no json here", "still nothing")

    with pytest.raises(UnparseableResponseError):
        planner.find_destinations(trip_input)

    assert fake_llm.calls == 2


def test_http_errors_are_not_retried(planner, fake_llm, trip_input):
    fake_llm.queue(requests.HTTPError("401 Unauthorized"))

    with pytest.raises(requests.HTTPError):
        planner.find_destinations(trip_input)

    assert fake_llm.calls == 1


def test_single_attempt_policy_disables_retry(fake_llm, trip_input):
    config = AppConfig(
        retry=RetryConfig(max_attempts=1),
        planner=PlannerConfig(run_timeout_s=0),
    )
    planner = TripPlanner(llm_client=fake_llm, config=config)
    fake_llm.queue(EmptyCompletionError("No content", model="fake-model"))

    with pytest.raises(EmptyCompletionError):
        planner.find_destinations(trip_input)

    assert fake_llm.calls == 1


def test_retry_delay_grows_and_is_capped():
    policy = RetryPolicy(max_attempts=5, base_delay_s=1.0, max_delay_s=3.0, jitter_s=0.5, uniform=lambda a, b: b)
    assert policy.delay_for(1) == 1.5
    assert policy.delay_for(2) == 2.5
    assert policy.delay_for(3) == 3.5
    assert policy.delay_for(4) == 3.5


def test_run_deadline_raises_timeout(trip_input):
    ticks = iter([0.0, 0.0, 700.0])
    run = PlanningRun(trip_input, run_timeout_s=600, clock=lambda: next(ticks))

    run.check_deadline("destinations")
    with pytest.raises(RunTimeoutError) as excinfo:
        run.check_deadline("flights")

    assert excinfo.value.stage == "flights"
    assert excinfo.value.limit_s == 600


class SlowLLMClient(FakeLLMClient):
    """Chaque appel fait avancer une horloge simulée."""

    def __init__(self, responses, step_s):
        super().__init__(responses)
        self.now = 0.0
        self.step_s = step_s

    def generate(self, prompt, *, json_mode=False, temperature=0.7):
        self.now += self.step_s
        return super().generate(prompt, json_mode=json_mode, temperature=temperature)


def test_run_timeout_aborts_pipeline(trip_input):
    slow_llm = SlowLLMClient(canonical_responses(), step_s=400.0)
    config = AppConfig(planner=PlannerConfig(run_timeout_s=600))
    planner = TripPlanner(llm_client=slow_llm, config=config, clock=lambda: slow_llm.now)

    with pytest.raises(RunTimeoutError) as excinfo:
        planner.run_pipeline(trip_input)

    assert excinfo.value.stage == "hotels"
    assert slow_llm.calls == 2


def test_require_missing_result_raises_pipeline_state_error(trip_input):
    run = PlanningRun(trip_input)
    with pytest.raises(PipelineStateError):
        run.require("destination")


def test_terminal_run_rejects_new_transitions(trip_input):
    run = PlanningRun(trip_input)
    run.fail(RuntimeError("boom"))
    with pytest.raises(PipelineStateError):
        run.advance(PlanningState.FINDING_FLIGHTS)


def test_itinerary_count_mismatch_is_only_a_warning(planner, fake_llm, trip_input, destination, hotel, budget):
    fake_llm.queue(json.dumps(itinerary_payload(days=5)))

    itinerary = planner.generate_itinerary(trip_input, destination, hotel, budget)

    assert len(itinerary) == 5


def test_single_hotel_is_accepted(planner, fake_llm, trip_input, destination):
    fake_llm.queue(json.dumps(HOTELS_PAYLOAD["hotels"][0]))

    hotels = planner.find_hotels(trip_input, destination)

    assert [h.name for h in hotels] == ["Taj Holiday Village"]


def test_first_candidate():
    assert first_candidate(["a", "b"]) == "a"


def test_finalize_trip_plan(planner, fake_llm, trip_input):
    fake_llm.queue(*canonical_responses())
    plan = planner.create_trip_plan(trip_input)
    fake_llm.queue(json.dumps({"title": "Goa Unwind", "overview": "Seven slow days.", "tips": ["Carry cash"]}))

    summary = planner.finalize_trip_plan(plan)

    assert summary.title == "Goa Unwind"
    assert summary.tips == ["Carry cash"]
    assert '"tripInput"' in fake_llm.prompts[-1]


def test_stage_durations_use_injected_clock(trip_input):
    slow_llm = SlowLLMClient(canonical_responses(), step_s=5.0)
    config = AppConfig(planner=PlannerConfig(run_timeout_s=0))
    planner = TripPlanner(llm_client=slow_llm, config=config, clock=lambda: slow_llm.now)

    run = planner.run_pipeline(trip_input)

    assert [m["duration_s"] for m in run.stage_metrics.values()] == [5.0] * 6
    assert run.elapsed_s == 30.0
