"""
Prompts du pipeline de planification (une fonction pure par étape).

Chaque prompt liste les champs attendus, leurs plages de valeurs, un exemple
littéral du JSON attendu, et interdit tout texte avant/après le JSON.
"""
import json
from typing import Union

from trip_planner.dates import day_labels
from trip_planner.models import BudgetBreakdown, Destination, FlightPair, Hotel, TripInput, TripPlan

DEFAULT_CURRENCY = "INR"

JSON_ONLY_RULES = """CRITICAL INSTRUCTIONS:
1. Your response MUST be a single valid JSON object
2. Do NOT include any text before or after the JSON
3. Do NOT include explanations, headers, footers, Markdown fences or any non-JSON content
4. The response MUST be parseable by a strict JSON parser"""


DESTINATION_FINDER_PROMPT = """You are a travel destination expert AI system. Based on the user's preferences, suggest 3 suitable destinations.

User preferences:
- Origin: {origin}
- Budget: {budget} {currency}
- Trip Type: {trip_type}
- Start Date: {start_date}
- End Date: {end_date}
- Interests: {interests}
- Preferred activities: {activities}

For each destination, include:
- name: The city or location name (string)
- country: The country of the destination (string)
- description: A brief 1-2 sentence overview (string)
- matchPercentage: How well it matches their preferences (number between 60 and 99)
- highlights: Array of 3-5 strings describing things they can do there
- imageUrl: A placeholder for an image URL (e.g., "https://images.unsplash.com/...")
- language: Main language spoken there (string)
- currency: Local currency code (string)

Ensure the suggested destinations align with:
1. The user's budget constraints
2. Their travel timeframe (including seasonality)
3. Their trip type and interests
4. Logical travel distance from their origin

Order the destinations from best to worst match.

{rules}

Return an object with a "destinations" array, exactly like this example:
{{
  "destinations": [
    {{
      "name": "Destination 1",
      "country": "Country 1",
      "description": "Description of destination 1",
      "matchPercentage": 95,
      "highlights": ["Activity 1", "Activity 2", "Activity 3"],
      "imageUrl": "https://images.unsplash.com/...",
      "language": "Language 1",
      "currency": "CUR"
    }}
  ]
}}
"""


FLIGHT_BOOKING_PROMPT = """You are an expert flight booking AI agent. Find the most suitable round-trip flights between the origin and destination based on the user's travel preferences.

User Trip Details:
- Origin: {origin}
- Destination: {destination_name}, {destination_country}
- Departure Date: {start_date}
- Return Date: {end_date}
- Budget: {budget} {currency}

For each flight, include:
- airline: A realistic airline that flies this route
- flightNumber: A plausible flight number
- departure: Object with airport, code, time, and date
- arrival: Object with airport, code, time, and date
- duration: Flight duration as string (e.g., "2h 35m")
- price: Realistic price in {currency} for one-way (total is outbound + return)
- aircraft: Type of aircraft (e.g., "Airbus A320")
- class: "Economy" (default for budget travelers)

Considerations:
1. Choose flight times that maximize time at the destination
2. Keep total flight costs under 30-40% of the total budget
3. Prefer direct flights when possible
4. Choose realistic airlines that operate between these locations
5. Use realistic airport codes, prices, and timings

{rules}

Return an object with "outbound" and "return" flights, exactly like this example:
{{
  "outbound": {{
    "airline": "Airline",
    "flightNumber": "AB 123",
    "departure": {{"airport": "Origin Airport", "code": "ORG", "time": "08:00", "date": "{start_date}"}},
    "arrival": {{"airport": "Destination Airport", "code": "DST", "time": "11:35", "date": "{start_date}"}},
    "duration": "3h 35m",
    "price": 12000,
    "aircraft": "Airbus A320",
    "class": "Economy"
  }},
  "return": {{
    "airline": "Airline",
    "flightNumber": "AB 124",
    "departure": {{"airport": "Destination Airport", "code": "DST", "time": "18:00", "date": "{end_date}"}},
    "arrival": {{"airport": "Origin Airport", "code": "ORG", "time": "21:35", "date": "{end_date}"}},
    "duration": "3h 35m",
    "price": 12500,
    "aircraft": "Airbus A320",
    "class": "Economy"
  }}
}}
"""


HOTEL_BOOKING_PROMPT = """You are an expert hotel booking AI agent. Find the most suitable accommodation options for the user's trip based on their preferences.

User Trip Details:
- Destination: {destination_name}, {destination_country}
- Check-in Date: {start_date}
- Check-out Date: {end_date}
- Trip Type: {trip_type}
- Budget: {budget} {currency}
- Interests: {interests}
- Preferred activities: {activities}

Provide exactly 2 hotel options. For each hotel, include:
- name: Hotel name
- location: Specific neighborhood or area in the destination
- description: Brief description of the hotel and its key features
- pricePerNight: Realistic price per night in {currency}
- stars: Hotel rating (1-5)
- reviews: Number of reviews (100-1000)
- amenities: Array of 5-8 available amenities
- imageUrls: Array of 1-4 placeholder image URLs (e.g., "https://images.unsplash.com/...")

Considerations:
1. The first hotel should be higher-end and the second more budget-friendly
2. Hotel locations should be convenient for tourists
3. Amenities should match the trip type (e.g., pool for relaxation, fitness center for adventure)
4. Accommodation costs should be reasonable for the destination and not exceed 40-50% of the total budget

{rules}

Return an object with a "hotels" array, exactly like this example:
{{
  "hotels": [
    {{
      "name": "Luxury Hotel",
      "location": "Central area",
      "description": "Luxurious hotel with excellent amenities",
      "pricePerNight": 8000,
      "stars": 5,
      "reviews": 450,
      "amenities": ["Pool", "Spa", "Restaurant", "Free WiFi", "Room Service"],
      "imageUrls": ["https://images.unsplash.com/..."]
    }},
    {{
      "name": "Budget Hotel",
      "location": "Near downtown",
      "description": "Comfortable budget hotel",
      "pricePerNight": 3000,
      "stars": 3,
      "reviews": 250,
      "amenities": ["Free WiFi", "Breakfast", "Air conditioning"],
      "imageUrls": ["https://images.unsplash.com/..."]
    }}
  ]
}}
"""


BUDGET_OPTIMIZER_PROMPT = """You are an expert budget optimization AI agent. Create a detailed budget breakdown for the user's trip based on all available information.

Trip Information:
- Origin: {origin}
- Destination: {destination_name}, {destination_country}
- Start Date: {start_date}
- End Date: {end_date}
- Trip Type: {trip_type}
- User's Budget: {budget} {currency}

Known Costs (already booked, use these exact amounts, do NOT recompute them):
- Flights: {flights_total} {currency} total (outbound {outbound_price} + return {return_price})
- Hotel: {hotel_name}, {price_per_night} {currency} per night for {nights} nights = {accommodation_total} {currency}

The "mainPlan" must include:
- flights: Total flight costs (use {flights_total})
- accommodation: Total accommodation costs (use {accommodation_total})
- activities: Estimated activities costs
- food: Estimated food costs
- transportation: Local transportation costs
- miscellaneous: Other expenses
- total: Sum of all costs above
- originalBudget: User's original budget ({budget})
All amounts are non-negative numbers in {currency}.

Additionally, provide 2 "alternativePlans":
1. A more economical option that reduces costs
2. A premium option that enhances the experience

Each alternative should have:
- name: Description of the alternative (e.g., "Budget-friendly option")
- total: Total cost
- breakdown: Modified cost breakdown (only the categories that change)

Considerations:
1. Be realistic about costs for the specific destination
2. Ensure the main plan respects the user's original budget when possible
3. For alternatives, clearly identify what is being changed (e.g., lower-tier hotel, fewer activities)

{rules}

Example format:
{{
  "mainPlan": {{
    "flights": {flights_total},
    "accommodation": {accommodation_total},
    "activities": 8000,
    "food": 7000,
    "transportation": 3000,
    "miscellaneous": 2000,
    "total": 0,
    "originalBudget": {budget}
  }},
  "alternativePlans": [
    {{"name": "Budget-friendly option", "total": 0, "breakdown": {{"accommodation": 0, "activities": 0}}}},
    {{"name": "Premium option", "total": 0, "breakdown": {{"accommodation": 0, "activities": 0}}}}
  ]
}}
(replace the 0 placeholders with real amounts)
"""


ITINERARY_GENERATOR_PROMPT = """You are an expert travel itinerary AI agent. Create a day-by-day itinerary for the user's trip based on their preferences and budget.

Trip Information:
- Destination: {destination_name}, {destination_country}
- Trip Type: {trip_type}
- Start Date: {start_date}
- End Date: {end_date}
- Hotel: {hotel_name} in {hotel_location}
- Activities Budget: {activities_budget} {currency}
- Interests: {interests}

Create itinerary items for each day ({day_count} days total, one per calendar day):
{day_list}

Each day includes:
- day: Day number (1, 2, 3, etc.)
- date: Formatted date exactly as listed above (e.g., "May 15, 2023")
- title: Brief theme for the day's activities
- activities: Array of 4-6 activities for the day, each with:
  - time: Approximate time (e.g., "09:00 AM")
  - description: What the activity is
  - cost: Estimated cost in {currency} (0 for free activities)
  - location: Where this takes place
  - notes: Optional tips or information

Considerations:
1. Day 1 MUST account for arrival and hotel check-in
2. Day {day_count} (the last day) MUST account for check-out and departure
3. Balance activities between popular must-see attractions and off-the-beaten-path experiences
4. Incorporate the user's interests and trip type
5. Include a mix of paid and free activities
6. Allow reasonable time for travel between activities
7. Include appropriate meal times and suggestions

{rules}

Return an object with an "Itinerary" array, exactly like this example:
{{
  "Itinerary": [
    {{
      "day": 1,
      "date": "{first_day_label}",
      "title": "Arrival and Orientation",
      "activities": [
        {{
          "time": "10:00 AM",
          "description": "Arrival at airport",
          "cost": 0,
          "location": "Airport",
          "notes": "Take taxi to hotel"
        }},
        {{
          "time": "01:00 PM",
          "description": "Check-in at hotel",
          "cost": 0,
          "location": {hotel_name_json}
        }}
      ]
    }}
  ]
}}
"""


ACTIVITY_RECOMMENDATION_PROMPT = """You are an expert activity recommendation AI agent. Suggest suitable activities for the user's trip based on their preferences and destination.

Trip Information:
- Destination: {destination_name}, {destination_country}
- Trip Type: {trip_type}
- Duration: {nights} nights
- Activities Budget: {activities_budget} {currency}
- Interests: {interests}
- Preferred activities: {activities}

Provide 6-8 activity recommendations, including:
- name: Activity name
- description: Brief description of the activity
- price: Estimated cost per person in {currency} (0 for free options)
- duration: Approximate duration (e.g., "2 hours", "Half day")
- location: Where this activity takes place
- imageUrl: A placeholder image URL (e.g., "https://images.unsplash.com/...")
- recommended: Boolean indicating if this is highly recommended based on preferences

Considerations:
1. Align activities with the user's trip type and interests
2. Include a mix of price points (including free options)
3. Ensure activities are available and appropriate for the travel season
4. Include both popular and unique experiences
5. Consider travel logistics and location within the destination

{rules}

Return an object with an "activities" array, exactly like this example:
{{
  "activities": [
    {{
      "name": "Activity 1",
      "description": "Description of activity 1",
      "price": 1500,
      "duration": "3 hours",
      "location": "Old town",
      "imageUrl": "https://images.unsplash.com/...",
      "recommended": true
    }}
  ]
}}
"""


TRIP_FINALIZE_PROMPT = """You are an expert trip review AI agent. Create a comprehensive summary of the finalized trip plan.

Complete Trip Plan:
{trip_plan}

Create a summary that includes:
- title: A catchy title for the trip
- overview: Brief overview of the destination and trip type
- highlights: Array of 3-5 trip highlights
- tips: Array of 3-5 practical tips for the traveler
- disclaimers: Any important considerations or limitations of this plan
- customizationOptions: Suggestions for how the plan could be personalized further

Considerations:
1. Be realistic and practical
2. Highlight the best aspects of the plan
3. Identify any potential challenges or considerations
4. Suggest personal touches that could enhance the experience

{rules}

Example format:
{{
  "title": "Trip title",
  "overview": "Short overview",
  "highlights": ["Highlight 1", "Highlight 2", "Highlight 3"],
  "tips": ["Tip 1", "Tip 2", "Tip 3"],
  "disclaimers": ["Disclaimer 1"],
  "customizationOptions": ["Option 1", "Option 2"]
}}
"""


def format_amount(value: Union[int, float]) -> str:
    """Montant sans décimales inutiles : 59500.0 -> "59500", 12.5 -> "12.50"."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}"


def _interests(trip_input: TripInput) -> str:
    return trip_input.interests or "General travel"


def _activities(trip_input: TripInput) -> str:
    return ", ".join(trip_input.activities) if trip_input.activities else "No preference"


def destination_finder_prompt(trip_input: TripInput, currency: str = DEFAULT_CURRENCY) -> str:
    return DESTINATION_FINDER_PROMPT.format(
        origin=trip_input.origin,
        budget=format_amount(trip_input.budget),
        currency=currency,
        trip_type=trip_input.trip_type.value,
        start_date=trip_input.start_date.isoformat(),
        end_date=trip_input.end_date.isoformat(),
        interests=_interests(trip_input),
        activities=_activities(trip_input),
        rules=JSON_ONLY_RULES,
    )


def flight_booking_prompt(
    trip_input: TripInput, destination: Destination, currency: str = DEFAULT_CURRENCY
) -> str:
    return FLIGHT_BOOKING_PROMPT.format(
        origin=trip_input.origin,
        destination_name=destination.name,
        destination_country=destination.country,
        start_date=trip_input.start_date.isoformat(),
        end_date=trip_input.end_date.isoformat(),
        budget=format_amount(trip_input.budget),
        currency=currency,
        rules=JSON_ONLY_RULES,
    )


def hotel_booking_prompt(
    trip_input: TripInput, destination: Destination, currency: str = DEFAULT_CURRENCY
) -> str:
    return HOTEL_BOOKING_PROMPT.format(
        destination_name=destination.name,
        destination_country=destination.country,
        start_date=trip_input.start_date.isoformat(),
        end_date=trip_input.end_date.isoformat(),
        trip_type=trip_input.trip_type.value,
        budget=format_amount(trip_input.budget),
        currency=currency,
        interests=_interests(trip_input),
        activities=_activities(trip_input),
        rules=JSON_ONLY_RULES,
    )


def budget_optimizer_prompt(
    trip_input: TripInput,
    destination: Destination,
    flights: FlightPair,
    hotel: Hotel,
    currency: str = DEFAULT_CURRENCY,
) -> str:
    """
    Prompt d'optimisation du budget.

    Les coûts déjà connus (vols aller + retour, nuitées × prix par nuit) sont
    calculés ici et injectés littéralement : le modèle ne doit pas les recalculer.
    """
    nights = trip_input.nights
    return BUDGET_OPTIMIZER_PROMPT.format(
        origin=trip_input.origin,
        destination_name=destination.name,
        destination_country=destination.country,
        start_date=trip_input.start_date.isoformat(),
        end_date=trip_input.end_date.isoformat(),
        trip_type=trip_input.trip_type.value,
        budget=format_amount(trip_input.budget),
        currency=currency,
        flights_total=format_amount(flights.total_price),
        outbound_price=format_amount(flights.outbound.price),
        return_price=format_amount(flights.return_flight.price),
        hotel_name=hotel.name,
        price_per_night=format_amount(hotel.price_per_night),
        nights=nights,
        accommodation_total=format_amount(hotel.price_per_night * nights),
        rules=JSON_ONLY_RULES,
    )


def itinerary_generator_prompt(
    trip_input: TripInput,
    destination: Destination,
    hotel: Hotel,
    budget: BudgetBreakdown,
    currency: str = DEFAULT_CURRENCY,
) -> str:
    day_count = trip_input.day_count
    labels = day_labels(trip_input.start_date, day_count)
    day_list = "\n".join(f"- Day {number}: {label}" for number, label in enumerate(labels, start=1))
    return ITINERARY_GENERATOR_PROMPT.format(
        destination_name=destination.name,
        destination_country=destination.country,
        trip_type=trip_input.trip_type.value,
        start_date=trip_input.start_date.isoformat(),
        end_date=trip_input.end_date.isoformat(),
        hotel_name=hotel.name,
        hotel_location=hotel.location,
        activities_budget=format_amount(budget.main_plan.activities),
        currency=currency,
        interests=_interests(trip_input),
        day_count=day_count,
        day_list=day_list,
        first_day_label=labels[0],
        hotel_name_json=json.dumps(hotel.name, ensure_ascii=False),
        rules=JSON_ONLY_RULES,
    )


def activity_recommendation_prompt(
    trip_input: TripInput,
    destination: Destination,
    budget: BudgetBreakdown,
    currency: str = DEFAULT_CURRENCY,
) -> str:
    return ACTIVITY_RECOMMENDATION_PROMPT.format(
        destination_name=destination.name,
        destination_country=destination.country,
        trip_type=trip_input.trip_type.value,
        nights=trip_input.nights,
        activities_budget=format_amount(budget.main_plan.activities),
        currency=currency,
        interests=_interests(trip_input),
        activities=_activities(trip_input),
        rules=JSON_ONLY_RULES,
    )


def trip_finalize_prompt(trip_plan: TripPlan) -> str:
    return TRIP_FINALIZE_PROMPT.format(
        trip_plan=json.dumps(trip_plan.to_payload(), indent=2, ensure_ascii=False),
        rules=JSON_ONLY_RULES,
    )
