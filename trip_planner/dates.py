"""Calculs de dates du voyage (nuits, jours d'itinéraire, libellés)."""
from datetime import date, timedelta
from typing import List


def trip_nights(start_date: date, end_date: date) -> int:
    """Nombre de nuits : écart absolu en jours entre les deux dates.

    >>> trip_nights(date(2023, 5, 15), date(2023, 5, 21))
    6
    """
    return abs((end_date - start_date).days)


def itinerary_day_count(start_date: date, end_date: date) -> int:
    """Un jour d'itinéraire par jour calendaire, bornes incluses."""
    return trip_nights(start_date, end_date) + 1


def format_day_label(day: date) -> str:
    # "May 15, 2023" (pas de zéro initial sur le jour)
    return f"{day.strftime('%B')} {day.day}, {day.year}"


def day_labels(start_date: date, count: int) -> List[str]:
    """Libellés des `count` jours consécutifs à partir de `start_date`."""
    return [format_day_label(start_date + timedelta(days=offset)) for offset in range(count)]
