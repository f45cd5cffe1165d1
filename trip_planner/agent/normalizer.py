"""
Normalisation des réponses brutes du modèle.

Le modèle ne respecte pas toujours le format demandé : tableau au lieu
d'objet, objet isolé, JSON imbriqué dans un conteneur inattendu, ou JSON
noyé dans du texte. Chaque étape du pipeline décrit la forme minimale
attendue (`StageShape`) ; une chaîne d'extracteurs tente ensuite, dans
l'ordre, de retrouver les candidats correspondants.

Le normaliseur ne fabrique jamais de champ manquant : il localise et
extrait une charge utile structurellement plausible, rien de plus.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from trip_planner.errors import UnparseableResponseError

logger = logging.getLogger(__name__)

ShapePredicate = Callable[[Any], bool]
Candidates = List[Dict[str, Any]]
Extractor = Callable[[Any, "StageShape"], Optional[Candidates]]


# --- Prédicats de forme (type et présence uniquement) ---

def _is_str(value: Any) -> bool:
    return isinstance(value, str)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_destination(obj: Any) -> bool:
    return (
        isinstance(obj, dict)
        and _is_str(obj.get("name"))
        and _is_str(obj.get("country"))
        and _is_str(obj.get("description"))
    )


def is_flight(obj: Any) -> bool:
    return (
        isinstance(obj, dict)
        and _is_str(obj.get("airline"))
        and _is_str(obj.get("flightNumber"))
        and isinstance(obj.get("departure"), dict)
        and isinstance(obj.get("arrival"), dict)
    )


def is_flight_pair(obj: Any) -> bool:
    return isinstance(obj, dict) and is_flight(obj.get("outbound")) and is_flight(obj.get("return"))


def is_hotel(obj: Any) -> bool:
    return (
        isinstance(obj, dict)
        and _is_str(obj.get("name"))
        and _is_str(obj.get("location"))
        and _is_number(obj.get("pricePerNight"))
    )


def is_budget_breakdown(obj: Any) -> bool:
    return (
        isinstance(obj, dict)
        and isinstance(obj.get("mainPlan"), dict)
        and _is_number(obj["mainPlan"].get("total"))
    )


def is_itinerary_day(obj: Any) -> bool:
    day = obj.get("day") if isinstance(obj, dict) else None
    return (
        isinstance(obj, dict)
        and isinstance(day, int)
        and not isinstance(day, bool)
        and isinstance(obj.get("activities"), list)
    )


def is_activity(obj: Any) -> bool:
    return (
        isinstance(obj, dict)
        and _is_str(obj.get("name"))
        and _is_str(obj.get("description"))
        and _is_number(obj.get("price"))
    )


def is_trip_summary(obj: Any) -> bool:
    return isinstance(obj, dict) and _is_str(obj.get("title")) and _is_str(obj.get("overview"))


@dataclass(frozen=True)
class StageShape:
    """Forme attendue pour une étape : prédicat + clés conteneurs connues."""

    stage: str
    predicate: ShapePredicate
    containers: Tuple[str, ...] = ()


DESTINATIONS = StageShape(
    "destinations", is_destination, ("destinations", "results", "options", "suggestions")
)
FLIGHTS = StageShape("flights", is_flight_pair)
HOTELS = StageShape("hotels", is_hotel, ("hotels", "results", "options", "suggestions"))
BUDGET = StageShape("budget", is_budget_breakdown)
ITINERARY = StageShape("itinerary", is_itinerary_day, ("Itinerary", "itinerary", "days", "results"))
ACTIVITIES = StageShape(
    "activities",
    is_activity,
    ("activities", "recommendations", "results", "options", "suggestions"),
)
SUMMARY = StageShape("summary", is_trip_summary)


# --- Extracteurs (chaîne de responsabilité) ---

def extract_array(value: Any, shape: StageShape) -> Optional[Candidates]:
    """La réponse est directement un tableau de candidats."""
    if isinstance(value, list) and value and shape.predicate(value[0]):
        return value
    return None


def extract_container(value: Any, shape: StageShape) -> Optional[Candidates]:
    """La réponse est un objet dont une clé conteneur connue porte le tableau."""
    if not isinstance(value, dict):
        return None
    for key in shape.containers:
        items = value.get(key)
        if isinstance(items, list) and items and shape.predicate(items[0]):
            return items
    return None


def extract_single(value: Any, shape: StageShape) -> Optional[Candidates]:
    """La réponse est un candidat isolé."""
    if shape.predicate(value):
        return [value]
    return None


def extract_nested(value: Any, shape: StageShape) -> Optional[Candidates]:
    """Parcours récursif à la recherche de tableaux ou d'objets conformes."""
    found: Candidates = []

    def walk(node: Any) -> None:
        if isinstance(node, dict):
            if shape.predicate(node):
                found.append(node)
                return
            for child in node.values():
                walk(child)
        elif isinstance(node, list):
            if node and shape.predicate(node[0]):
                found.extend(node)
                return
            for child in node:
                walk(child)

    walk(value)
    return found or None


PARSED_EXTRACTORS: Tuple[Extractor, ...] = (extract_array, extract_container, extract_single, extract_nested)
TEXT_SCAN_EXTRACTORS: Tuple[Extractor, ...] = (extract_array, extract_container, extract_single)


def run_extractors(value: Any, shape: StageShape, extractors: Sequence[Extractor]) -> Optional[Candidates]:
    for extractor in extractors:
        match = extractor(value, shape)
        if match is not None:
            logger.debug("[%s] candidats trouvés par %s: %d", shape.stage, extractor.__name__, len(match))
            return match
    return None


# --- Récupération du JSON dans du texte ---

def _strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _find_complete_json_value(text: str, start: int) -> Optional[str]:
    """
    Retourne la structure JSON complète (`{...}` ou `[...]`) qui commence à `start`
    (en respectant les strings). Si elle est tronquée ou mal appariée, retourne None.
    """
    closers = {"{": "}", "[": "]"}
    stack: List[str] = []
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        else:
            if ch == '"':
                in_string = True
            elif ch in closers:
                stack.append(closers[ch])
            elif ch in "}]":
                if not stack or stack.pop() != ch:
                    return None
                if not stack:
                    return text[start : i + 1]

    return None


def _iter_json_fragments(text: str) -> Iterator[str]:
    """Fragments `[...]`/`{...}` équilibrés, dans l'ordre d'apparition."""
    for i, ch in enumerate(text):
        if ch in "[{":
            fragment = _find_complete_json_value(text, i)
            if fragment:
                yield fragment


_GREEDY_JSON_RE = re.compile(r"\[[\s\S]*\]|\{[\s\S]*\}")


def _escape_control_chars_in_strings(text: str) -> str:
    """
    Rend un JSON "presque valide" parseable quand le modèle met des retours à la ligne
    bruts dans des strings (non échappés), ex: "ligne1\nligne2" au lieu de "\\n".
    """
    if not text:
        return text

    out: List[str] = []
    in_string = False
    escaped = False
    i = 0
    while i < len(text):
        ch = text[i]

        if in_string:
            if escaped:
                out.append(ch)
                escaped = False
            elif ch == "\\":
                out.append(ch)
                escaped = True
            elif ch == '"':
                out.append(ch)
                in_string = False
            elif ch == "\r":
                if i + 1 < len(text) and text[i + 1] == "\n":
                    i += 1
                out.append("\\n")
            elif ch == "\n":
                out.append("\\n")
            elif ch == "\t":
                out.append("\\t")
            elif ord(ch) < 0x20:
                out.append(f"\\u{ord(ch):04x}")
            else:
                out.append(ch)
        else:
            out.append(ch)
            if ch == '"':
                in_string = True

        i += 1

    return "".join(out)


_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def _remove_trailing_commas(text: str) -> str:
    if not text:
        return text
    previous = None
    current = text
    while previous != current:
        previous = current
        current = _TRAILING_COMMA_RE.sub(r"\1", current)
    return current


def _repair(text: str) -> str:
    return _remove_trailing_commas(_escape_control_chars_in_strings(text))


def _iter_text_candidates(text: str) -> Iterator[str]:
    cleaned = _strip_code_fences(text)
    yield cleaned
    yield from _iter_json_fragments(cleaned)
    greedy = _GREEDY_JSON_RE.search(cleaned)
    if greedy:
        yield greedy.group(0)


def _loads(text: str) -> Tuple[bool, Any]:
    for attempt in (text, _repair(text)):
        try:
            return True, json.loads(attempt)
        except json.JSONDecodeError:
            continue
    return False, None


# --- Points d'entrée ---

def extract_candidates(raw_text: str, shape: StageShape) -> Candidates:
    """
    Extrait les candidats de `raw_text` pour une étape.

    1. Parse JSON direct, puis extracteurs tableau / conteneur / isolé / imbriqué.
       Un JSON valide sans candidat donne une liste vide.
    2. Sinon, balayage du texte (blocs Markdown, fragments équilibrés, bloc
       glouton, versions réparées) avec les extracteurs tableau / conteneur / isolé.

    Raises:
        UnparseableResponseError: aucun JSON exploitable dans la réponse
    """
    text = (raw_text or "").strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        logger.debug("[%s] parse direct impossible, balayage du texte", shape.stage)
    else:
        return run_extractors(parsed, shape, PARSED_EXTRACTORS) or []

    seen = set()
    for candidate in _iter_text_candidates(text):
        if candidate in seen:
            continue
        seen.add(candidate)
        ok, value = _loads(candidate)
        if not ok:
            continue
        match = run_extractors(value, shape, TEXT_SCAN_EXTRACTORS)
        if match is not None:
            return match

    raise UnparseableResponseError(
        f"Impossible d'extraire un JSON exploitable pour l'étape '{shape.stage}'",
        stage=shape.stage,
        raw_text=raw_text or "",
    )


def normalize_list(raw_text: str, shape: StageShape) -> Candidates:
    """Normalise une étape à plusieurs candidats (destinations, hôtels...)."""
    return extract_candidates(raw_text, shape)


def normalize_object(raw_text: str, shape: StageShape) -> Dict[str, Any]:
    """Normalise une étape à objet unique (vols, budget, résumé).

    Raises:
        UnparseableResponseError: aucun candidat conforme
    """
    candidates = extract_candidates(raw_text, shape)
    if not candidates:
        raise UnparseableResponseError(
            f"Aucun objet conforme pour l'étape '{shape.stage}'",
            stage=shape.stage,
            raw_text=raw_text or "",
        )
    return candidates[0]
