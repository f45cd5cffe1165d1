"""
Erreurs typées du planificateur de voyage.

Toutes les erreurs métier héritent de `TripPlannerError` et peuvent
envelopper l'exception d'origine (`cause`) pour le diagnostic.

Les erreurs réseau du fournisseur (`requests.RequestException`) ne sont pas
enveloppées : elles remontent telles quelles jusqu'à l'appelant.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class TripPlannerError(Exception):
    """Erreur de base du planificateur.

    Attributes:
        message: Description lisible de l'erreur
        cause: Exception sous-jacente éventuelle
    """

    message: str
    cause: Optional[Exception] = field(default=None, repr=False)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message

    def __post_init__(self) -> None:
        super().__init__(self.message)


@dataclass
class InvalidInputError(TripPlannerError):
    """Entrée client absente ou invalide (équivalent HTTP 400).

    Attributes:
        missing: Champs requis absents de la requête
    """

    missing: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        # Message fixe côté client, la cause reste disponible pour les logs
        return self.message


@dataclass
class ConfigurationError(TripPlannerError):
    """Configuration manquante ou invalide."""

    setting_name: str = ""


@dataclass
class EmptyCompletionError(TripPlannerError):
    """Le fournisseur a répondu sans contenu."""

    model: str = ""


@dataclass
class ShapeError(TripPlannerError):
    """La réponse du modèle ne peut pas être ramenée à la forme attendue.

    Attributes:
        stage: Nom de l'étape du pipeline concernée
    """

    stage: str = ""


@dataclass
class UnparseableResponseError(ShapeError):
    """Aucun JSON exploitable n'a pu être extrait de la réponse brute."""

    raw_text: str = field(default="", repr=False)

    def excerpt(self, max_chars: int = 2000) -> str:
        text = (self.raw_text or "").strip()
        if len(text) <= max_chars:
            return text
        head = text[: max_chars // 2]
        tail = text[-max_chars // 2 :]
        return f"{head}\n...\n{tail}"


@dataclass
class NoDestinationFoundError(ShapeError):
    """L'étape destinations n'a retourné aucun candidat."""


@dataclass
class InvalidDestinationError(ShapeError):
    """La destination sélectionnée n'a pas de `name` ou de `country`."""


@dataclass
class InvalidStageResultError(ShapeError):
    """Résultat d'étape vide ou sans les champs requis.

    Attributes:
        details: Détail de la validation (erreurs pydantic, compte attendu...)
    """

    details: str = ""


@dataclass
class RunTimeoutError(TripPlannerError):
    """Le délai global du run est dépassé."""

    stage: str = ""
    elapsed_s: float = 0.0
    limit_s: float = 0.0


class PipelineStateError(RuntimeError):
    """Une étape a été atteinte sans le résultat de l'étape précédente."""
