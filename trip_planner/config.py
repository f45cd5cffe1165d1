"""Configuration centralisée (pydantic-settings).

La configuration est lue une seule fois depuis l'environnement puis injectée
dans l'orchestrateur à la construction :

    config = get_config()
    planner = TripPlanner.from_config(config)

Variables d'environnement principales :
- OPENAI_MODEL=gpt-4-turbo
- OPENAI_API_KEY=...
- TRIP_RETRY_MAX_ATTEMPTS=2
- TRIP_RUN_TIMEOUT_S=600
- TRIP_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL = "gpt-4-turbo"


class LLMConfig(BaseSettings):
    """Fournisseur de complétion.

    Environment variables prefixed with OPENAI_.
    """

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    model: str = DEFAULT_MODEL
    api_key: Optional[str] = None
    base_url: str = "https://api.openai.com/v1"
    timeout_s: int = 120
    max_tokens: int = 4000


class RetryConfig(BaseSettings):
    """Politique de retry par étape.

    Environment variables prefixed with TRIP_RETRY_.
    """

    model_config = SettingsConfigDict(env_prefix="TRIP_RETRY_")

    max_attempts: int = Field(default=2, ge=1)
    base_delay_s: float = 1.0
    max_delay_s: float = 8.0
    jitter_s: float = 0.5


class PlannerConfig(BaseSettings):
    """Réglages du pipeline.

    Environment variables prefixed with TRIP_.
    """

    model_config = SettingsConfigDict(env_prefix="TRIP_")

    currency: str = "INR"
    run_timeout_s: float = 600.0  # 0 = pas de limite


class ObservabilityConfig(BaseSettings):
    """Logging configuration.

    Environment variables prefixed with TRIP_LOG_.
    """

    model_config = SettingsConfigDict(env_prefix="TRIP_LOG_")

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AppConfig(BaseSettings):
    """Configuration principale, agrège les sous-configurations.

        config = get_config()
        print(config.llm.model)
        print(config.retry.max_attempts)

    Environment variables prefixed with TRIP_.
    """

    model_config = SettingsConfigDict(env_prefix="TRIP_")

    llm: LLMConfig = Field(default_factory=LLMConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    planner: PlannerConfig = Field(default_factory=PlannerConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    debug: bool = False


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Retourne la configuration (chargée une fois, puis mise en cache).

    Pour recharger (tests), appeler reset_config() d'abord.
    """
    return AppConfig()


def reset_config() -> None:
    """Vide le cache de configuration."""
    get_config.cache_clear()


def configure_logging(observability: Optional[ObservabilityConfig] = None) -> None:
    """Installe niveau et format des logs pour les points d'entrée (API, UI, scripts)."""
    observability = observability or get_config().observability
    logging.basicConfig(
        level=getattr(logging, observability.level.upper(), logging.INFO),
        format=observability.format,
    )
