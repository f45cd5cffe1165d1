"""
Client LLM pour une API de complétion compatible OpenAI (chat/completions).
"""
import json
import logging
from typing import Any, Dict, Optional

import requests

from trip_planner.config import DEFAULT_MODEL, LLMConfig
from trip_planner.errors import ConfigurationError, EmptyCompletionError

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7


class LLMClient:
    """Client pour interagir avec l'API de complétion.

    Un seul message `user` par appel. Pas de retry ici : les erreurs réseau
    et HTTP remontent telles quelles, la politique de retry appartient au
    séquenceur (voir runner.RetryPolicy).
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: Optional[str] = None,
        base_url: str = "https://api.openai.com/v1",
        timeout_s: int = 120,
        max_tokens: Optional[int] = 4000,
        session: Optional[requests.Session] = None,
    ):
        self.model = model
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_tokens = max_tokens
        # Sans session injectée : requests.post, une connexion par appel.
        # Une Session n'est pas garantie thread-safe et l'API partage ce client.
        self.session = session

        if not self.api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY manquante. "
                "Définissez la variable d'environnement OPENAI_API_KEY "
                "ou passez api_key au constructeur.",
                setting_name="OPENAI_API_KEY",
            )

    @classmethod
    def from_config(cls, config: LLMConfig) -> "LLMClient":
        return cls(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            timeout_s=config.timeout_s,
            max_tokens=config.max_tokens,
        )

    def generate(
        self,
        prompt: str,
        *,
        json_mode: bool = False,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> str:
        """
        Génère une réponse du LLM.

        Args:
            prompt: Le prompt utilisateur
            json_mode: Demande une sortie JSON au fournisseur
            temperature: Température (0.7 pour tout le pipeline)

        Returns:
            Contenu texte du premier choix

        Raises:
            EmptyCompletionError: le fournisseur n'a renvoyé aucun contenu
            requests.RequestException: erreur réseau ou HTTP, non modifiée
        """
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if self.max_tokens:
            payload["max_tokens"] = self.max_tokens

        # Forcer format JSON si demandé
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json; charset=utf-8",
        }

        logger.debug("Appel %s (json_mode=%s, %d caractères)", self.model, json_mode, len(prompt))
        post = self.session.post if self.session is not None else requests.post
        response = post(
            f"{self.base_url}/chat/completions",
            data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
            headers=headers,
            timeout=self.timeout_s,
        )
        response.raise_for_status()
        data = response.json()

        content = _first_choice_content(data)
        if not content:
            raise EmptyCompletionError("No content returned from the completion API", model=self.model)
        return content


def _first_choice_content(data: Dict[str, Any]) -> str:
    choices = data.get("choices") or []
    if not choices:
        return ""
    message = choices[0].get("message") or {}
    return (message.get("content") or "").strip()
