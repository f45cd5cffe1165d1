"""
Script de test pour vérifier l'accès au fournisseur de complétion.
"""
import json

from trip_planner.agent.llm_client import LLMClient
from trip_planner.agent.normalizer import DESTINATIONS, normalize_list
from trip_planner.config import configure_logging, get_config


def test_openai_connection():
    """Test de connexion à l'API de complétion."""
    print("=== Test de connexion OpenAI ===\n")

    config = get_config()
    api_key = config.llm.api_key
    if not api_key:
        print("❌ ERREUR: OPENAI_API_KEY non définie")
        print("\nDéfinissez la variable d'environnement:")
        print("  export OPENAI_API_KEY='votre_clé_api'")
        return False

    print(f"✅ Clé API trouvée: {api_key[:6]}...{api_key[-4:]}\n")

    client = LLMClient.from_config(config.llm)
    print(f"✅ Client LLM initialisé ({client.model})\n")

    print("--- Test 1: Génération simple ---")
    try:
        response = client.generate("What is the capital of India? Answer in one word.")
        print(f"✅ Réponse: {response[:150]}\n")
    except Exception as e:
        print(f"❌ Erreur: {e}\n")
        return False

    print("--- Test 2: Mode JSON + normalisation ---")
    try:
        raw = client.generate(
            'Return {"destinations": [{"name": "...", "country": "...", "description": "..."}]} '
            "with 2 beach destinations in India. JSON only.",
            json_mode=True,
        )
        destinations = normalize_list(raw, DESTINATIONS)
        print(f"✅ {len(destinations)} destination(s):")
        print(json.dumps(destinations, indent=2, ensure_ascii=False))
    except Exception as e:
        print(f"❌ Erreur: {e}\n")
        return False

    return True


if __name__ == "__main__":
    configure_logging()
    ok = test_openai_connection()
    print("\n✅ Tests terminés!" if ok else "\n❌ Échec")
