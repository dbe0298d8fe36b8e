# tourpay.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du service de checkout.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe) et CORS
- Expose les règles métier de tarification (frais de service, taxe, devise de règlement)
- Expose les limites des métadonnées Stripe (taille par valeur, nombre de clés, slots panier)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

def _float_env(name: str, default: float) -> float:
    try:
        return float(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

# Supabase: URL et clé service-role
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Stripe: clés publiques/privées et secret webhook
STRIPE_PUBLIC_KEY = _clean_env(os.getenv("STRIPE_PUBLIC_KEY") or "")
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")

# Appel sortant vers Stripe: timeout borné et au plus une relance réseau
GATEWAY_TIMEOUT_SECONDS = _float_env("GATEWAY_TIMEOUT_SECONDS", 10.0)
GATEWAY_MAX_RETRIES = _int_env("GATEWAY_MAX_RETRIES", 1)

# Devise de règlement: seule devise réellement débitée (la devise d'affichage est purement visuelle)
SETTLEMENT_CURRENCY = (_clean_env(os.getenv("SETTLEMENT_CURRENCY") or "") or "usd").lower()

# Règles de tarification
SERVICE_FEE_RATE = 0.03
TAX_RATE = 0.05

# Limites des métadonnées Stripe
METADATA_VALUE_MAX = 500
METADATA_MAX_KEYS = 50

# Plafonds des champs texte libres (troncature, jamais de rejet)
SPECIAL_REQUESTS_MAX = _int_env("SPECIAL_REQUESTS_MAX", 500)
HOTEL_PICKUP_DETAILS_MAX = _int_env("HOTEL_PICKUP_DETAILS_MAX", 500)
HOTEL_PICKUP_LOCATION_MAX = _int_env("HOTEL_PICKUP_LOCATION_MAX", 500)
TOURS_SUMMARY_MAX = _int_env("TOURS_SUMMARY_MAX", 500)

# Nombre maximal de lignes de panier acceptées au checkout
MAX_CART_ITEMS = min(max(1, _int_env("MAX_CART_ITEMS", 10)), 30)

# Slots cart_data, cart_data_2, ...: une entrée tient toujours dans un slot (sinon CartTooLarge),
# donc un slot par ligne suffit. 18 clés fixes + 30 slots <= METADATA_MAX_KEYS
CART_DATA_SLOTS = max(2, MAX_CART_ITEMS)

# CORS (dev) et hôtes acceptés
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

# Déploiement derrière HTTPS: active HSTS et la redirection http -> https
HTTPS_ONLY = (os.getenv("HTTPS_ONLY", "false").lower() == "true")
