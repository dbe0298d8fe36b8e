from typing import Optional
from supabase import create_client, Client
from tourpay.config import SUPABASE_URL, SUPABASE_SERVICE_KEY

_service_supabase: Optional[Client] = None

def get_service_supabase() -> Client:
    """
    Client service-role (bypass RLS): lecture des codes promo, écriture des réservations.
    Utilisé par le checkout et le webhook, jamais au nom d'un utilisateur.
    """
    global _service_supabase
    if not SUPABASE_URL or not SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_URL/SUPABASE_SERVICE_KEY manquants pour get_service_supabase()")
    if _service_supabase is None:
        _service_supabase = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return _service_supabase
