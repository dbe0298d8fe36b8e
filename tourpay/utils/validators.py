import re

# Contrôle de forme volontairement basique: un @, un domaine avec un point, pas d'espace
EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

def is_valid_email(v: str) -> bool:
    return bool(v) and len(v) <= 254 and EMAIL_RE.match(v) is not None

def clean_text(v, limit: int) -> str:
    """Nettoie un texte libre et le tronque à `limit` caractères (jamais de rejet)."""
    if v is None:
        return ''
    text = str(v).strip()
    return text[:limit]
