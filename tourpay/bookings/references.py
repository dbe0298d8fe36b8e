"""
Références de réservation déterministes.

La même paire (payment_id, index) donne toujours la même référence: une redélivrance du webhook
retombe sur la même clé unique en base.
"""
import hashlib
import re

PREFIX = "EEO"


def booking_reference(payment_id: str, item_index: int = 0) -> str:
    """
    Format: EEO-<6 derniers caractères alphanumériques du paiement>-<index sur 2 chiffres>-<8 hex sha256>
    ex: booking_reference("pi_3Nabc123XYZ") -> "EEO-123XYZ-01-1F2E3D4C"
    """
    normalized = re.sub(r"[^a-zA-Z0-9]", "", payment_id or "").upper()
    tail = normalized[-6:].rjust(6, "X")
    index = item_index if isinstance(item_index, int) and item_index >= 0 else 0
    digest = hashlib.sha256(f"{payment_id}:{index}".encode("utf-8")).hexdigest()[:8].upper()
    return f"{PREFIX}-{tail}-{index + 1:02d}-{digest}"
