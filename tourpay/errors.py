"""
Erreurs métier du checkout.

Chaque erreur porte le message public renvoyé au client et le code HTTP associé.
Le handler enregistré dans app_setup.exceptions les rend sous la forme
{"success": false, "message": ...}.
"""
from typing import Optional


class CheckoutError(Exception):
    status_code = 400
    default_message = "Checkout failed"

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(CheckoutError):
    """Champs client manquants/malformés, panier vide. Jamais relancé."""
    status_code = 400
    default_message = "Invalid checkout information"


class InvalidAmount(ValidationError):
    default_message = "Order total must be greater than zero"


class CartTooLarge(ValidationError):
    status_code = 413
    default_message = "Your cart has too many items to be booked in a single payment"


class GatewayError(CheckoutError):
    status_code = 502
    default_message = "Payment could not be initialized. Please try again."


class InvalidRequest(GatewayError):
    status_code = 400
    default_message = "Payment request was rejected. Please check your information and try again."


class ServiceUnavailable(GatewayError):
    status_code = 503
    default_message = "Payment service is temporarily unavailable. Please try again shortly."


class Misconfiguration(GatewayError):
    # Détails (clés, comptes) jamais exposés au client
    status_code = 500
    default_message = "Failed to initialize payment. Please try again later."
