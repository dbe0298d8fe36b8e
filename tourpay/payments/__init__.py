"""
Module 'payments' (feature-first): point d'entrée public.
Réunit encodage compact du panier, metadata Stripe, client Stripe et orchestration du checkout.
"""

from .cart_codec import encode_cart, decode_cart, decode_cart_items, CartDecodeError
from .metadata import build_metadata, read_booking_metadata, BookingMetadata
from .stripe_client import require_stripe, create_payment_intent, retrieve_payment_intent, parse_event
from .service import create_checkout_intent, confirm_payment_intent, validate_customer

__all__ = [
    # cart
    "encode_cart",
    "decode_cart",
    "decode_cart_items",
    "CartDecodeError",
    # metadata
    "build_metadata",
    "read_booking_metadata",
    "BookingMetadata",
    # stripe
    "require_stripe",
    "create_payment_intent",
    "retrieve_payment_intent",
    "parse_event",
    # services
    "create_checkout_intent",
    "confirm_payment_intent",
    "validate_customer",
]
