"""
Registre central des routers (API v1, health).
- API v1: checkout + webhook/confirm (payments), vérification des codes promo (discounts)
- Health: health_router
"""
from fastapi import FastAPI
from tourpay.payments import views as payments_views
from tourpay.discounts import views as discounts_views
from tourpay.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    """
    Agrège tous les routers de l’application.
    - L’ordre n’a pas d’impact sauf conflits de chemins (évités par préfixes).
    """
    # API v1
    app.include_router(payments_views.checkout_router)
    app.include_router(payments_views.router)
    app.include_router(discounts_views.router)
    # Health & monitoring
    app.include_router(health_router)
