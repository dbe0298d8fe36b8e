"""
ASGI entrypoint: expose `app` for process managers / deployments.

- En production, un process manager (ex: gunicorn/uvicorn-workers) importe `tourpay.asgi:app`
  pour servir l’application FastAPI en mode ASGI.
- Toute la configuration de FastAPI est centralisée dans tourpay.app_setup.factory,
  ce fichier ne fait qu’exposer l’instance `app`.
"""

from tourpay.app import app

__all__ = ["app"]
