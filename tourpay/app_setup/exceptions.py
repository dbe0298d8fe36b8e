"""
Gestionnaires d’exceptions utilisés par la factory.
- CheckoutError (et sous-classes): {"success": false, "message": ...} avec le code HTTP porté par l'erreur.
- RequestValidationError (body JSON invalide): même forme, en 400.
- HTTPException: forme FastAPI standard {"detail": ...}.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tourpay.errors import CheckoutError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CheckoutError)
    async def checkout_error(request: Request, exc: CheckoutError):
        if exc.status_code >= 500:
            logger.error("checkout error %s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        else:
            logger.info("checkout rejected %s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"Invalid request: {field} {first.get('msg', '')}".strip() if field else "Invalid request body"
        return JSONResponse(status_code=400, content={"success": False, "message": message})

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))
