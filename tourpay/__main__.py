"""
Point d'entrée principal pour le service de checkout.

Usage:
    python -m tourpay

Lance uvicorn sur l'app ASGI unique (tourpay.asgi:app) et lit quelques variables d'environnement:
- PORT: port d'écoute (par défaut 8000)
- UVICORN_RELOAD: active le reload auto en dev ("1"/"true"/"yes")
- LOG_LEVEL: niveau de logs uvicorn et des loggers tourpay.* (ex: "info", "debug")
"""
import logging
import os

import uvicorn


def main() -> None:
    port = int(os.environ.get("PORT", 8000))
    reload_flag = os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes")
    log_level = os.environ.get("LOG_LEVEL", "info")
    # Les loggers métier (payments.*, bookings.*) suivent le niveau d'uvicorn
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "tourpay.asgi:app",
        host="0.0.0.0",
        port=port,
        reload=reload_flag,
        log_level=log_level,
    )


if __name__ == "__main__":
    main()
