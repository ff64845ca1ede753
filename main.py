"""
main.py
────────
Punto de entrada del Agente Familiar.
Inicializa el logging, crea la aplicación de Telegram y lanza el polling.

Uso:
    python main.py                 # bot de Telegram
    uvicorn chat_api:app           # canal HTTP de prueba
"""

import logging
import logging.handlers
import sys

from config import ENV, LOG_LEVEL, TELEGRAM_BOT_TOKEN


def setup_logging() -> None:
    """Configura el sistema de logging con rotación automática de archivos."""
    level = getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    formatter = logging.Formatter(fmt)

    # Handler a archivo con rotación: máx 5 MB por archivo, mantiene 3 backups
    file_handler = logging.handlers.RotatingFileHandler(
        "bot.log",
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    # Handler a consola
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    except AttributeError:
        pass

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(file_handler)
    root.addHandler(console_handler)

    # Reducir verbosidad de librerías externas
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("telegram").setLevel(logging.WARNING)


def main() -> None:
    setup_logging()
    logger = logging.getLogger(__name__)

    logger.info("🚀 Iniciando Agente Familiar (ENV=%s)...", ENV)

    if not TELEGRAM_BOT_TOKEN:
        logger.warning(
            "TELEGRAM_BOT_TOKEN no configurado: no se inicia el bot. "
            "Para el canal de prueba usá `uvicorn chat_api:app`."
        )
        return

    from bot.app import create_app

    app = create_app()

    logger.info("✅ Bot en línea. Escuchando mensajes...")
    try:
        app.run_polling(
            drop_pending_updates=True,
            allowed_updates=["message", "callback_query"],
        )
    except Exception as e:
        logger.critical("💥 Bot detenido por excepción inesperada: %s", e, exc_info=True)
        raise


if __name__ == "__main__":
    main()
