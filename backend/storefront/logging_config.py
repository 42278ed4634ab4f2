"""
Logging Setup — console plus server.log under LOG_DIR.
"""
import logging
import os

from storefront.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> None:
    """Configure the root logger once; later calls are no-ops."""
    settings = get_settings()
    root = logging.getLogger()
    if getattr(root, "_storefront_configured", False):
        return

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    try:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(settings.LOG_DIR, "server.log")))
    except OSError as exc:
        logging.getLogger(__name__).warning("File logging disabled: %s", exc)

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(settings.LOG_LEVEL.upper())
    root._storefront_configured = True
