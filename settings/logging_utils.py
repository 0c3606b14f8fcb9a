import logging
import os
import sys
from typing import Optional

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach one stream handler to the root logger; safe to call repeatedly."""

    root = logging.getLogger()
    resolved = (level or os.getenv("VAULT_LOG_LEVEL", "INFO")).upper()
    root.setLevel(resolved)

    if not any(getattr(handler, "_vault_handler", False) for handler in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._vault_handler = True
        root.addHandler(handler)

    return root
