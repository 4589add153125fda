"""Route internal diagnostics to a facade logger or a stdlib fallback."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from tracelog.foundation.errors import JsonDict

if TYPE_CHECKING:
    from tracelog.loggers.base import Logger

_STDLIB_LEVELS = {"error": logging.ERROR, "warn": logging.WARNING, "info": logging.INFO, "debug": logging.DEBUG}


def report(
    facade: Logger | None,
    fallback: logging.Logger,
    level: Literal["error", "warn", "info", "debug"],
    message: str,
    meta: JsonDict | None = None,
    error: BaseException | None = None,
) -> None:
    """Emit through the facade when one is given, else through the stdlib logger."""
    if facade is None:
        fallback.log(_STDLIB_LEVELS[level], "%s %s" if meta else "%s", message, *((meta,) if meta else ()),
                     exc_info=error)
        return
    match level:
        case "error": facade.error(message, meta, error)
        case "warn": facade.warn(message, meta)
        case "info": facade.info(message, meta)
        case _: facade.debug(message, meta)
