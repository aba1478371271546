"""
Structured logging for OpenIron.

Every OpenIron logger lives under the ``openiron`` stdlib logger. structlog
events (from ``get_logger``) and plain ``logging`` records from the geometry
modules both pass through the same processor chain, so every line written
inside ``layer_context`` carries the mesh and layer it belongs to, whichever
worker thread wrote it.

The library never touches the root logger or the global structlog
configuration. A host that only wants OpenIron's output attaches the library
handler once::

    from openiron.core.logging import configure_logging, get_logger

    configure_logging(level="DEBUG", json_output=True)
    logger = get_logger(__name__)
    logger.info("ironing_layer_assembled", segments=12)
"""

import logging
import sys
from typing import IO, Optional

import structlog

LIBRARY_LOGGER = "openiron"

# Applied to records that did not come through structlog.
_FOREIGN_PRE_CHAIN: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
]

_PROCESSORS: list[structlog.types.Processor] = [
    structlog.stdlib.filter_by_level,
    *_FOREIGN_PRE_CHAIN,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
]


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    stream: Optional[IO[str]] = None,
) -> logging.Handler:
    """
    Send OpenIron's log output to one stream.

    Replaces any handler attached by an earlier call, and stops OpenIron
    records from also reaching the root logger's handlers.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, output JSON lines (for log aggregation).
                     If False, output colored console-friendly lines.
        stream: Where to write; stderr by default.

    Returns:
        The attached handler.
    """
    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_FOREIGN_PRE_CHAIN,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(formatter)

    library_logger = logging.getLogger(LIBRARY_LOGGER)
    for old in list(library_logger.handlers):
        library_logger.removeHandler(old)
    library_logger.addHandler(handler)
    library_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    library_logger.propagate = False
    return handler


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structlog logger for the given module name.

    The logger is bound to OpenIron's own processor chain rather than the
    global structlog configuration.

    Args:
        name: Module name, typically ``__name__``.
    """
    return structlog.wrap_logger(
        logging.getLogger(name),
        processors=_PROCESSORS,
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def layer_context(mesh_name: str, layer_number: int):
    """
    Bind the mesh and layer being processed to every log line in the block.

    Each (mesh, layer) unit of work may run on its own worker thread, so the
    binding lives in contextvars rather than on a shared logger.

    Usage::

        with layer_context("bracket", 17):
            logger.info("ironing_layer_assembled", moves=12)
    """
    return structlog.contextvars.bound_contextvars(mesh=mesh_name, layer=layer_number)
