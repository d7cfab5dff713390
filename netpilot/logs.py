"""Structured logging setup."""

import logging

import structlog


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Install the stdlib handler and the structlog processor chain."""
    logging.basicConfig(format="%(message)s", level=level.upper())

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str):
    """Logger bound to a component name."""
    return structlog.get_logger(f"netpilot.{component}", component=component)
