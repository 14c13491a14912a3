"""
seda progression logging infrastructure.

Exports the structured logging subsystem, log context helpers,
and configuration interface.

This module provides:
- JSON logging in production, readable console output in development
- ContextVar-based contextual logging (`LogContext`)
- Setup and teardown helpers for the global logging system
"""

from seda_progression.core.logging.logger import (
    LogContext,
    LoggerConfig,
    clear_log_context,
    get_log_context,
    get_logger,
    get_logging_health,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_log_context",
    "get_logging_health",
    "LogContext",
    "clear_log_context",
    "LoggerConfig",
]
