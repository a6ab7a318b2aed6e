import structlog
import logging
import sys
from typing import Dict, Any, Optional
import os

from agentchat import __version__


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "agentchat"
) -> None:
    """Route structlog through stdlib logging with a JSON or console renderer"""

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_request_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("AGENTCHAT_ENVIRONMENT", "development"),
        version=__version__
    )


def add_request_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy the bound correlation key and session id onto every entry"""

    context = structlog.contextvars.get_contextvars()
    for key in ("correlation_key", "session_id"):
        if context.get(key) and key not in event_dict:
            event_dict[key] = context[key]
    return event_dict


class ContextLogger:
    """Structured events for context assembly and request lifecycle"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_context_update(
        self,
        session_id: str,
        context_type: str,
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.logger.info(
            "context_update",
            session_id=session_id,
            context_type=context_type,
            action=action,
            details=details or {}
        )

    def log_request_transition(
        self,
        correlation_key: str,
        from_state: str,
        to_state: str,
        session_id: Optional[str] = None,
        error: Optional[str] = None
    ):
        self.logger.info(
            "request_transition",
            correlation_key=correlation_key,
            session_id=session_id,
            from_state=from_state,
            to_state=to_state,
            error=error
        )


context_logger = ContextLogger("agentchat")


class MetricsCollector:
    """In-process request counters and per-call-shape latency, echoed as debug events"""

    def __init__(self):
        self.counters: Dict[str, int] = {}
        self.latencies: Dict[str, Dict[str, float]] = {}

    def record_latency(self, operation: str, duration_ms: float):
        stats = self.latencies.setdefault(operation, {"count": 0, "sum": 0.0, "max": 0.0})
        stats["count"] += 1
        stats["sum"] += duration_ms
        stats["max"] = max(stats["max"], duration_ms)

        context_logger.logger.debug("metric", metric_type="latency", operation=operation, duration_ms=duration_ms)

    def increment_counter(self, name: str, value: int = 1):
        self.counters[name] = self.counters.get(name, 0) + value

        context_logger.logger.debug("metric", metric_type="counter", name=name, value=value)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Counters by name plus `latency.<operation>` entries with count, avg and max"""

        summary: Dict[str, Any] = dict(self.counters)
        for operation, stats in self.latencies.items():
            summary[f"latency.{operation}"] = {
                "count": stats["count"],
                "avg": stats["sum"] / stats["count"],
                "max": stats["max"],
            }
        return summary
