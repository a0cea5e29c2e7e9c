"""Telemetry module for logging and metrics."""

from chatbot_router.telemetry.logger import RequestContext, get_logger, setup_logging
from chatbot_router.telemetry.metrics import RouterMetrics, metrics_collector

__all__ = ["RequestContext", "get_logger", "setup_logging", "RouterMetrics", "metrics_collector"]
