"""Telemetry sinks - destinations for recorded events."""

from .base import TelemetrySink, filter_kinds
from .console import ConsoleSink
from .file import FileSink, RotatingFileSink
from .log import LogSink, log_event
from .zmq import ZmqSink

__all__ = [
    "TelemetrySink",
    "filter_kinds",
    "ConsoleSink",
    "FileSink",
    "RotatingFileSink",
    "LogSink",
    "log_event",
    "ZmqSink",
]
