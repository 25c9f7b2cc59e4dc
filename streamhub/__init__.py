"""StreamHub: live-event stream schedule aggregation service."""

__version__ = "0.1.0"
