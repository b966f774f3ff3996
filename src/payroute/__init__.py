"""payroute - route construction and selection for name-addressed payments."""

__version__ = "0.1.0"
