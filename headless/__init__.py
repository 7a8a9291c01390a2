"""Remote configuration, event reporting, self-updating and ordered shutdown for headless clients."""

__version__ = "0.1.0"