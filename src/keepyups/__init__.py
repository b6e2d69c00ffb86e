"""keepyups - a keepy-ups challenge counter with session catch-up."""

__version__ = "0.1.0"
