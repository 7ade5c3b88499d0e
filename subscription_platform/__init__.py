"""In-memory subscription management with a simulated payment dependency."""

__version__ = "1.0.0"
