"""tlsdb: an interactive debugger for framed record streams."""

__version__ = "0.1.0"
