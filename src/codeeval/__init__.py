"""codeeval: run untrusted code in throw-away containers and return its output."""

__version__ = "0.1.0"
