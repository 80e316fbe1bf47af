"""In-memory broadcast bus with a Server-Sent Events front end."""

__version__ = "0.1.0"
