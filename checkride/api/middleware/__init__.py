"""
ASGI middleware: request correlation and rate limiting.
"""
