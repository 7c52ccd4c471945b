"""
wa-gateway: HTTP gateway that forwards text and images to WhatsApp.

This package provides a FastAPI application exposing ``POST /send`` and
``POST /send-images`` in front of a WhatsApp messaging client.
"""

__version__ = "0.1.0"
