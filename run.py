#!/usr/bin/env python
"""
Entry point for the WhatsApp gateway.
Starts the FastAPI server with uvicorn on PORT (default 3000).
"""

from wa_gateway.server import main

if __name__ == "__main__":
    main()
