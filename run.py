#!/usr/bin/env python3
"""
SOBS Banking Entry Point

Starts the FastAPI server with the demo user seeded.
"""

import sys

from sobs_banking.api.server import run_server
from sobs_banking.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting SOBS Banking API...")
    print("All balances use Decimal precision")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server()
    except KeyboardInterrupt:
        print("\nShutting down SOBS Banking API...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
