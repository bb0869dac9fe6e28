#!/usr/bin/env python3
"""Vault Agent - Run the application.

Usage:
    python run.py
    # Or: python -m vault_agent.app

The JSON API will be available at http://localhost:5050/api
"""

from vault_agent.app import main

if __name__ == "__main__":
    main()
