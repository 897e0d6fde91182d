"""
FastAPI API Endpoints Package.

Dieses Paket enthält die REST-API-Endpoints für Run-Listen.
"""

from app.api import runs

# Alle API-Router für zentrale Registrierung in main.py (prefix="/api")
ROUTERS = [
    runs.router,
]
