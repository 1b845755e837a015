"""
API Routers
Separate router modules for each worker.
"""

from app.routers import compare, install, listing, verify

__all__ = ["compare", "install", "listing", "verify"]
