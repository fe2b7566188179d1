"""
asgi.py -- Application assembly for SessionAuth.

Run with:  uvicorn asgi:app --reload

api/main.py builds the FastAPI app; this module is the stable import path
for ASGI servers so deployment config never has to know the package layout.
"""

from api.main import app

__all__ = ["app"]
