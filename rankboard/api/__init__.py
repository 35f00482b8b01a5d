"""
HTTP facade for Rankboard.

- app.py: `create_app()` and the `rankboard-api` entry point
- routes.py: leaderboard routes
- schemas.py: request/response models
- errors.py: error kind -> HTTP status mapping
"""

from rankboard.api.app import create_app

__all__ = ["create_app"]
