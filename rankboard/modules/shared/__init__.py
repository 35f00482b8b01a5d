"""
Rankboard Shared Module

Domain-level foundations used by the leaderboard module:
- BaseService: logging and config access for services
- Domain exceptions: InvalidInputError, NotFoundError, EmptyScopeError
- Validators: identity, group tag, score and delta rules
"""

from rankboard.modules.shared.base_service import BaseService
from rankboard.modules.shared.exceptions import (
    EmptyScopeError,
    InvalidInputError,
    NotFoundError,
    RankboardDomainException,
)

__all__ = [
    "BaseService",
    "RankboardDomainException",
    "InvalidInputError",
    "NotFoundError",
    "EmptyScopeError",
]
