"""
User Data Models
================

Pydantic v2 structures for the single ``users`` table.
"""

from __future__ import annotations

from pydantic import BaseModel


class User(BaseModel):
    """One row of the users table."""
    id: int
    name: str
