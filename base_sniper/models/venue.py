"""
Exchange venue definition: a constant-product DEX reachable through a
factory (pair lookup) and a router (swaps).
"""

from __future__ import annotations

from pydantic import BaseModel


class Venue(BaseModel):
    id: str
    name: str
    factory: str
    router: str
