"""Core data models shared by the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict


@dataclass(frozen=True, slots=True)
class BusinessRecord:
    """One business parsed from a single row of the agent's reply table."""

    id: str = field(compare=False)
    name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    website: str = ""
    rating: str = ""
    maps_url: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "website": self.website,
            "rating": self.rating,
            "maps_url": self.maps_url,
        }
