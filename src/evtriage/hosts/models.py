"""
Host resolution data models.
"""

from typing import List

from pydantic import BaseModel, Field


class HostResolution(BaseModel):
    """
    Outcome of validating a candidate host list.

    `resolved` and `dropped` partition the deduplicated candidates; both keep
    the order in which the candidates were first seen.
    """

    resolved: List[str] = Field(
        default_factory=list,
        description="Hosts that passed forward name resolution",
    )
    dropped: List[str] = Field(
        default_factory=list,
        description="Hosts that failed name resolution",
    )

    @property
    def has_targets(self) -> bool:
        return bool(self.resolved)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "resolved": ["dc01.corp.local", "web01"],
                "dropped": ["old-fileserver"],
            }
        }
