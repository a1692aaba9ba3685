"""
Pivot table data models.
"""

from typing import Dict, List

from pydantic import BaseModel, Field, model_validator


class PivotRow(BaseModel):
    """
    Counts of one event ID across all hosts.

    `total` always equals the sum of `per_host_count`.
    """

    event_id: int
    per_host_count: Dict[str, int] = Field(default_factory=dict)
    total: int = 0

    @model_validator(mode="after")
    def check_total(self) -> "PivotRow":
        expected = sum(self.per_host_count.values())
        if self.total != expected:
            raise ValueError(f"total {self.total} does not match host counts sum {expected}")
        return self

    class Config:
        frozen = True


class PivotTable(BaseModel):
    """
    Event ID by host count matrix, ranked by total.

    Rows are ordered by total descending, then event ID ascending.
    """

    hosts: List[str] = Field(default_factory=list)
    rows: List[PivotRow] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_hosts(self) -> "PivotTable":
        clashes = [h for h in self.hosts if h in ("EventId", "Total")]
        if clashes:
            raise ValueError(f"host names clash with fixed columns: {clashes}")
        return self

    @property
    def columns(self) -> List[str]:
        return ["EventId", *self.hosts, "Total"]

    def __len__(self) -> int:
        return len(self.rows)

    def as_mapping(self) -> Dict[int, Dict[str, int]]:
        """event_id -> {host: count, ..., "Total": total}"""
        return {
            row.event_id: {**{h: row.per_host_count.get(h, 0) for h in self.hosts}, "Total": row.total}
            for row in self.rows
        }

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "hosts": ["A", "B"],
                "rows": [
                    {"event_id": 100, "per_host_count": {"A": 3, "B": 2}, "total": 5},
                    {"event_id": 101, "per_host_count": {"A": 1, "B": 0}, "total": 1},
                ],
            }
        }
