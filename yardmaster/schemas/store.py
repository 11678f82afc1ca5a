from typing import Any, Dict, Iterable, List

from pydantic import BaseModel, Field


class Table(BaseModel):
    """A header-driven table as returned by the store."""
    name: str
    headers: List[str] = Field(default_factory=list)
    rows: List[Dict[str, str]] = Field(default_factory=list)

    @classmethod
    def from_records(cls, name: str, headers: Iterable[str], records: Iterable[Dict[str, Any]]) -> "Table":
        """Build a table, absent fields default to the empty string."""
        headers = [str(h) for h in headers]
        rows = []
        for record in records:
            rows.append({
                h: "" if record.get(h) is None else str(record.get(h))
                for h in headers
            })
        return cls(name=name, headers=headers, rows=rows)

    def __len__(self) -> int:
        return len(self.rows)
