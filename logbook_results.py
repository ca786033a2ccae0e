"""
Typed results of QRZ Logbook API actions.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from qso_record import QsoRecord


@dataclass
class InsertResult:
    """Result of an INSERT action."""
    logid: int
    count: int = 1


@dataclass
class DeleteResult:
    """Result of a DELETE action. Ids the service didn't find are listed."""
    deleted_count: int
    not_found_logids: List[int] = field(default_factory=list)


@dataclass
class StatusResult:
    """Result of a STATUS action."""
    data: Dict[str, str] = field(default_factory=dict)

    @property
    def owner(self) -> Optional[str]:
        """
        Logbook owner callsign, if the service reported one
        """
        for key in ("CALLSIGN", "OWNER", "callsign", "owner"):
            if self.data.get(key):
                return self.data[key]
        return None


@dataclass
class FetchResult:
    """One FETCH response: the records plus the ids the service reported."""
    count: Optional[int] = None
    logids: List[int] = field(default_factory=list)
    qsos: List[QsoRecord] = field(default_factory=list)


@dataclass
class PagedResult:
    """All records gathered by the paginator, in the order they arrived."""
    qsos: List[QsoRecord] = field(default_factory=list)
    logids: List[int] = field(default_factory=list)
    pages: int = 0

    def __len__(self) -> int:
        return len(self.qsos)
