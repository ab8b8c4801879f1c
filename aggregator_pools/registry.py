import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List

from .errors import LenderAlreadyAdded, UnknownLender

logger = logging.getLogger(__name__)


@dataclass
class LenderEntry:
    lender: str
    max_debt: int = 0
    current_debt: int = 0


class LenderRegistry:
    """
    Lenders of one vault in insertion order.

    Positions are load-bearing (callers address "first" and "last" lender by index), so
    removal shifts the tail down instead of swapping the last entry into the hole.
    """

    def __init__(self):
        self._entries: List[LenderEntry] = []
        self._index: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LenderEntry]:
        return iter(self._entries)

    def __contains__(self, lender: str) -> bool:
        return lender in self._index

    def add(self, lender: str, max_debt: int) -> LenderEntry:
        if lender in self._index:
            raise LenderAlreadyAdded(lender)
        entry = LenderEntry(lender=lender, max_debt=max_debt)
        self._index[lender] = len(self._entries)
        self._entries.append(entry)
        return entry

    def get(self, lender: str) -> LenderEntry:
        try:
            return self._entries[self._index[lender]]
        except KeyError:
            raise UnknownLender(lender) from None

    def remove(self, lender: str) -> LenderEntry:
        position = self._index.pop(lender, None)
        if position is None:
            raise UnknownLender(lender)
        entry = self._entries.pop(position)
        for i in range(position, len(self._entries)):
            self._index[self._entries[i].lender] = i
        return entry

    def lenders(self) -> List[str]:
        return [e.lender for e in self._entries]

    def total_debt(self) -> int:
        return sum(e.current_debt for e in self._entries)
