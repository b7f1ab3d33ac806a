"""Append-only record of the commitments made during one optimization run."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterator, List, Tuple

from shiftmatch.domain.types import Commitment, ShiftSnapshot


class CommitmentLedger:
    """
    In-run exclusion set consulted by every feasibility re-check.

    The loaded snapshots stay untouched; each pick is appended here instead.
    """

    def __init__(self):
        self._entries: List[Commitment] = []
        self._by_agent: Dict[str, List[Commitment]] = defaultdict(list)
        self._shifts: Dict[str, str] = {}

    def commit(self, shift: ShiftSnapshot, agent_id: str) -> Commitment:
        if shift.shift_id in self._shifts:
            raise RuntimeError(
                f"Shift {shift.shift_id} already committed to agent {self._shifts[shift.shift_id]} in this run"
            )
        entry = Commitment(
            shift_id=shift.shift_id,
            agent_id=agent_id,
            window=shift.window,
            priority=shift.priority,
            source="in_run",
        )
        self._entries.append(entry)
        self._by_agent[agent_id].append(entry)
        self._shifts[shift.shift_id] = agent_id
        return entry

    def for_agent(self, agent_id: str) -> Tuple[Commitment, ...]:
        return tuple(self._by_agent.get(agent_id, ()))

    def __iter__(self) -> Iterator[Commitment]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
