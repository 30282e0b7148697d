"""WorkloadBalancer — least-loaded pick with a per-pool round-robin tie-break."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from leadrouting.domain.errors import NoEligibleAgent

# Weights of the workload score
ACTIVE_LEAD_WEIGHT = 1.0
OVERDUE_LEAD_WEIGHT = 2.0


@dataclass(frozen=True)
class WorkloadInfo:
    user_id: str
    active_leads: int
    overdue_leads: int

    @property
    def workload_score(self) -> float:
        return self.active_leads * ACTIVE_LEAD_WEIGHT + self.overdue_leads * OVERDUE_LEAD_WEIGHT


def pool_key(agent_ids: Iterable[str], scope: str = "fallback") -> str:
    """Cursor key for an eligible pool: the scope plus the sorted agent ids.

    The same pool always maps to the same key, so its cursor is reused.
    """
    return f"{scope}|" + ",".join(sorted(set(agent_ids)))


def pick_least_loaded(
    agent_ids: Iterable[str],
    loads: Mapping[str, int],
    counter: int,
) -> tuple[str, int]:
    """Pick the least-loaded agent; ties go round-robin by cursor.

    1. Keep the agents at the minimum load (missing loads count as 0).
    2. Sort the tied agents by id for a stable order.
    3. Use *counter mod len(tied)* to select the index.

    Returns:
        (chosen_agent_id, new_counter)

    Raises:
        NoEligibleAgent: if the pool is empty.
    """
    pool = sorted(set(agent_ids))
    if not pool:
        raise NoEligibleAgent("Cannot pick from an empty eligible pool")

    min_load = min(loads.get(a, 0) for a in pool)
    tied = [a for a in pool if loads.get(a, 0) == min_load]

    chosen = tied[counter % len(tied)]
    return chosen, counter + 1
