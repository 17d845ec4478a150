"""Static task router fake for testing."""

from __future__ import annotations

from typing import Any, Mapping, Sequence


class FakeTaskRouter:
    """Returns the same candidate list for every agent."""

    def __init__(self, candidates: Sequence[Mapping[str, Any]]) -> None:
        self._candidates = list(candidates)
        self.calls: list[tuple[str, Mapping[str, Any] | None]] = []

    async def get_next_task(
        self,
        agent_type: str,
        preferences: Mapping[str, Any] | None = None,
    ) -> Sequence[Mapping[str, Any]]:
        self.calls.append((agent_type, preferences))
        return list(self._candidates)
