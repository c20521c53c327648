from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable


class AgentStatus(StrEnum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(frozen=True, slots=True)
class AgentState:
    name: str
    status: AgentStatus = AgentStatus.PENDING
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"agentName": self.name, "status": self.status.value}
        if self.message:
            data["message"] = self.message
        return data


ProgressCallback = Callable[[list[AgentState]], None]
