from __future__ import annotations

from nanobook.agents.base import BaseAgent
from nanobook.llm_client import LLMClient


class DetectiveAgent(BaseAgent):
    """Mines complaints and victim stories."""

    name = "Detective Agent"
    prompt_key = "detective"


class AuditorAgent(BaseAgent):
    """Finds the costs the pitch leaves out."""

    name = "Auditor Agent"
    prompt_key = "auditor"


class InsiderAgent(BaseAgent):
    """Maps affiliate programs and who profits from promotion."""

    name = "Insider Agent"
    prompt_key = "insider"


class StatisticianAgent(BaseAgent):
    """Collects success rates, median earnings and churn."""

    name = "Statistician Agent"
    prompt_key = "statistician"


AGENT_CLASSES: tuple[type[BaseAgent], ...] = (
    DetectiveAgent,
    AuditorAgent,
    InsiderAgent,
    StatisticianAgent,
)


def default_agents(llm: LLMClient, *, model: str | None = None) -> list[BaseAgent]:
    """The four research agents in dossier order."""
    return [agent_cls(llm, model=model) for agent_cls in AGENT_CLASSES]
