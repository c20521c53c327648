from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger

from nanobook.config import settings
from nanobook.llm_client import GenerationRequest, LLMClient, get_model
from nanobook.services.prompt_store import render_prompt


@dataclass(frozen=True, slots=True)
class AgentResult:
    agent_name: str
    success: bool
    data: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "agentName": self.agent_name,
            "success": self.success,
            "data": self.data,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


class InsufficientDataError(ValueError):
    pass


class BaseAgent:
    """Stateless single-shot research agent.

    Subclasses set `name` and `prompt_key`; the prompt catalog entry
    `agents.<prompt_key>` supplies the role instruction and the task template.
    `run` issues one web-search-enabled call and never raises.
    """

    name: str = "Base Agent"
    prompt_key: str = ""

    def __init__(
        self,
        llm: LLMClient,
        *,
        model: str | None = None,
        min_report_chars: int | None = None,
    ):
        self.llm = llm
        self.model = model or get_model(settings.agent_model)
        self.min_report_chars = (
            settings.min_report_chars if min_report_chars is None else int(min_report_chars)
        )

    @property
    def system_prompt(self) -> str:
        return render_prompt(f"agents.{self.prompt_key}.system_prompt")

    def build_task(self, topic: str) -> str:
        return render_prompt(f"agents.{self.prompt_key}.task", topic=topic)

    async def execute(self, topic: str) -> str:
        response = await self.llm.generate(
            GenerationRequest(
                model=self.model,
                contents=self.build_task(topic),
                system_instruction=self.system_prompt,
                web_search=True,
            ),
            caller=self.name,
        )
        text = (response.text or "").strip()
        if len(text) < self.min_report_chars:
            raise InsufficientDataError(
                f"Insufficient data returned ({len(text)} chars, need {self.min_report_chars})"
            )
        return text

    async def run(self, topic: str) -> AgentResult:
        logger.info(f"[{self.name}] Starting investigation on: {topic}")
        try:
            data = await self.execute(topic)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.warning(f"[{self.name}] Failed: {message}")
            return AgentResult(agent_name=self.name, success=False, error=message)
        logger.info(f"[{self.name}] Investigation complete ({len(data)} chars).")
        return AgentResult(agent_name=self.name, success=True, data=data)
