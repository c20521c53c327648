from __future__ import annotations

import asyncio
import time
from typing import Sequence

from loguru import logger

from nanobook.agents.base import AgentResult, BaseAgent
from nanobook.agents.research_agents import default_agents
from nanobook.config import settings
from nanobook.errors import AllAgentsFailedError, InvalidResearchStructureError
from nanobook.llm_client import GenerationRequest, LLMClient, get_model
from nanobook.models.events import AgentState, AgentStatus, ProgressCallback
from nanobook.models.schemas import ResearchData
from nanobook.services import logger as log_service
from nanobook.services.prompt_store import render_prompt
from nanobook.services.validation import (
    RESEARCH_RESPONSE_SCHEMA,
    parse_structured,
    require_valid,
)

DOSSIER_SEPARATOR = "\n\n" + "=" * 20 + "\n\n"


class ResearchCoordinator:
    """Orchestrates the forensic research phase.

    Flow:
      1. Fan out: run every research agent concurrently on the topic
      2. Settle all outcomes; one agent failing never cancels the others
      3. Fail only when zero agents succeeded
      4. Concatenate surviving reports into a dossier, in agent order
      5. One structured synthesis call, then extract and validate ResearchData

    `on_progress` receives the full ordered list of agent states on every
    status change.
    """

    def __init__(
        self,
        llm: LLMClient,
        agents: Sequence[BaseAgent] | None = None,
        *,
        model: str | None = None,
        timeout_ms: int | None = None,
    ):
        self.llm = llm
        self.agents = list(agents) if agents is not None else default_agents(llm)
        self.model = model or get_model(settings.synthesis_model)
        self.timeout_ms = settings.synthesis_timeout_ms if timeout_ms is None else int(timeout_ms)

    async def _run_agents(
        self, topic: str, on_progress: ProgressCallback | None
    ) -> list[AgentResult]:
        states = [AgentState(name=agent.name) for agent in self.agents]

        def notify() -> None:
            if on_progress is None:
                return
            try:
                on_progress(list(states))
            except Exception as exc:
                logger.warning(f"Progress callback raised: {exc}")

        def publish(index: int, status: AgentStatus, message: str | None = None) -> None:
            states[index] = AgentState(name=states[index].name, status=status, message=message)
            log_service.log_agent_step(
                topic, states[index].name, status.value, {"message": message} if message else None
            )
            notify()

        async def run_one(index: int, agent: BaseAgent) -> AgentResult:
            publish(index, AgentStatus.RUNNING)
            result = await agent.run(topic)
            if result.success:
                publish(index, AgentStatus.COMPLETED)
            else:
                publish(index, AgentStatus.FAILED, result.error)
            return result

        notify()
        raw_results = await asyncio.gather(
            *(run_one(idx, agent) for idx, agent in enumerate(self.agents)),
            return_exceptions=True,
        )

        results: list[AgentResult] = []
        for idx, (agent, item) in enumerate(zip(self.agents, raw_results)):
            if isinstance(item, BaseException):
                # BaseAgent.run catches its own errors; this covers custom agents.
                reason = str(item) or type(item).__name__
                publish(idx, AgentStatus.FAILED, reason)
                results.append(AgentResult(agent_name=agent.name, success=False, error=reason))
            else:
                results.append(item)
        return results

    @staticmethod
    def build_dossier(results: Sequence[AgentResult]) -> str:
        """Label each successful report with its agent, keeping input order."""
        reports = [
            f"{result.agent_name.upper()} REPORT:\n{result.data}"
            for result in results
            if result.success and result.data
        ]
        return DOSSIER_SEPARATOR.join(reports)

    async def synthesize(self, topic: str, dossier: str, case_study_count: int) -> ResearchData:
        response = await self.llm.generate(
            GenerationRequest(
                model=self.model,
                contents=render_prompt(
                    "coordinator.synthesis",
                    topic=topic,
                    dossier=dossier,
                    case_study_count=case_study_count,
                ),
                system_instruction=render_prompt("coordinator.system_prompt"),
                response_schema=RESEARCH_RESPONSE_SCHEMA,
                schema_name="research_data",
            ),
            caller="coordinator",
            timeout_ms=self.timeout_ms,
        )
        return require_valid(
            parse_structured(response.text, ResearchData),
            InvalidResearchStructureError,
            "Invalid research structure",
        )

    async def perform_research(
        self,
        topic: str,
        case_study_count: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ResearchData:
        count = settings.default_case_study_count if case_study_count is None else case_study_count
        t0 = time.monotonic()
        logger.info(f"Deploying {len(self.agents)} agents on: {topic}")

        results = await self._run_agents(topic, on_progress)
        successes = [r for r in results if r.success and r.data]
        failures = {
            r.agent_name: r.error or "no data returned"
            for r in results
            if not (r.success and r.data)
        }
        if failures:
            logger.warning(
                f"The following agents failed or returned no data: {', '.join(failures)}"
            )
        if not successes:
            raise AllAgentsFailedError(failures)

        research = await self.synthesize(topic, self.build_dossier(successes), count)
        if len(research.case_studies) != count:
            logger.warning(
                f"Synthesis returned {len(research.case_studies)} case studies, requested {count}"
            )

        log_service.log_event(
            event_type="research_complete",
            message=f"Research complete for {topic}",
            agents_succeeded=len(successes),
            agents_failed=len(failures),
            runtime_ms=int((time.monotonic() - t0) * 1000),
        )
        return research
