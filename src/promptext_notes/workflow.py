"""Two-stage generation: discovery, then an optional polish pass."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional

from .llm.context import RunContext
from .llm.factory import create_provider
from .llm.providers.base import LLMProvider
from .llm.resolver import StagePlan, resolve_stages
from .llm.types import LLMResult, ProviderConfig, ProviderError, describe_error, request_from_config
from .prompts import build_polish_prompt

logger = logging.getLogger(__name__)

# Framing lines some models put above the actual changelog.
HEADER_PREFIXES = (
    "# Release Notes for",
    "# Changelog for",
    "Here are the",
    "Here is the",
)

ProviderFactory = Callable[[ProviderConfig, str], LLMProvider]


class WorkflowState(str, Enum):
    IDLE = "idle"
    DISCOVERY_RUNNING = "discovery_running"
    DISCOVERY_SUCCEEDED = "discovery_succeeded"
    POLISH_RUNNING = "polish_running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class WorkflowResult:
    text: str
    discovery: LLMResult
    polish: Optional[LLMResult] = None
    draft: str = ""

    @property
    def stages(self) -> List[LLMResult]:
        return [r for r in (self.discovery, self.polish) if r is not None]

    @property
    def tokens_used(self) -> int:
        return sum(r.tokens_used for r in self.stages)

    @property
    def cost_usd(self) -> float:
        return sum(r.cost_usd for r in self.stages)


def strip_ai_headers(content: str) -> str:
    """Drops leading framing lines ("Here is the ...") and one blank line after each."""
    lines = content.split("\n")
    idx = 0
    while idx < len(lines):
        trimmed = lines[idx].strip()
        if not trimmed:
            idx += 1
            continue
        if not trimmed.startswith(HEADER_PREFIXES):
            break
        idx += 1
        if idx < len(lines) and not lines[idx].strip():
            idx += 1
    return "\n".join(lines[idx:]).strip()


class TwoStageWorkflow:
    """Runs discovery and, when the plan has a polish stage, polish.

    Providers are built fresh for every run. A failing polish stage fails the
    whole run; the discovery draft is not returned as a fallback.
    """

    def __init__(self, plan: StagePlan, provider_factory: ProviderFactory = create_provider) -> None:
        self.plan = plan
        self._provider_factory = provider_factory
        self.state = WorkflowState.IDLE

    @classmethod
    def from_settings(
        cls,
        settings: Mapping[str, Any],
        polish: Optional[bool] = None,
        environ: Mapping[str, str] | None = None,
        provider_factory: ProviderFactory = create_provider,
    ) -> "TwoStageWorkflow":
        return cls(resolve_stages(settings, polish=polish, environ=environ), provider_factory)

    def run(
        self,
        prompt: str,
        diff: str = "",
        system_prompt: Optional[str] = None,
        ctx: Optional[RunContext] = None,
    ) -> WorkflowResult:
        ctx = ctx or RunContext()
        try:
            return self._run(prompt, diff, system_prompt, ctx)
        except Exception:
            self.state = WorkflowState.FAILED
            raise

    def _run(self, prompt: str, diff: str, system_prompt: Optional[str], ctx: RunContext) -> WorkflowResult:
        self.state = WorkflowState.DISCOVERY_RUNNING
        discovery = self._run_stage(
            "discovery",
            self.plan.discovery,
            self.plan.discovery_api_key,
            prompt,
            system_prompt,
            ctx,
        )
        draft = strip_ai_headers(discovery.text)
        self.state = WorkflowState.DISCOVERY_SUCCEEDED

        if self.plan.polish is None:
            self.state = WorkflowState.DONE
            return WorkflowResult(text=draft, discovery=discovery, draft=draft)

        self.state = WorkflowState.POLISH_RUNNING
        polish_prompt = build_polish_prompt(draft, diff, self.plan.polish_prompt or None)
        polished = self._run_stage(
            "polish",
            self.plan.polish,
            self.plan.polish_api_key,
            polish_prompt,
            None,
            ctx,
        )
        self.state = WorkflowState.DONE
        return WorkflowResult(text=polished.text, discovery=discovery, polish=polished, draft=draft)

    def _run_stage(
        self,
        stage: str,
        config: ProviderConfig,
        api_key: str,
        prompt: str,
        system_prompt: Optional[str],
        ctx: RunContext,
    ) -> LLMResult:
        logger.info("%s stage: generating with %s (%s)", stage, config.provider, config.model)
        try:
            provider = self._provider_factory(config, api_key)
            result = provider.generate(request_from_config(config, prompt, system_prompt), ctx)
        except ProviderError as exc:
            exc.stage = stage
            logger.error("%s stage failed: %s", stage, describe_error(exc))
            raise

        if result.cost_usd > 0:
            logger.info(
                "%s stage: %d tokens (estimated cost: $%.4f)",
                stage,
                result.tokens_used,
                result.cost_usd,
            )
        else:
            logger.info("%s stage: %d tokens", stage, result.tokens_used)
        return result
