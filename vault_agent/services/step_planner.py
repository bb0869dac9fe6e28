"""Turns a goal into an ordered list of steps.

The backend is asked for a numbered plan. Its reply is parsed line by line with
an ordered list of matchers; the first matcher that recognizes a line wins. If
nothing parses, the planner asks once for a reformatted list, and failing that
falls back to a single catch-all step.
"""

import logging
import re
from collections.abc import Callable

from vault_agent.backends.base import GenerativeBackend, collect_response
from vault_agent.cancellation import AbortSignal, race_abort
from vault_agent.models.agent_task import AgentStep
from vault_agent.models.chat import ChatMessage
from vault_agent.services.prompts import (
    FALLBACK_STEP_DESCRIPTION,
    REFORMAT_PLAN_PROMPT,
    build_planning_prompt,
)

logger = logging.getLogger(__name__)

LineMatcher = Callable[[str], str | None]

# Descriptions this short are list noise, not steps
MIN_DESCRIPTION_LENGTH = 6

_NUMBERED = re.compile(r"^\s*\d+[.)]\s*\*{0,2}(.+?)\*{0,2}\s*$")
_BULLET = re.compile(r"^\s*[-*]\s+(?:[Ss]tep\s+\d+[:.]\s*)?(.+)$")
_HEADING = re.compile(r"^\s*#{1,3}\s+(?:[Ss]tep\s+)?\d*[:.]*\s*(.+)$")


def _regex_matcher(pattern: re.Pattern) -> LineMatcher:
    def match(line: str) -> str | None:
        m = pattern.match(line)
        if m is None:
            return None
        return m.group(1).strip() or None

    return match


match_numbered = _regex_matcher(_NUMBERED)
"""``1. Step``, ``1) Step``, ``1. **Step**``"""

match_bullet = _regex_matcher(_BULLET)
"""``- Step``, ``* Step``, ``- Step 1: ...``"""

match_heading = _regex_matcher(_HEADING)
"""``### Step 1: ...``, ``## Create file``"""

LINE_MATCHERS: tuple[LineMatcher, ...] = (match_numbered, match_bullet, match_heading)


def parse_steps_from_plan(plan: str, max_steps: int) -> list[AgentStep]:
    """Parse plan text into pending steps, truncated to max_steps."""
    steps = []
    for line in plan.split("\n"):
        description = next(
            (d for d in (matcher(line) for matcher in LINE_MATCHERS) if d), None
        )
        if description and len(description) >= MIN_DESCRIPTION_LENGTH:
            steps.append(AgentStep(description=description))
    return steps[:max_steps]


class StepPlanner:
    """Produces the step list for a goal by prompting the backend."""

    def __init__(self, backend: GenerativeBackend):
        self.backend = backend

    async def plan(
        self,
        goal: str,
        max_steps: int,
        context: str | None = None,
        history: list[ChatMessage] | None = None,
        signal: AbortSignal | None = None,
    ) -> tuple[list[AgentStep], str]:
        """Plan a goal.

        Args:
            goal: The user's instruction.
            max_steps: Upper bound on the number of steps.
            context: Optional reference context (e.g. attached vault files).
            history: Recent chat messages, already capped by the caller.
            signal: Aborts the backend calls when a stop is requested.

        Returns:
            Tuple of (steps, raw plan reply). Never an empty step list.

        Raises:
            Any backend or abort error; the caller attaches it to the task.
        """
        history = history or []
        prompt = build_planning_prompt(goal, max_steps, context)
        plan_response = await race_abort(
            collect_response(self.backend, prompt, history, signal), signal
        )
        steps = parse_steps_from_plan(plan_response, max_steps)

        if not steps:
            logger.info("Plan reply had no parseable steps, asking for a numbered list")
            retry_response = await race_abort(
                collect_response(self.backend, REFORMAT_PLAN_PROMPT, history, signal), signal
            )
            steps = parse_steps_from_plan(retry_response, max_steps)

        if not steps:
            logger.warning("Plan still unparseable, falling back to a single step")
            steps = [AgentStep(description=FALLBACK_STEP_DESCRIPTION)]

        logger.info(f"Planned {len(steps)} steps for goal: {goal[:60]}")
        return steps, plan_response
