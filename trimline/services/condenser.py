"""
Content condensation.

``ContentCondenser`` is the contract the proposal store depends on: take a
chapter and a target length, return shorter prose plus an account of what
was cut. ``LLMContentCondenser`` fulfils it with a model call.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import ValidationError

from trimline.core.config import settings
from trimline.core.errors import CondensationError
from trimline.schemas.word_count_revision import (
    CondensationOutput,
    CondensationRequest,
    CondensationResult,
    IssueContext,
)
from trimline.services.llm import LLMService, get_llm_service

logger = logging.getLogger(__name__)


def count_words(text: Optional[str]) -> int:
    """Whitespace-delimited word count."""
    if not text:
        return 0
    return len(text.split())


def parse_json_response(content: str) -> dict:
    """Parse JSON from LLM response, handling common issues."""
    content = content.strip()

    # Remove markdown code blocks if present
    if content.startswith("```"):
        content = re.sub(r"^```\w*\n?", "", content)
        content = re.sub(r"\n?```$", "", content)

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        # Try to find JSON object in the text
        match = re.search(r"\{[\s\S]*\}", content)
        if not match:
            return {}
        try:
            parsed = json.loads(match.group())
        except json.JSONDecodeError:
            return {}

    return parsed if isinstance(parsed, dict) else {}


class ContentCondenser(ABC):
    """Reduces a chapter toward a target word count."""

    @abstractmethod
    def condense(self, request: CondensationRequest) -> CondensationResult:
        """
        Condense one chapter.

        Raises:
            CondensationError: if no usable condensed text was produced
        """


def _issue_context_block(issues: Optional[IssueContext]) -> str:
    if issues is None or issues.is_empty:
        return ""

    lines = ["KNOWN ISSUES TO ADDRESS (from editorial analysis):"]
    if issues.scene_purpose is not None:
        if issues.scene_purpose.earned:
            lines.append("- Scene Purpose: Earned")
        else:
            lines.append(f"- Scene Purpose: NOT EARNED - {issues.scene_purpose.reasoning}")
    if issues.exposition_issues:
        lines.append("- Exposition Issues:")
        lines.extend(
            f'  * {i.issue}: "{i.quote}" - {i.suggestion}' for i in issues.exposition_issues
        )
    if issues.pacing_issues:
        lines.append("- Pacing Issues:")
        lines.extend(
            f"  * {i.issue} at {i.location}: {i.suggestion}" for i in issues.pacing_issues
        )
    return "\n".join(lines)


def build_condensation_prompt(request: CondensationRequest) -> tuple[str, str]:
    """Return ``(system_prompt, user_prompt)`` for a condensation request."""
    reduction = request.reduction_percent
    target = request.target_word_count

    system_prompt = f"""You are a senior editor specialising in word count reduction without losing story essence.

Your task is to condense this chapter by approximately {reduction:.1f}% (target: ~{target} words) whilst preserving:
- All plot-critical events and revelations
- Character development moments
- Essential dialogue and voice
- Narrative momentum and hooks

{_issue_context_block(request.issues)}

Focus cuts on:
1. Exposition marked as "telling not showing" - remove or dramatise
2. Info dumps - cut or weave into action
3. Unnecessary backstory - cut unless plot-critical
4. Repetitive pacing sections - consolidate
5. Scenes not earning their place - trim or cut
6. Redundant descriptions and excessive modifiers
7. On-the-nose dialogue - let subtext do the work

FORMATTING REQUIREMENTS:
- Output pure prose only, like a professionally published novel
- No markdown formatting (#, ##, **, *, etc.)
- No scene numbers or structural headers
- Scene breaks indicated by a blank line only

OUTPUT FORMAT (JSON):
{{
  "condensedContent": "The full condensed chapter text as pure prose",
  "cutsExplanation": [
    {{ "whatWasCut": "Description of what was removed", "why": "Reason for cutting", "wordsRemoved": 150 }}
  ],
  "preservedElements": ["List of critical elements deliberately kept"],
  "wordCount": {target}
}}"""

    heading = f"CHAPTER {request.chapter_number or ''}".rstrip()
    if request.chapter_title:
        heading += f": {request.chapter_title}"

    user_prompt = f"""Condense this chapter to approximately {target} words.

{heading}
CURRENT WORD COUNT: {request.original_word_count}
TARGET REDUCTION: {reduction:.1f}%

---
{request.original_content}
---

Return ONLY valid JSON with the condensed chapter and explanation:"""

    return system_prompt, user_prompt


class LLMContentCondenser(ContentCondenser):
    """Condenses chapters with a single structured model call."""

    def __init__(
        self,
        llm_service: Optional[LLMService] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ):
        self.llm = llm_service or get_llm_service()
        self.model = model or settings.CONDENSER_MODEL
        self.temperature = (
            settings.CONDENSER_TEMPERATURE if temperature is None else temperature
        )

    def max_tokens_for(self, content: str) -> int:
        return max(settings.CONDENSER_MIN_MAX_TOKENS, len(content) // 2)

    def condense(self, request: CondensationRequest) -> CondensationResult:
        system_prompt, user_prompt = build_condensation_prompt(request)

        response = self.llm.generate(
            prompt=user_prompt,
            system_prompt=system_prompt,
            model=self.model,
            max_tokens=self.max_tokens_for(request.original_content),
            temperature=self.temperature,
        )

        payload = parse_json_response(response.content)
        try:
            output = CondensationOutput.model_validate(payload)
        except ValidationError as e:
            raise CondensationError("Invalid AI response: missing condensedContent") from e

        condensed = output.condensed_content.strip()
        if not condensed:
            raise CondensationError("Invalid AI response: empty condensedContent")

        # The model's own wordCount claim is not trusted
        condensed_word_count = count_words(condensed)
        if output.word_count is not None and abs(output.word_count - condensed_word_count) > 50:
            logger.info(
                "Condenser reported %d words, counted %d",
                output.word_count,
                condensed_word_count,
            )

        return CondensationResult(
            condensed_content=condensed,
            condensed_word_count=condensed_word_count,
            cuts_explanation=output.cuts_explanation,
            preserved_elements=output.preserved_elements,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
        )
