"""Turns raw LLM text into a typed :data:`~webbrain.decisions.LlmDecision`.

The model is an untrusted text source: it may wrap its JSON in prose or
markdown fences, prepend a ``<think>`` block, or ignore the format entirely.
:func:`parse_llm_response` never raises.  Anything it cannot read becomes
the fixed apology from :func:`fallback_decision`.
"""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from webbrain.decisions import FinalDecision, ToolCallDecision, llm_decision_adapter

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = (
    "I apologize, but I encountered an error processing your request. "
    "The administrators have been notified and will investigate this issue. "
    "Please try again later or contact support if the problem persists."
)
FALLBACK_ACTIONS = ["try_again", "contact_support"]

_THINK_BLOCK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def fallback_decision() -> FinalDecision:
    """The apology returned whenever the model output is unusable."""
    return FinalDecision(
        message=FALLBACK_MESSAGE,
        related_materials=[],
        suggested_actions=list(FALLBACK_ACTIONS),
    )


def strip_reasoning(raw: str) -> str:
    """Remove ``<think>…</think>`` blocks and surrounding whitespace."""
    return _THINK_BLOCK_RE.sub("", raw).strip()


def parse_llm_response(raw: str | None) -> FinalDecision | ToolCallDecision:
    """Extract the decision object from *raw*.

    Takes the span from the first ``{`` to the last ``}`` when there is one,
    otherwise the whole (cleaned) text, and validates it against the
    ``final`` / ``tool_call`` shapes.
    """
    if not isinstance(raw, str):
        logger.warning("LLM returned non-text output: %r", type(raw).__name__)
        return fallback_decision()

    cleaned = strip_reasoning(raw)
    match = _JSON_OBJECT_RE.search(cleaned)
    candidate = match.group(0) if match else cleaned

    try:
        data = json.loads(candidate)
        return llm_decision_adapter.validate_python(data)
    except (ValueError, RecursionError, ValidationError) as exc:
        # ValueError covers JSONDecodeError and oversized integer literals
        logger.warning(
            "Could not parse LLM response (%s); using fallback. Raw: %.200r",
            type(exc).__name__, raw,
        )
        return fallback_decision()
