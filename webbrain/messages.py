"""Transcript assembly for every LLM call of a chat turn.

Order is fixed and semantically meaningful:

  1. system  — the orchestration policy (``prompts.SYSTEM_PROMPT``)
  2. system  — "Additional instructions: …"  (only when provided)
  3. history — caller-supplied turns, verbatim and in order
  4. user    — the current message
  5. per executed tool round:
       assistant — the tool-call decision, re-serialised
       user      — "Tool result for <tool>: <JSON output>"
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from webbrain.decisions import ConversationTurn, ToolExchange
from webbrain.prompts import (
    CUSTOM_INSTRUCTIONS_TEMPLATE,
    SYSTEM_PROMPT,
    TOOL_RESULT_TEMPLATE,
)


def build_messages(
    user_message: str,
    history: Iterable[ConversationTurn] = (),
    custom_instructions: str | None = None,
    tool_exchanges: Sequence[ToolExchange] = (),
) -> list[ConversationTurn]:
    """Return the ordered transcript for one LLM call.  Pure; no I/O."""
    messages = [ConversationTurn(role="system", content=SYSTEM_PROMPT)]

    if custom_instructions and custom_instructions.strip():
        messages.append(
            ConversationTurn(
                role="system",
                content=CUSTOM_INSTRUCTIONS_TEMPLATE.format(
                    instructions=custom_instructions,
                ),
            )
        )

    for turn in history:
        messages.append(ConversationTurn(role=turn.role, content=turn.content))

    messages.append(ConversationTurn(role="user", content=user_message))

    for exchange in tool_exchanges:
        messages.append(
            ConversationTurn(role="assistant", content=exchange.call.to_json())
        )
        messages.append(
            ConversationTurn(
                role="user",
                content=TOOL_RESULT_TEMPLATE.format(
                    tool=exchange.call.tool, output=exchange.output_json(),
                ),
            )
        )

    return messages
