"""Input and output guardrails.

A guardrail is a function ``(text, context) -> GuardrailResult`` (sync or
async). ``allow`` passes the text through, ``modify`` substitutes
``content`` and continues, ``block`` raises the matching tripwire error.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Literal, Optional, Sequence, Union

from ..utils.errors import (
    GuardrailExecutionError,
    InputGuardrailTripwireTriggered,
    OutputGuardrailTripwireTriggered,
)

if TYPE_CHECKING:
    from ..agents.context import ExecutionContext

LOGGER = logging.getLogger(__name__)

GuardrailAction = Literal["allow", "block", "modify"]


@dataclass
class GuardrailResult:
    action: GuardrailAction = "allow"
    content: Optional[str] = None
    output_info: Any = None

    @classmethod
    def allow(cls) -> "GuardrailResult":
        return cls("allow")

    @classmethod
    def block(cls, output_info: Any = None) -> "GuardrailResult":
        return cls("block", output_info=output_info)

    @classmethod
    def modify(cls, content: str, output_info: Any = None) -> "GuardrailResult":
        return cls("modify", content=content, output_info=output_info)


GuardrailFn = Callable[[str, Optional["ExecutionContext"]], Union[GuardrailResult, Awaitable[GuardrailResult]]]


@dataclass(frozen=True)
class InputGuardrail:
    name: str
    check: GuardrailFn


@dataclass(frozen=True)
class OutputGuardrail:
    name: str
    check: GuardrailFn


async def _evaluate(guardrail, text: str, context) -> GuardrailResult:
    try:
        result = guardrail.check(text, context)
        if inspect.isawaitable(result):
            result = await result
    except Exception as e:
        raise GuardrailExecutionError(guardrail.name, e) from e

    if result is None:
        return GuardrailResult.allow()
    if not isinstance(result, GuardrailResult):
        raise GuardrailExecutionError(guardrail.name, TypeError(f"Unexpected result {result!r}"))
    return result


async def run_input_guardrails(
    guardrails: Sequence[InputGuardrail],
    text: str,
    context: Optional["ExecutionContext"] = None,
) -> str:
    """Run input guardrails in order and return the (possibly modified) input.

    Raises:
        InputGuardrailTripwireTriggered: A guardrail blocked the input
        GuardrailExecutionError: A guardrail itself failed
    """
    for guardrail in guardrails:
        result = await _evaluate(guardrail, text, context)
        if result.action == "block":
            LOGGER.warning(f"Input guardrail '{guardrail.name}' blocked the request")
            raise InputGuardrailTripwireTriggered(guardrail.name, result.output_info)
        if result.action == "modify" and result.content is not None:
            LOGGER.info(f"Input guardrail '{guardrail.name}' modified the request")
            text = result.content
    return text


async def run_output_guardrails(
    guardrails: Sequence[OutputGuardrail],
    text: str,
    agent_name: str,
    context: Optional["ExecutionContext"] = None,
) -> str:
    """Run output guardrails on committed agent text.

    Raises:
        OutputGuardrailTripwireTriggered: A guardrail blocked the output
        GuardrailExecutionError: A guardrail itself failed
    """
    for guardrail in guardrails:
        result = await _evaluate(guardrail, text, context)
        if result.action == "block":
            LOGGER.warning(f"Output guardrail '{guardrail.name}' blocked {agent_name}")
            raise OutputGuardrailTripwireTriggered(guardrail.name, agent_name, result.output_info)
        if result.action == "modify" and result.content is not None:
            LOGGER.info(f"Output guardrail '{guardrail.name}' modified output of {agent_name}")
            text = result.content
    return text
