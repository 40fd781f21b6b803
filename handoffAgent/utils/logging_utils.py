"""Logging utilities for handoffAgent."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = "logs",
) -> logging.Logger:
    """Setup logging configuration for handoffAgent.

    Args:
        level: Console logging level (default: INFO)
        log_dir: Directory for the detailed log file, ``None`` disables the file handler

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("handoffAgent")
    logger.setLevel(logging.DEBUG)  # Set to DEBUG to capture all child logs
    logger.propagate = False

    logger.handlers = []

    if log_dir:
        logs_path = Path(log_dir)
        logs_path.mkdir(parents=True, exist_ok=True)
        log_file = logs_path / f"handoffagent_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(max(level, logging.WARNING))
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    logger.info("=" * 80)
    logger.info("handoffAgent session started")
    logger.info("=" * 80)

    return logger


def _preview(value: Any, limit: int = 100) -> str:
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)
    return f"{text[:limit]}{'...' if len(text) > limit else ''}"


def log_routing_decision(logger: logging.Logger, from_node: str, decision: str, reason: str = "") -> None:
    """Log routing decision.

    Args:
        logger: Logger instance
        from_node: Source node making the decision
        decision: Routing destination
        reason: Reason for the routing decision
    """
    logger.info(f"Routing decision from {from_node}: → {decision}")
    if reason:
        logger.info(f"  → Reason: {reason}")


def log_round_entry(logger: logging.Logger, agent_name: str, round_no: int, max_rounds: int, window: List[Any]) -> None:
    """Log the start of one agent round."""
    logger.info(f"{'#' * 20} ROUND {round_no}/{max_rounds}: {agent_name} {'#' * 20}")
    logger.info(f"  - window: {len(window)} messages")


def log_round_exit(logger: logging.Logger, agent_name: str, text: str, handoff: Optional[Dict[str, Any]], tool_names: List[str]) -> None:
    """Log what one agent round produced."""
    logger.info(f"Round finished: {agent_name}")
    logger.info(f"  - text: {len(text)} chars")
    logger.info(f"  - tools: {tool_names}")
    if handoff:
        logger.info(f"  - handoff: {handoff.get('target_agent')} ({handoff.get('reason', '')})")


def log_handoff(logger: logging.Logger, from_agent: str, to_agent: str, reason: str = "", strategy: str = "llm") -> None:
    """Log an agent handoff."""
    logger.info(f"Handoff [{strategy}]: {from_agent} → {to_agent}")
    if reason:
        logger.debug(f"  Reason: {reason}")


def log_tool_call(logger: logging.Logger, tool_name: str, args: Dict[str, Any]) -> None:
    """Log tool invocation."""
    logger.info(f"Tool call: {tool_name}")
    logger.debug(f"  Arguments: {json.dumps(args, ensure_ascii=False, default=str)}")


def log_tool_result(logger: logging.Logger, tool_name: str, result: Any, success: bool = True) -> None:
    """Log tool execution result."""
    status = "✓ Success" if success else "✗ Failed"
    logger.info(f"Tool result: {tool_name} - {status}")
    logger.debug(f"  Result: {_preview(result, 500)}")


def log_error(logger: logging.Logger, error: BaseException, context: str = "") -> None:
    """Log error with context.

    Args:
        logger: Logger instance
        error: Exception instance
        context: Additional context about where the error occurred
    """
    logger.error(f"Error occurred: {type(error).__name__}: {str(error)}")
    if context:
        logger.error(f"  Context: {context}")
    logger.debug("Full traceback:", exc_info=error)


def log_user_message(logger: logging.Logger, content: str) -> None:
    """Log user input."""
    logger.info(f"User input: {_preview(content)}")


def log_agent_response(logger: logging.Logger, agent_name: str, content: str) -> None:
    """Log agent response."""
    logger.info(f"{agent_name} response: {_preview(content)}")


def log_prompt(logger: logging.Logger, agent_name: str, prompt: str, limit: int = 500) -> None:
    """Log system prompt being used (truncated)."""
    logger.debug(f"System prompt for {agent_name}: {_preview(prompt, limit)}")
