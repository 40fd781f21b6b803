#!/usr/bin/env python3
"""handoffAgent CLI demo

A triage agent routes billing questions to an invoices specialist and
account questions to a customers specialist. Answers are streamed.

使用方式:
    # 交互式模式（默认）
    python main.py

    # 单次运行
    python main.py --message "question about my invoice INV-1002"

    # 直接指定 Agent
    python main.py --agent customers --message "what is the email of customer C-7?"
"""

from __future__ import annotations

import argparse
import asyncio
import re
import uuid
from typing import Optional

from langchain_core.tools import tool

from handoffAgent import (
    Agent,
    ExecutionContext,
    HistoryConfig,
    MemoryConfig,
    SQLiteMemoryProvider,
    UsageTrackingEvent,
    Workflow,
    WorkingMemoryConfig,
    configure_usage_tracking,
    handoff,
)
from handoffAgent.config import get_settings
from handoffAgent.memory import ChatsConfig
from handoffAgent.streaming import chunks
from handoffAgent.usage import UsageAccumulator, extract_openrouter_usage, format_tokens, summarize_usage
from handoffAgent.utils import configure_observability

_INVOICES = {
    "INV-1001": {"customer": "C-7", "amount": 120.0, "status": "paid"},
    "INV-1002": {"customer": "C-7", "amount": 89.5, "status": "overdue"},
    "INV-1003": {"customer": "C-9", "amount": 42.0, "status": "open"},
}

_CUSTOMERS = {
    "C-7": {"name": "Ada Lovelace", "email": "ada@example.com", "plan": "pro"},
    "C-9": {"name": "Alan Turing", "email": "alan@example.com", "plan": "free"},
}


# ========== Tools ==========

@tool
def get_invoice(invoice_id: str) -> dict:
    """Look up an invoice by id (e.g. INV-1002)."""
    invoice = _INVOICES.get(invoice_id.upper())
    if invoice is None:
        return {"error": f"Invoice {invoice_id} not found"}
    return {"invoice_id": invoice_id.upper(), **invoice}


@tool
def list_invoices(customer_id: str) -> list:
    """List the invoices of a customer (e.g. C-7)."""
    return [{"invoice_id": k, **v} for k, v in _INVOICES.items() if v["customer"] == customer_id.upper()]


@tool
def get_customer(customer_id: str) -> dict:
    """Look up a customer profile by id (e.g. C-7)."""
    customer = _CUSTOMERS.get(customer_id.upper())
    if customer is None:
        return {"error": f"Customer {customer_id} not found"}
    return {"customer_id": customer_id.upper(), **customer}


# ========== Agents ==========

def build_workflow() -> Workflow:
    settings = get_settings()
    memory = MemoryConfig(
        provider=SQLiteMemoryProvider.from_settings(settings),
        history=HistoryConfig(enabled=True),
        working_memory=WorkingMemoryConfig(enabled=True),
        chats=ChatsConfig(enabled=True),
    )

    invoices = Agent(
        name="invoices",
        handoff_description="Invoices, payments, amounts and billing status",
        instructions="You answer questions about invoices. Always look invoices up before answering.",
        tools=[get_invoice, list_invoices],
        match_on=["invoice", "billing", "payment", re.compile(r"\binv-")],
        handoffs=["customers"],
    )
    customers = Agent(
        name="customers",
        handoff_description="Customer profiles, contact details and plans",
        instructions="You answer questions about customer accounts using the customer tools.",
        tools=[get_customer],
        match_on=["customer", "account", "email"],
        handoffs=["invoices"],
    )
    triage = Agent(
        name="triage",
        instructions=(
            "You are the front desk of a billing help center. Greet the user, answer small talk "
            "yourself and hand off anything about invoices or customer accounts."
        ),
        handoffs=[handoff(invoices), handoff(customers)],
        memory=memory,
    )
    return Workflow(triage, settings=settings)


# ========== Output ==========

def _print_chunk(chunk: dict) -> None:
    chunk_type = chunk["type"]
    if chunk_type == chunks.TEXT_DELTA:
        print(chunk["delta"], end="", flush=True)
    elif chunk_type == chunks.TOOL_INPUT_AVAILABLE:
        print(f"\n[tool] {chunk['tool_name']}({chunk['input']})", flush=True)
    elif chunk_type == chunks.DATA_AGENT_HANDOFF:
        data = chunk["data"]
        print(f"\n[handoff] {data['from']} → {data['to']} ({data['routing_strategy']})", flush=True)
    elif chunk_type == chunks.ERROR:
        print(f"\n[error] {chunk['error_text']}", flush=True)
    elif chunk_type == chunks.FINISH:
        print()


_SESSION_USAGE = UsageAccumulator()


async def _print_usage(event: UsageTrackingEvent) -> None:
    chain = " → ".join(event.handoff_chain) if event.handoff_chain else event.agent_name
    openrouter = extract_openrouter_usage(event)
    if openrouter is None:
        # Not routed through OpenRouter, tokens only
        usage = event.usage or {}
        print(f"\n[usage] {chain}: {format_tokens(usage.get('total_tokens', 0))} tokens")
        return

    _SESSION_USAGE.add(openrouter)
    print(f"\n[usage] {chain}: {summarize_usage(openrouter)}, session: {_SESSION_USAGE.summarize()}")


async def run_turn(workflow: Workflow, message: str, context: ExecutionContext, agent: Optional[str]) -> None:
    async for chunk in workflow.stream_turn(message, context, agent_choice=agent):
        _print_chunk(chunk)


def parse_args():
    """解析命令行参数"""
    parser = argparse.ArgumentParser(
        description="handoffAgent - multi-agent handoff demo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--message", type=str, help="单次运行的用户消息")
    parser.add_argument("--agent", type=str, help="直接指定第一个运行的 Agent")
    parser.add_argument("--chat-id", type=str, help="会话 ID（默认随机生成）")
    parser.add_argument("--user-id", type=str, default="demo-user", help="用户 ID")
    return parser.parse_args()


async def async_main():
    args = parse_args()
    configure_observability()
    configure_usage_tracking(_print_usage)

    workflow = build_workflow()
    chat_id = args.chat_id or str(uuid.uuid4())

    def new_context() -> ExecutionContext:
        return ExecutionContext(session_id=chat_id, user_id=args.user_id, chat_id=chat_id)

    if args.message:
        await run_turn(workflow, args.message, new_context(), args.agent)
        return

    print("handoffAgent CLI 已就绪。")
    print(f"会话 ID: {chat_id[:8]}...")
    print("  /quit, /exit    - 退出程序")
    print("  /reset          - 开始新会话")
    print()

    while True:
        try:
            loop = asyncio.get_event_loop()
            user_input = await loop.run_in_executor(None, lambda: input("You> ").strip())
        except (KeyboardInterrupt, EOFError):
            print("\n再见！")
            break

        if not user_input:
            continue
        if user_input.lower() in {"/quit", "/exit"}:
            print("会话结束。")
            break
        if user_input.lower() == "/reset":
            chat_id = str(uuid.uuid4())
            print(f"新会话 ID: {chat_id[:8]}...")
            continue

        print("Agent> ", end="", flush=True)
        await run_turn(workflow, user_input, new_context(), args.agent)


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
