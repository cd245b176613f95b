"""
Console REPL for the Multi-Agent Sandbox.

Pick a routing strategy, then type queries; `exit` quits. When a
low-confidence answer suspends the run, the operator is asked to
approve, edit or reject it.
"""

import argparse
import asyncio
import logging
import sys
import uuid
from typing import List, Optional, Tuple

from .core.config import configure_logging, get_settings
from .core.graph_factory import RoutingStrategy, list_available_graphs
from .core.orchestrator import RunOutcome, SessionOrchestrator
from .models.conversation_state import ConfidenceEnvelope, ResumeDecision

logger = logging.getLogger(__name__)


EXIT_COMMAND = "exit"


def display_text(text: Optional[str]) -> str:
    """Show envelope content rather than raw JSON"""
    envelope = ConfidenceEnvelope.parse(text)
    if envelope is not None:
        return envelope.content
    return text or ""


def parse_review(answer: str) -> Tuple[ResumeDecision, Optional[str]]:
    """
    Parse an operator reply: 'approve', 'reject [reason]' or 'edit <text>'.

    Raises ValueError on anything else.
    """
    command, _, rest = answer.strip().partition(" ")
    decision = ResumeDecision(command.lower())
    payload = rest.strip() or None
    if decision == ResumeDecision.EDIT and not payload:
        raise ValueError("edit needs the replacement text, e.g. 'edit Berlin: 10°C'")
    return decision, payload


async def ask(prompt: str) -> Optional[str]:
    try:
        return await asyncio.to_thread(input, prompt)
    except EOFError:
        return None


async def choose_strategy() -> Optional[RoutingStrategy]:
    print("Choose a routing strategy:")
    for number, (name, description) in enumerate(list_available_graphs().items(), start=1):
        print(f"  {number}. {name} - {description}")

    while True:
        answer = await ask("Strategy [1-4]: ")
        if answer is None:
            return None
        try:
            return RoutingStrategy.parse(answer)
        except ValueError as e:
            print(e)


async def review(orchestrator: SessionOrchestrator, outcome: RunOutcome) -> Optional[RunOutcome]:
    """Ask the operator about suspended runs until the session completes"""
    while outcome.suspended:
        envelope = outcome.envelope
        print("\nA low-confidence answer needs review:")
        if envelope is not None:
            print(f"  tool: {envelope.tool}")
            print(f"  confidence: {envelope.confidence:.2f}")
            print(f"  answer: {envelope.content}")

        answer = await ask("Decision (approve / edit <text> / reject): ")
        if answer is None:
            return None
        try:
            decision, payload = parse_review(answer)
        except ValueError as e:
            print(e)
            continue
        outcome = await orchestrator.resume(outcome.session_id, decision, payload)
    return outcome


def print_outcome(outcome: RunOutcome) -> None:
    if outcome.status == "failed":
        print(f"\nThe request could not be completed: {outcome.error}\n")
        return
    print(f"\nAssistant: {display_text(outcome.final_answer)}\n")


async def repl(orchestrator: SessionOrchestrator, strategy: RoutingStrategy, session_id: str) -> None:
    print(f"Session {session_id} using '{strategy.value}'. Type '{EXIT_COMMAND}' to quit.")
    while True:
        query = await ask("You: ")
        if query is None or query.strip().lower() == EXIT_COMMAND:
            print("Bye!")
            return
        if not query.strip():
            continue

        outcome = await orchestrator.invoke(session_id, query.strip(), strategy)
        outcome = await review(orchestrator, outcome)
        if outcome is None:
            return
        print_outcome(outcome)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="multiagent-sandbox", description="Multi-agent routing sandbox REPL")
    parser.add_argument(
        "--strategy",
        help="reactive, fallback, planner or hitl (or 1-4); asked interactively when omitted"
    )
    parser.add_argument("--session", help="Session identifier (default: random)")
    parser.add_argument("--log-level", help="Logging level (default: from settings)")
    return parser


async def amain(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    if args.strategy:
        try:
            strategy = RoutingStrategy.parse(args.strategy)
        except ValueError as e:
            print(e, file=sys.stderr)
            return 2
    else:
        strategy = await choose_strategy()
        if strategy is None:
            return 0

    if not settings.has_llm_credentials:
        logger.warning("OPENAI_API_KEY not set, using the offline keyword decision provider")

    orchestrator = SessionOrchestrator(default_strategy=strategy)
    await repl(orchestrator, strategy, args.session or uuid.uuid4().hex[:8])
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    try:
        return asyncio.run(amain(argv))
    except KeyboardInterrupt:
        print("\nBye!")
        return 130
