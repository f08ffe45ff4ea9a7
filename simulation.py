#!/usr/bin/env python3
"""Translation Marketplace: End-to-End Simulation.

Simulates five scenarios with a RequesterBot and two TranslatorBots:

    Scenario 1: Happy Path
        - Requester publishes a request, translator applies, requester accepts
        - Both parties sign -> escrow opened, request in progress
        - One milestone worked and paid -> contract and request COMPLETED
        - Escrow funded and released

    Scenario 2: Out-of-Order Milestone
        - Two milestones assigned; translator tries milestone 2 while
          milestone 1 is still in progress -> refused

    Scenario 3: Outsider Translator
        - A translator who is not party to the contract tries to start a
          milestone -> permission denied

    Scenario 4: Cancellation
        - Requester cancels before the contract is fully signed
          -> pending applications rejected, unsigned contract terminated

    Scenario 5: Accept Race
        - Two concurrent accepts of the same application -> exactly one wins

Usage:
    # Option A: With Docker (PostgreSQL):
    docker compose up -d
    uv run python simulation.py

    # Option B: Without Docker (SQLite in-memory):
    uv run python simulation.py --sqlite

    # Run a specific scenario:
    uv run python simulation.py --sqlite --scenario 2
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from translation_marketplace.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

from translation_marketplace.domain.enums import ActorRole  # noqa: E402
from translation_marketplace.domain.exceptions import (  # noqa: E402
    InvalidTransitionError,
    MarketplaceError,
    PermissionDeniedError,
)
from translation_marketplace.domain.permissions import Actor  # noqa: E402
from translation_marketplace.services.workflow_engine import WorkflowEngine  # noqa: E402

# Module-level state
_sqlite_engine = None
_sqlite_session_factory = None


# ---------------------------------------------------------------------------
# Database lifecycle helpers
# ---------------------------------------------------------------------------
async def init_database(use_sqlite: bool = False):
    """Initialize database engine and create tables."""
    global _sqlite_engine, _sqlite_session_factory

    if use_sqlite:
        from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

        from translation_marketplace.infrastructure.database.orm_models import Base

        _sqlite_engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            echo=False,
        )
        _sqlite_session_factory = async_sessionmaker(
            bind=_sqlite_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        async with _sqlite_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.sqlite_initialized")
    else:
        from translation_marketplace.infrastructure.database.engine import init_db

        await init_db()


def get_session():
    """Get a fresh database session."""
    if _sqlite_session_factory is not None:
        return _sqlite_session_factory()

    from translation_marketplace.infrastructure.database.engine import get_session_factory

    return get_session_factory()()


async def shutdown_database():
    """Close database connections."""
    global _sqlite_engine, _sqlite_session_factory

    if _sqlite_engine is not None:
        await _sqlite_engine.dispose()
        _sqlite_engine = None
        _sqlite_session_factory = None
    else:
        from translation_marketplace.infrastructure.database.engine import close_db

        await close_db()


# ---------------------------------------------------------------------------
# Bots
# ---------------------------------------------------------------------------
@dataclass
class RequesterBot:
    """Simulated author who commissions translations."""

    actor: Actor = field(default_factory=lambda: Actor("U1", ActorRole.REQUESTER))

    async def publish(self, engine: WorkflowEngine, book_id: str, budget_cents: int) -> Any:
        request = await engine.requests.create_request(
            self.actor,
            book_id=book_id,
            source_language="en",
            target_language="fr",
            budget_cents=budget_cents,
            title=f"Translation of {book_id}",
        )
        logger.info("🔵 REQUESTER: Request published", request_id=str(request.id))
        return request

    async def accept(self, engine: WorkflowEngine, application_id: Any) -> Any:
        _, contract = await engine.applications.accept_application(self.actor, application_id)
        logger.info("🔵 REQUESTER: Application accepted", contract_id=str(contract.id))
        return contract

    async def add_milestone(
        self, engine: WorkflowEngine, contract_id: Any, title: str, amount_cents: int
    ) -> Any:
        milestone = await engine.milestones.create_milestone(
            self.actor, contract_id, title=title, amount_cents=amount_cents
        )
        milestone = await engine.milestones.assign_milestone(self.actor, milestone.id)
        logger.info(
            "🔵 REQUESTER: Milestone assigned",
            ordinal=milestone.ordinal,
            translator_id=milestone.translator_id,
        )
        return milestone


@dataclass
class TranslatorBot:
    """Simulated translator bidding on and working requests."""

    actor: Actor = field(default_factory=lambda: Actor("U2", ActorRole.TRANSLATOR))

    async def apply(self, engine: WorkflowEngine, request_id: Any) -> Any:
        application = await engine.applications.create_application(
            self.actor,
            request_id,
            motivation="Literary translator, ten years of fiction",
            proposed_rate_cents=30_000,
        )
        logger.info(
            "🟢 TRANSLATOR: Applied",
            translator_id=self.actor.id,
            application_id=str(application.id),
        )
        return application

    async def deliver(self, engine: WorkflowEngine, milestone_id: Any) -> Any:
        await engine.milestones.start_milestone(self.actor, milestone_id)
        milestone = await engine.milestones.submit_milestone(
            self.actor, milestone_id, notes="Translation attached"
        )
        logger.info("🟢 TRANSLATOR: Milestone submitted", milestone_id=str(milestone_id))
        return milestone


async def sign_both(
    engine: WorkflowEngine, requester: RequesterBot, translator: TranslatorBot, contract_id: Any
) -> Any:
    await engine.contracts.sign_contract(requester.actor, contract_id)
    contract = await engine.contracts.sign_contract(translator.actor, contract_id)
    print(f"  ✍️  Contract status: {contract.status}")
    return contract


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


def print_refusal(exc: MarketplaceError) -> None:
    print(f"  ⛔ Refused: [{exc.code}] {exc.message}")
    if isinstance(exc, InvalidTransitionError):
        print(f"     Invariant: {exc.invariant}")


async def print_audit_trail(engine: WorkflowEngine, actor: Actor, request_id: Any) -> None:
    """Print the full audit trail for a request."""
    events = await engine.requests.get_events(actor, request_id)
    print("\n  📜 Audit Trail:")
    for i, evt in enumerate(events, 1):
        old = evt.from_status or "(new)"
        print(
            f"    {i}. [{evt.entity_type}:{evt.action}] {old} → {evt.to_status} "
            f"(by {evt.actor_id})"
        )
    print()


# ===========================================================================
# Scenario 1: Happy Path
# ===========================================================================
async def scenario_1_happy_path() -> None:
    """Request to completed, with escrow funded and released."""
    banner("SCENARIO 1: Happy Path, One Book, One Milestone")

    requester = RequesterBot()
    translator = TranslatorBot()
    payments = Actor("payments", ActorRole.SYSTEM)

    async with get_session() as session:
        engine = WorkflowEngine(session)

        section("Step 1: Requester publishes, translator applies")
        request = await requester.publish(engine, "book-happy", 30_000)
        application = await translator.apply(engine, request.id)

        section("Step 2: Requester accepts")
        contract = await requester.accept(engine, application.id)
        request = await engine.requests.get_request(requester.actor, request.id)
        print(f"  📄 Contract: {contract.status} | Request: {request.status}")

        section("Step 3: Both parties sign")
        contract = await sign_both(engine, requester, translator, contract.id)
        escrow = await engine.escrows.get_contract_escrow(requester.actor, contract.id)
        await engine.escrows.fund_escrow(requester.actor, escrow.id)
        print(f"  💰 Escrow funded: {escrow.amount_cents / 100:.2f}")

        section("Step 4: Milestone worked and paid")
        milestone = await requester.add_milestone(engine, contract.id, "Full manuscript", 30_000)
        await translator.deliver(engine, milestone.id)
        await engine.milestones.approve_milestone(requester.actor, milestone.id)
        await engine.milestones.mark_milestone_paid(payments, milestone.id)
        escrow = await engine.escrows.release_escrow(payments, escrow.id)

        section("Step 5: Final status check")
        contract = await engine.contracts.get_contract(requester.actor, contract.id)
        request = await engine.requests.get_request(requester.actor, request.id)
        print(f"  ✅ Contract: {contract.status} | Request: {request.status} | Escrow: {escrow.status}")

        await print_audit_trail(engine, requester.actor, request.id)


# ===========================================================================
# Scenario 2: Out-of-Order Milestone
# ===========================================================================
async def scenario_2_out_of_order() -> None:
    """Milestone 2 cannot start while milestone 1 is unpaid."""
    banner("SCENARIO 2: Out-of-Order Milestone")

    requester = RequesterBot()
    translator = TranslatorBot()

    async with get_session() as session:
        engine = WorkflowEngine(session)
        request = await requester.publish(engine, "book-sequence", 60_000)
        application = await translator.apply(engine, request.id)
        contract = await requester.accept(engine, application.id)
        contract = await sign_both(engine, requester, translator, contract.id)

        m1 = await requester.add_milestone(engine, contract.id, "Chapters 1-5", 30_000)
        m2 = await requester.add_milestone(engine, contract.id, "Chapters 6-10", 30_000)
        m2_id = m2.id
        await engine.milestones.start_milestone(translator.actor, m1.id)

        section("Translator starts milestone 2 early")
        try:
            await engine.milestones.start_milestone(translator.actor, m2_id)
        except InvalidTransitionError as exc:
            print_refusal(exc)


# ===========================================================================
# Scenario 3: Outsider Translator
# ===========================================================================
async def scenario_3_outsider() -> None:
    """A translator outside the contract cannot touch its milestones."""
    banner("SCENARIO 3: Outsider Translator")

    requester = RequesterBot()
    translator = TranslatorBot()
    outsider = TranslatorBot(Actor("U3", ActorRole.TRANSLATOR))

    async with get_session() as session:
        engine = WorkflowEngine(session)
        request = await requester.publish(engine, "book-outsider", 30_000)
        application = await translator.apply(engine, request.id)
        contract = await requester.accept(engine, application.id)
        contract = await sign_both(engine, requester, translator, contract.id)
        milestone = await requester.add_milestone(engine, contract.id, "Whole book", 30_000)

        section("U3 tries to start U2's milestone")
        try:
            await engine.milestones.start_milestone(outsider.actor, milestone.id)
        except PermissionDeniedError as exc:
            print_refusal(exc)


# ===========================================================================
# Scenario 4: Cancellation
# ===========================================================================
async def scenario_4_cancellation() -> None:
    """Cancelling before full signature rejects and terminates the rest."""
    banner("SCENARIO 4: Cancellation Cascade")

    requester = RequesterBot()
    first = TranslatorBot()
    second = TranslatorBot(Actor("U3", ActorRole.TRANSLATOR))

    async with get_session() as session:
        engine = WorkflowEngine(session)
        request = await requester.publish(engine, "book-cancel", 30_000)
        accepted = await first.apply(engine, request.id)
        pending = await second.apply(engine, request.id)
        contract = await requester.accept(engine, accepted.id)
        await engine.contracts.sign_contract(requester.actor, contract.id)

        section("Requester cancels")
        request = await engine.requests.cancel_request(
            requester.actor, request.id, reason="Publisher withdrew the rights"
        )
        pending = await engine.applications.get_application(requester.actor, pending.id)
        contract = await engine.contracts.get_contract(requester.actor, contract.id)
        print(f"  🛑 Request: {request.status}")
        print(f"  🛑 Pending application: {pending.status}")
        print(f"  🛑 Contract: {contract.status}")

        await print_audit_trail(engine, requester.actor, request.id)


# ===========================================================================
# Scenario 5: Accept Race
# ===========================================================================
async def scenario_5_accept_race() -> None:
    """Two concurrent accepts of one application: one wins, one is refused."""
    banner("SCENARIO 5: Concurrent Accept Race")

    requester = RequesterBot()
    translator = TranslatorBot()

    async with get_session() as session:
        engine = WorkflowEngine(session)
        request = await requester.publish(engine, "book-race", 30_000)
        application = await translator.apply(engine, request.id)

    async def accept() -> Any:
        async with get_session() as session:
            return await requester.accept(WorkflowEngine(session), application.id)

    section("Two accepts at once")
    results = await asyncio.gather(accept(), accept(), return_exceptions=True)
    for result in results:
        if isinstance(result, MarketplaceError):
            print_refusal(result)
        elif isinstance(result, BaseException):
            raise result
        else:
            print(f"  ✅ Won: contract {result.id} ({result.status})")


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_happy_path,
    2: scenario_2_out_of_order,
    3: scenario_3_outsider,
    4: scenario_4_cancellation,
    5: scenario_5_accept_race,
}


async def run_all(use_sqlite: bool = False) -> None:
    """Run all scenarios sequentially."""
    await init_database(use_sqlite=use_sqlite)

    try:
        print("\n" + "📚" * 35)
        print("  TRANSLATION MARKETPLACE SIMULATION")
        db_type = "SQLite (in-memory)" if use_sqlite else "PostgreSQL"
        print(f"  Database: {db_type}")
        print("📚" * 35 + "\n")

        for scenario in SCENARIOS.values():
            await scenario()

        print("\n" + "=" * 70)
        print("  ✅ ALL SCENARIOS COMPLETED SUCCESSFULLY")
        print("=" * 70 + "\n")

    finally:
        await shutdown_database()


async def run_scenario(num: int, use_sqlite: bool = False) -> None:
    """Run a specific scenario."""
    await init_database(use_sqlite=use_sqlite)

    try:
        if num not in SCENARIOS:
            print(f"Unknown scenario {num}. Available: {', '.join(map(str, SCENARIOS))}")
            return
        await SCENARIOS[num]()
    finally:
        await shutdown_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Translation Marketplace Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1-5). Default: run all.",
    )
    parser.add_argument(
        "--sqlite",
        action="store_true",
        help="Use SQLite in-memory instead of PostgreSQL (no Docker needed).",
    )
    args = parser.parse_args()

    if args.scenario == 0:
        asyncio.run(run_all(use_sqlite=args.sqlite))
    else:
        asyncio.run(run_scenario(args.scenario, use_sqlite=args.sqlite))
