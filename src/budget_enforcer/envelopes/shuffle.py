"""
Shuffle Allocator - cover a purchase shortfall from other envelopes

Planning functions are pure and only propose ShuffleAllocations. Nothing
moves until ShuffleHandlers.apply_shuffle validates the proposal and commits
it in a single state copy.

Strategies:
- manual: caller picks the amounts
- reduce-from-all: every candidate gives in proportion to what it has left
- recommended: envelopes carrying last period's savings first, then the
  fullest envelopes, until the shortfall is covered
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, ROUND_UP, Decimal

from budget_enforcer.envelopes.invariants import (
    aggregate_allocations,
    find_limit_breaches,
    validate_shuffle_covers,
    validate_shuffle_sources,
)
from budget_enforcer.envelopes.models import (
    Envelope,
    Purchase,
    ShuffleAllocation,
    ShuffleLimit,
    ShuffleStrategy,
    ShuffleTransaction,
    StatusResult,
)
from budget_enforcer.envelopes.status import calculate_status
from budget_enforcer.kernel.errors import ShuffleInsufficientError, ValidationError
from budget_enforcer.kernel.ids import IdFactory, default_id_factory
from budget_enforcer.kernel.logging import get_logger
from budget_enforcer.kernel.metrics import (
    shuffle_amount,
    shuffles_applied_total,
    shuffles_rejected_total,
)
from budget_enforcer.kernel.policy import BudgetPolicy
from budget_enforcer.kernel.time import TimeProvider
from budget_enforcer.kernel.validation import build_validated
from budget_enforcer.state import BudgetEngineState, SessionSlot, SessionState

logger = get_logger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")


def round_cents(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def _capacity(envelope: Envelope) -> Decimal:
    """Whole cents an envelope can give without going below zero"""
    return envelope.remaining().quantize(CENT, rounding=ROUND_DOWN)


def amount_needed(target: Envelope, purchase_amount: Decimal) -> Decimal:
    """Shortfall of the purchase against the target's remaining allocation"""
    return max(ZERO, Decimal(purchase_amount) - target.remaining())


def shuffle_candidates(envelopes: list[Envelope], target_envelope_id: str) -> list[Envelope]:
    """Envelopes other than the target that still have money left"""
    return [
        env
        for env in envelopes
        if env.id != target_envelope_id and env.remaining() > 0
    ]


def plan_manual(
    candidates: list[Envelope], amounts: dict[str, Decimal]
) -> list[ShuffleAllocation]:
    """
    Allocations from caller-chosen amounts, in candidate order

    Amounts are rounded to cents; those that round to zero are dropped.

    Raises:
        ValidationError: Amount for a non-candidate, negative, or more than
            the envelope has left
    """
    by_id = {env.id: env for env in candidates}
    unknown = [eid for eid in amounts if eid not in by_id]
    if unknown:
        raise ValidationError("manual_amounts", f"{unknown[0]} cannot fund this shuffle")

    allocations = []
    for env in candidates:
        if env.id not in amounts:
            continue
        allocation = build_validated(
            ShuffleAllocation,
            {"envelope_id": env.id, "amount": round_cents(amounts[env.id])},
        )
        if allocation.amount > _capacity(env):
            raise ValidationError(
                "manual_amounts", f"{env.id} has only {_capacity(env)} left"
            )
        if allocation.amount > 0:
            allocations.append(allocation)
    return allocations


def plan_reduce_from_all(
    candidates: list[Envelope], needed: Decimal
) -> list[ShuffleAllocation]:
    """
    Take from every candidate in proportion to its remaining balance

    Each share is min(remaining, needed * remaining / total_remaining),
    rounded to cents. Rounding leftovers are settled so the shares add up
    to exactly min(needed, total available).
    """
    capacities = {env.id: _capacity(env) for env in candidates}
    total_remaining = sum(capacities.values(), ZERO)
    needed = Decimal(needed).quantize(CENT, rounding=ROUND_UP)
    if needed <= 0 or total_remaining <= 0:
        return []

    goal = min(needed, total_remaining)
    shares = {
        eid: min(cap, round_cents(needed * cap / total_remaining))
        for eid, cap in capacities.items()
    }

    residual = goal - sum(shares.values(), ZERO)
    if residual > 0:
        by_spare = sorted(shares, key=lambda eid: capacities[eid] - shares[eid], reverse=True)
        for eid in by_spare:
            if residual <= 0:
                break
            extra = min(capacities[eid] - shares[eid], residual)
            shares[eid] += extra
            residual -= extra
    elif residual < 0:
        by_size = sorted(shares, key=lambda eid: shares[eid], reverse=True)
        for eid in by_size:
            if residual >= 0:
                break
            cut = min(shares[eid], -residual)
            shares[eid] -= cut
            residual += cut

    return [
        ShuffleAllocation(envelope_id=eid, amount=amount)
        for eid, amount in shares.items()
        if amount > 0
    ]


def plan_recommended(
    candidates: list[Envelope], needed: Decimal
) -> list[ShuffleAllocation]:
    """Greedy: carried-over envelopes first, then by remaining, largest first"""
    still_needed = Decimal(needed).quantize(CENT, rounding=ROUND_UP)
    ordered = sorted(
        candidates,
        key=lambda env: (env.previous_remaining <= 0, -env.remaining()),
    )

    allocations = []
    for env in ordered:
        if still_needed <= 0:
            break
        take = min(_capacity(env), still_needed)
        if take > 0:
            allocations.append(ShuffleAllocation(envelope_id=env.id, amount=take))
            still_needed -= take
    return allocations


def plan_shuffle(
    envelopes: list[Envelope],
    target_envelope_id: str,
    purchase_amount: Decimal,
    strategy: ShuffleStrategy,
    manual_amounts: dict[str, Decimal] | None = None,
) -> list[ShuffleAllocation]:
    """
    Propose allocations covering the purchase's shortfall

    Returns an empty list when the target is unknown or nothing is needed.
    A plan may fall short when candidates run out; apply_shuffle rejects it.

    Raises:
        ValidationError: Invalid manual amounts
    """
    target = next((env for env in envelopes if env.id == target_envelope_id), None)
    if target is None:
        logger.warning("Shuffle target not found", envelope_id=target_envelope_id)
        return []

    candidates = shuffle_candidates(envelopes, target_envelope_id)
    needed = amount_needed(target, purchase_amount)

    if strategy == ShuffleStrategy.MANUAL:
        allocations = plan_manual(candidates, manual_amounts or {})
    elif needed <= 0:
        allocations = []
    elif strategy == ShuffleStrategy.REDUCE_FROM_ALL:
        allocations = plan_reduce_from_all(candidates, needed)
    else:
        allocations = plan_recommended(candidates, needed)

    logger.debug(
        "Shuffle planned",
        envelope_id=target_envelope_id,
        strategy=strategy.value,
        sources=len(allocations),
    )
    return allocations


def shuffle_limit_warnings(
    limits: list[ShuffleLimit], allocations: list[ShuffleAllocation]
) -> list[ShuffleLimit]:
    """Limits the proposed allocations would take past their max_amount"""
    return find_limit_breaches(limits, aggregate_allocations(allocations))


class ShuffleHandlers:
    """Commits shuffles against engine state"""

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: BudgetPolicy,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        self.time_provider = time_provider
        self.policy = policy
        self.id_factory = id_factory

    def apply_shuffle(
        self,
        state: BudgetEngineState,
        target_envelope_id: str,
        purchase: Purchase,
        allocations: list[ShuffleAllocation],
        strategy: ShuffleStrategy | None = None,
    ) -> tuple[BudgetEngineState, StatusResult | None]:
        """
        Move allocation into the target and commit the purchase against it

        The target's allocation grows by exactly the shortfall (not by the
        allocated total), its spend by the purchase amount. Sources lose
        allocation, never spend. Purchase, shuffle record, period log,
        limit tracking and session reset land in one new state.

        Returns:
            (new_state, committed status of the target). An unknown target
            returns the given state and None.

        Raises:
            ValidationError: Purchase for another envelope, bad sources, or
                a limit breach while limits are enforced
            ShuffleInsufficientError: Allocations fall short of the shortfall
        """
        target = state.get_envelope(target_envelope_id)
        if target is None:
            logger.warning("Shuffle target not found", envelope_id=target_envelope_id)
            return state, None

        if purchase.envelope_id != target_envelope_id:
            raise ValidationError("purchase", "belongs to a different envelope")

        needed = amount_needed(target, purchase.amount)
        totals = validate_shuffle_sources(state.envelopes, target_envelope_id, allocations)
        try:
            total = validate_shuffle_covers(target_envelope_id, needed, allocations)
        except ShuffleInsufficientError:
            shuffles_rejected_total.inc()
            raise

        breaches = find_limit_breaches(state.shuffle_limits, totals)
        if breaches:
            if self.policy.enforce_shuffle_limits:
                raise ValidationError(
                    "allocations",
                    f"shuffle limit exceeded for {breaches[0].envelope_id}",
                )
            logger.warning(
                "Shuffle exceeds advisory limit",
                envelope_ids=[limit.envelope_id for limit in breaches],
            )

        new_state = state.model_copy(deep=True)
        new_target = new_state.get_envelope(target_envelope_id)
        new_target.allocation += needed
        new_target.spent += purchase.amount

        for envelope_id, amount in totals.items():
            if amount <= 0:
                continue
            new_state.get_envelope(envelope_id).allocation -= amount
            limit = new_state.get_shuffle_limit(envelope_id)
            if limit is not None:
                limit.current_shuffled += amount

        transaction = ShuffleTransaction(
            id=self.id_factory.generate("shuffle"),
            target_envelope_id=target_envelope_id,
            purchase_id=purchase.id,
            allocations=[a for a in allocations if a.amount > 0],
            strategy=strategy,
            date=self.time_provider.now(),
        )
        new_state.purchases.append(purchase)
        new_state.shuffle_transactions.append(transaction)

        period = new_state.current_period
        if period is not None:
            period.transactions.append(purchase)
            period.transactions.append(transaction)
        new_state.sync_current_period()

        status = calculate_status(new_target, self.time_provider.now(), policy=self.policy)
        new_state.session = SessionSlot(
            state=SessionState.IDLE,
            current_envelope_id=target_envelope_id,
            status_result=status,
        )

        shuffles_applied_total.labels(
            strategy=strategy.value if strategy else "unspecified"
        ).inc()
        shuffle_amount.observe(float(total))
        logger.info(
            "Shuffle applied",
            envelope_id=target_envelope_id,
            shuffle_id=transaction.id,
            purchase_id=purchase.id,
            sources=len(transaction.allocations),
        )
        return new_state, status
