"""
Envelope Module Invariants - validation gates for mutators and shuffles

Pure functions that raise ValidationError or ShuffleInsufficientError and
never touch state. Handlers call them before copying and mutating state, so
a rejected operation has nothing to roll back.
"""

from decimal import Decimal

from budget_enforcer.envelopes.models import Envelope, ShuffleAllocation, ShuffleLimit
from budget_enforcer.kernel.errors import ShuffleInsufficientError, ValidationError

EDITABLE_ENVELOPE_FIELDS = {
    "name",
    "allocation",
    "spent",
    "period_length",
    "start_date",
    "previous_remaining",
}


def validate_editable_fields(changes: dict) -> None:
    """
    Raises:
        ValidationError: If a change targets a field callers may not edit
    """
    unknown = set(changes) - EDITABLE_ENVELOPE_FIELDS
    if unknown:
        raise ValidationError(sorted(unknown)[0], "field cannot be updated")


def validate_shuffle_limit_amount(max_amount: Decimal) -> None:
    if max_amount < 0:
        raise ValidationError("max_amount", "must be zero or more")


def aggregate_allocations(allocations: list[ShuffleAllocation]) -> dict[str, Decimal]:
    """Sum allocations per source envelope, keeping first-seen order"""
    totals: dict[str, Decimal] = {}
    for allocation in allocations:
        totals[allocation.envelope_id] = (
            totals.get(allocation.envelope_id, Decimal("0")) + allocation.amount
        )
    return totals


def validate_shuffle_sources(
    envelopes: list[Envelope],
    target_envelope_id: str,
    allocations: list[ShuffleAllocation],
) -> dict[str, Decimal]:
    """
    Check every source can give what is asked of it

    Each amount must be between 0 and the source's remaining allocation,
    and the target cannot fund itself.

    Returns:
        Per-envelope totals

    Raises:
        ValidationError: On an unknown source, self-shuffle, or over-draw
    """
    by_id = {env.id: env for env in envelopes}
    totals = aggregate_allocations(allocations)

    for envelope_id, amount in totals.items():
        if amount == 0:
            continue
        if envelope_id == target_envelope_id:
            raise ValidationError(
                "allocations", "target envelope cannot fund its own shuffle"
            )
        source = by_id.get(envelope_id)
        if source is None:
            raise ValidationError("allocations", f"unknown envelope {envelope_id}")
        if amount > source.remaining():
            raise ValidationError(
                "allocations",
                f"{source.name} has {source.remaining()} remaining, {amount} requested",
            )

    return totals


def validate_shuffle_covers(
    target_envelope_id: str,
    amount_needed: Decimal,
    allocations: list[ShuffleAllocation],
) -> Decimal:
    """
    Returns:
        Total allocated

    Raises:
        ShuffleInsufficientError: If allocations fall short of amount_needed
    """
    total = sum((a.amount for a in allocations), Decimal("0"))
    if total < amount_needed:
        raise ShuffleInsufficientError(
            target_envelope_id=target_envelope_id,
            amount_needed=amount_needed,
            amount_allocated=total,
        )
    return total


def find_limit_breaches(
    limits: list[ShuffleLimit], totals: dict[str, Decimal]
) -> list[ShuffleLimit]:
    """Limits that the proposed per-envelope totals would push past max_amount"""
    return [
        limit
        for limit in limits
        if limit.envelope_id in totals and limit.would_exceed(totals[limit.envelope_id])
    ]
