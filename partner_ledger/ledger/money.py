"""
Money helpers.

All amounts are Decimal and every stored share is a whole number of cents,
so the shares of a cost always add up to the cost and a balance can return
to exactly zero once everything is settled.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Hashable, Iterable, Optional, Sequence, TypeVar, Union

K = TypeVar("K", bound=Hashable)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert without inheriting float representation noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value: Number) -> Decimal:
    """Round half-up to the cent."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def split_evenly(
    value: Number,
    keys: Sequence[K],
    first_in_line: Optional[K] = None,
) -> list[tuple[K, Decimal]]:
    """
    Split value into len(keys) equal shares, rounded down to the cent.

    Leftover cents are handed out one each, starting with first_in_line
    (when it is one of the keys) and then in the order of keys.
    The returned shares are in the order of keys and sum to value exactly.
    """
    if not keys:
        raise ValueError("Cannot split a value between zero partners")

    total = to_money(value)
    count = len(keys)
    base = (total / count).quantize(CENT, rounding=ROUND_DOWN)
    leftover = int((total - base * count) / CENT)

    order = list(keys)
    if first_in_line is not None and first_in_line in order:
        order.remove(first_in_line)
        order.insert(0, first_in_line)
    bumped = set(order[:leftover])

    return [(key, base + CENT if key in bumped else base) for key in keys]


def allocate_proportionally(
    value: Number,
    weights: Iterable[tuple[K, Number]],
    scale: Decimal = HUNDRED,
) -> list[tuple[K, Decimal]]:
    """
    Allocate value * weight / scale to each key, in whole cents.

    The allocated total is sum(value * weight / scale) rounded half-up to
    the cent; cents lost by rounding each share down go to the shares with
    the largest remainders (ties broken by input order).
    """
    amount = to_decimal(value)
    exact = [(key, amount * to_decimal(weight) / scale) for key, weight in weights]
    floors = [share.quantize(CENT, rounding=ROUND_DOWN) for _, share in exact]

    target = to_money(sum((share for _, share in exact), ZERO))
    leftover = int((target - sum(floors, ZERO)) / CENT)

    ranked = sorted(
        range(len(exact)),
        key=lambda i: exact[i][1] - floors[i],
        reverse=True,
    )
    bumped = set(ranked[:leftover])

    return [
        (key, floors[i] + CENT if i in bumped else floors[i])
        for i, (key, _) in enumerate(exact)
    ]
