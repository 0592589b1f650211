"""Delivery order construction.

The call order is the list of delivery indexes ``1..runs``, optionally
permuted with a Fisher-Yates shuffle driven by the seeded RNG. The same seed
and run count always produce the same order.

Examples:
    >>> build_call_order(5, shuffle=False)
    [1, 2, 3, 4, 5]
    >>> sorted(build_call_order(5, shuffle=True, rng=SeededRandom(42)))
    [1, 2, 3, 4, 5]
"""

from webhook_replay.rng import SeededRandom


def build_call_order(
    runs: int,
    shuffle: bool,
    rng: SeededRandom | None = None,
) -> list[int]:
    """Build the sequence of delivery indexes for a run.

    Args:
        runs: Number of deliveries (>= 1)
        shuffle: Permute the order using ``rng``
        rng: Generator to draw from; required when ``shuffle`` is True

    Returns:
        A permutation of ``1..runs`` (identity order when not shuffling)

    Raises:
        ValueError: If runs is less than 1, or shuffle is requested without an rng
    """
    if runs < 1:
        raise ValueError(f"runs must be >= 1, got {runs}")

    order = list(range(1, runs + 1))
    if not shuffle:
        return order

    if rng is None:
        raise ValueError("shuffle requires an rng")

    for i in range(len(order) - 1, 0, -1):
        j = rng.randint_below(i + 1)
        order[i], order[j] = order[j], order[i]

    return order
