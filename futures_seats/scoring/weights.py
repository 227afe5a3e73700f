from __future__ import annotations

from typing import Any, Callable, Iterable, TypeVar

T = TypeVar("T")


def weighted_sum(features: dict[str, float], weights: dict[str, float]) -> float:
    total = 0.0
    for key, weight in weights.items():
        value = features.get(key, 0.0)
        total += value * weight
    return total


def stable_sorted(
    items: Iterable[T],
    key: Callable[[T], Any],
    reverse: bool = False,
    tie_breaker: Callable[[T], Any] | None = None,
) -> list[T]:
    """Sort ``items`` by ``key`` keeping equal keys in input order.

    With ``tie_breaker`` the items are pre-ordered by it, so equal keys fall
    back to ascending tie-breaker order regardless of ``reverse``.
    """
    items_list = list(items)
    if tie_breaker is not None:
        items_list = sorted(items_list, key=tie_breaker)
    return sorted(items_list, key=key, reverse=reverse)
