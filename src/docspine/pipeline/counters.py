"""Per-run stage counters."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping


class Counters(Mapping[str, int]):
    """
    Running item counts keyed by stage label, in chain order.

    Labels are fixed at construction (``in``, each collection, ``out``);
    incrementing an unknown label is a programming error and raises
    ``KeyError``.
    """

    def __init__(self, labels: Iterable[str]):
        self._counts: dict[str, int] = dict.fromkeys(labels, 0)

    def increment(self, label: str, amount: int) -> None:
        if label not in self._counts:
            raise KeyError(label)
        self._counts[label] += amount

    def reset(self) -> None:
        for label in self._counts:
            self._counts[label] = 0

    def snapshot(self) -> dict[str, int]:
        """Plain-dict copy, safe to keep after the run moves on."""
        return dict(self._counts)

    def __getitem__(self, label: str) -> int:
        return self._counts[label]

    def __iter__(self) -> Iterator[str]:
        return iter(self._counts)

    def __len__(self) -> int:
        return len(self._counts)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v}" for k, v in self._counts.items())
        return f"Counters({inner})"


__all__ = ["Counters"]
