"""morphoscan.sweep.odometer

Mixed-radix odometer over range levels.

Digit ``i`` runs over ``0 .. radices[i]-1``. In linear mode a digit may also
be ``-1`` ("base": the range is not varied for this job).

Combinatorial: digit 0 turns fastest; on overflow it resets and carries into
the next digit. Emits the full Cartesian product.

Linear: exactly one digit is active at a time. It counts up through its
range, then hands over to the next digit and drops back to base. Emits the
sum of the radices; the all-base vector is never emitted.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from morphoscan.core.types import BASE_DIGIT, SweepMode

Digits = tuple[int, ...]


def advance_combinatorial(digits: Digits, radices: Sequence[int]) -> Digits:
    d = list(digits)
    for i, k in enumerate(radices):
        if d[i] < k - 1:
            d[i] += 1
            for j in range(i):
                d[j] = 0
            break
    return tuple(d)


def advance_linear(digits: Digits, radices: Sequence[int]) -> Digits:
    d = list(digits)
    last = len(d) - 1
    for i, k in enumerate(radices):
        if d[i] == k - 1 and i < last:
            d[i] = BASE_DIGIT
            d[i + 1] = 0
            break
        if d[i] > BASE_DIGIT:
            d[i] += 1
            break
    return tuple(d)


@dataclass(frozen=True, slots=True)
class Odometer:
    radices: tuple[int, ...]
    mode: SweepMode = SweepMode.COMBINATORIAL

    def __post_init__(self) -> None:
        if any(k < 1 for k in self.radices):
            raise ValueError(f"radices must be >= 1, got {self.radices}")

    def count(self) -> int:
        if not self.radices:
            return 0
        if self.mode == SweepMode.COMBINATORIAL:
            return math.prod(self.radices)
        return sum(self.radices)

    def initial(self) -> Digits:
        if self.mode == SweepMode.COMBINATORIAL:
            return tuple(0 for _ in self.radices)
        return tuple(0 if i == 0 else BASE_DIGIT for i in range(len(self.radices)))

    def advance(self, digits: Digits) -> Digits:
        """Pure: return the vector following ``digits``."""

        if self.mode == SweepMode.COMBINATORIAL:
            return advance_combinatorial(digits, self.radices)
        return advance_linear(digits, self.radices)

    def __iter__(self) -> Iterator[Digits]:
        n = self.count()
        if n == 0:
            return
        digits = self.initial()
        for done in range(n):
            yield digits
            if done < n - 1:
                digits = self.advance(digits)
