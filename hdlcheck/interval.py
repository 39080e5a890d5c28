"""
hdlcheck/interval.py
════════════════════

Integer interval domain used by the bit-width inference.

    [lo, hi] ⊆ ℤ,   lo ≤ hi

Bounds are Python integers, so there is no overflow and no ±∞: a value
that keeps growing is caught by the convergence loop's iteration cap
rather than by widening to infinity.  Intervals are ordered by set
inclusion (``leq``) and joined by hull (``join``).

Transfer functions are the exact image of each operator over the
Cartesian product of its operand intervals:

    add      [a,b] + [c,d] = [a+c, b+d]
    sub      [a,b] - [c,d] = [a-d, b-c]
    mul      min/max of the four corner products
    div      truncating division over the divisor corners, zero excluded
    compare  [0, 1]
    mux      hull of the branch intervals

Examples
--------
>>> Interval(0, 3).add(Interval(0, 1))
Interval([0, 4])
>>> Interval.point(124).width()
BitWidth(bits=7, signed=False)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple


def _trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero (hardware semantics)."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


@dataclass(frozen=True)
class BitWidth:
    """Minimum storage for an interval: bit count and signedness."""
    bits: int
    signed: bool = False

    def __str__(self) -> str:
        return f"{'s' if self.signed else 'u'}{self.bits}"


@dataclass(frozen=True)
class Interval:
    """Closed inclusive integer range ``[lo, hi]``."""
    lo: int
    hi: int

    def __post_init__(self) -> None:
        if self.lo > self.hi:
            raise ValueError(f"empty interval [{self.lo}, {self.hi}]")

    # ---- Constructors ----------------------------------------------------

    @classmethod
    def point(cls, n: int) -> Interval:
        """Singleton interval [n, n]."""
        return cls(n, n)

    @classmethod
    def boolean(cls) -> Interval:
        return cls(0, 1)

    @classmethod
    def of_width(cls, bits: int, signed: bool = False) -> Interval:
        """Every value representable in *bits* bits."""
        if signed:
            half = 1 << (bits - 1)
            return cls(-half, half - 1)
        return cls(0, (1 << bits) - 1)

    @classmethod
    def hull(cls, intervals: Iterable[Interval]) -> Interval:
        items = list(intervals)
        if not items:
            raise ValueError("hull of no intervals")
        return cls(min(i.lo for i in items), max(i.hi for i in items))

    # ---- Predicates ------------------------------------------------------

    @property
    def is_point(self) -> bool:
        return self.lo == self.hi

    def contains(self, n: int) -> bool:
        return self.lo <= n <= self.hi

    def size(self) -> int:
        """Number of integers in the interval."""
        return self.hi - self.lo + 1

    # ---- Lattice operations ----------------------------------------------

    def leq(self, other: Interval) -> bool:
        """[a,b] ⊑ [c,d]  ⟺  c ≤ a  ∧  b ≤ d."""
        return other.lo <= self.lo and self.hi <= other.hi

    def join(self, other: Interval) -> Interval:
        """[a,b] ⊔ [c,d] = [min(a,c), max(b,d)]."""
        if self.leq(other):
            return other
        if other.leq(self):
            return self
        return Interval(min(self.lo, other.lo), max(self.hi, other.hi))

    def meet(self, other: Interval) -> Optional[Interval]:
        """[a,b] ⊓ [c,d], or ``None`` when disjoint."""
        lo = max(self.lo, other.lo)
        hi = min(self.hi, other.hi)
        if lo > hi:
            return None
        return Interval(lo, hi)

    def widen_with_thresholds(
        self, other: Interval, thresholds: Sequence[int]
    ) -> Interval:
        """
        Widening with thresholds: a bound that grows jumps to the nearest
        threshold beyond it instead of creeping one step per iteration.
        A bound beyond every threshold keeps the plain hull value, so
        an unbounded value still shows up as growth at the iteration cap.

        The threshold set should be sorted.
        """
        joined = self.join(other)
        lo, hi = joined.lo, joined.hi
        if other.lo < self.lo:
            below = [t for t in thresholds if t <= other.lo]
            if below:
                lo = below[-1]
        if other.hi > self.hi:
            above = [t for t in thresholds if t >= other.hi]
            if above:
                hi = above[0]
        return Interval(lo, hi)

    def wrap(self, lo: int, hi: int) -> Interval:
        """Model modular wraparound into the representable range [lo, hi].

        An interval that already fits is unchanged; one that overflows may
        land anywhere in the range.
        """
        if lo <= self.lo and self.hi <= hi:
            return self
        return Interval(lo, hi)

    # ---- Abstract arithmetic ---------------------------------------------

    def add(self, other: Interval) -> Interval:
        """[a,b] + [c,d] = [a+c, b+d]."""
        return Interval(self.lo + other.lo, self.hi + other.hi)

    def sub(self, other: Interval) -> Interval:
        """[a,b] - [c,d] = [a-d, b-c]."""
        return Interval(self.lo - other.hi, self.hi - other.lo)

    def mul(self, other: Interval) -> Interval:
        """[a,b] × [c,d] = [min(ac,ad,bc,bd), max(ac,ad,bc,bd)]."""
        products = [
            self.lo * other.lo, self.lo * other.hi,
            self.hi * other.lo, self.hi * other.hi,
        ]
        return Interval(min(products), max(products))

    def div(self, other: Interval) -> Interval:
        """
        Truncating division [a,b] / [c,d].

        The divisor is split around zero; truncation is monotone on each
        side, so the corners bound the quotient.  Division by zero is
        defined to produce 0, so a divisor containing 0 adds 0 to the result.
        """
        divisors: List[Tuple[int, int]] = []
        if other.lo < 0:
            divisors.append((other.lo, min(other.hi, -1)))
        if other.hi > 0:
            divisors.append((max(other.lo, 1), other.hi))
        quotients: List[int] = []
        for c, d in divisors:
            for a in (self.lo, self.hi):
                for b in (c, d):
                    quotients.append(_trunc_div(a, b))
        if other.contains(0):
            quotients.append(0)
        return Interval(min(quotients), max(quotients))

    def compare(self, other: Interval) -> Interval:
        """Any comparison yields a boolean."""
        return Interval.boolean()

    # ---- Width -----------------------------------------------------------

    def width(self) -> BitWidth:
        """
        Minimum bit width representing every integer in the interval.

        Unsigned when ``lo >= 0``: the bit length of ``hi`` (at least 1),
        i.e. ``ceil(log2(hi + 1))``.  Otherwise two's complement wide
        enough for both bounds.
        """
        if self.lo >= 0:
            return BitWidth(max(1, self.hi.bit_length()), signed=False)
        neg_bits = (-self.lo - 1).bit_length()
        pos_bits = self.hi.bit_length() if self.hi > 0 else 0
        return BitWidth(max(neg_bits, pos_bits) + 1, signed=True)

    def __str__(self) -> str:
        return f"[{self.lo}, {self.hi}]"

    def __repr__(self) -> str:
        return f"Interval([{self.lo}, {self.hi}])"
