"""Relabeling probability table keyed by the true PDG code.

Each input code owns an ordered bucket of `TableEntry` objects. Code 0 is the
fallback bucket used when neither the exact code nor its charge conjugate
has entries.
"""

from __future__ import annotations
__author__ = "Renato Quagliani <rquaglia@cern.ch>"


import logging
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Sequence

from .formula import compile_formula
from .models import Formula, TableEntry

logger = logging.getLogger(__name__)

FALLBACK_CODE = 0
DEFAULT_FALLBACK_EXPRESSION = "1.0"

FormulaCompiler = Callable[[str], Formula]


class ProbabilityTable:
    """Read-only multi-map `pdg_in -> (TableEntry, ...)`."""

    def __init__(self, buckets: Mapping[int, Sequence[TableEntry]]) -> None:
        self._buckets: Mapping[int, tuple[TableEntry, ...]] = MappingProxyType(
            {int(code): tuple(entries) for code, entries in buckets.items()}
        )

    @classmethod
    def from_triples(
        cls,
        triples: Iterable[tuple[int, int, str]],
        compiler: FormulaCompiler = compile_formula,
    ) -> "ProbabilityTable":
        """Group `(pdg_in, pdg_out, expression)` triples into buckets.

        Triple order is preserved inside each bucket. Every expression is
        compiled up front so malformed formulas fail before any candidate
        is processed. A missing fallback bucket is installed as
        `(0 -> "1.0")`.
        """
        buckets: dict[int, list[TableEntry]] = {}
        for pdg_in, pdg_out, expression in triples:
            entry = TableEntry(
                pdg_out=int(pdg_out),
                formula=compiler(expression),
                expression=expression,
            )
            buckets.setdefault(int(pdg_in), []).append(entry)
        if FALLBACK_CODE not in buckets:
            logger.warning(
                "No fallback bucket configured; installing (0 -> %r).",
                DEFAULT_FALLBACK_EXPRESSION,
            )
            buckets[FALLBACK_CODE] = [
                TableEntry(
                    pdg_out=0,
                    formula=compiler(DEFAULT_FALLBACK_EXPRESSION),
                    expression=DEFAULT_FALLBACK_EXPRESSION,
                )
            ]
        logger.debug("Built probability table with %d buckets.", len(buckets))
        return cls(buckets)

    def lookup(self, pdg: int) -> tuple[TableEntry, ...]:
        """Return the bucket for `pdg`, its conjugate, or the fallback bucket."""
        for code in (pdg, -pdg, FALLBACK_CODE):
            entries = self._buckets.get(code)
            if entries:
                return entries
        return ()

    def codes(self) -> tuple[int, ...]:
        """Return the configured input codes in ascending order."""
        return tuple(sorted(self._buckets))

    def __contains__(self, pdg: object) -> bool:
        return pdg in self._buckets

    def __len__(self) -> int:
        return len(self._buckets)

    def __getitem__(self, pdg: int) -> tuple[TableEntry, ...]:
        return self._buckets[pdg]
