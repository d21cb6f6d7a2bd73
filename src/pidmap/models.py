"""Core data models used by the identification map.

This module defines:
- immutable kinematic objects (`LorentzVector`)
- the mutable per-track record (`Candidate`) annotated by the PID stage
- event containers (`EventInput`, `EventOutput`)
- probability-table entries (`TableEntry`) and batch bookkeeping (`ProcessSummary`).
"""

from __future__ import annotations
__author__ = "Renato Quagliani <rquaglia@cern.ch>"


import math
from dataclasses import dataclass, field, replace
from typing import Callable

# Formula signature shared by every configured probability expression.
Formula = Callable[[float, float, float, float], float]


@dataclass(frozen=True)
class LorentzVector:
    """Simple 4-vector with kinematic convenience properties."""

    px: float
    py: float
    pz: float
    e: float

    @property
    def p2(self) -> float:
        """Squared 3-momentum magnitude."""
        return self.px * self.px + self.py * self.py + self.pz * self.pz

    @property
    def p(self) -> float:
        """3-momentum magnitude."""
        return math.sqrt(self.p2)

    @property
    def pt(self) -> float:
        """Transverse component."""
        return math.sqrt(self.px * self.px + self.py * self.py)

    @property
    def eta(self) -> float:
        """Pseudorapidity of the spatial part.

        Vectors along the beam axis return `+-1e9`, the null vector returns 0.
        """
        p = self.p
        if p == abs(self.pz):
            if self.pz == 0.0:
                return 0.0
            return 1e9 if self.pz > 0 else -1e9
        return 0.5 * math.log((p + self.pz) / (p - self.pz))

    @property
    def phi(self) -> float:
        """Azimuthal angle in `(-pi, pi]`."""
        if self.px == 0.0 and self.py == 0.0:
            return 0.0
        return math.atan2(self.py, self.px)

    @property
    def cos_theta(self) -> float:
        """Polar-angle cosine, 1.0 for the null vector."""
        p = self.p
        return 1.0 if p == 0.0 else self.pz / p


@dataclass
class Candidate:
    """One simulated track with detector measurements and PID diagnostics.

    `momentum` and `position` are the detector-level candidate (used for
    `pt`, `energy`, `eta` and `phi`), `truth_momentum` is the originating
    generator particle (used for `|p|` and `cos(theta)` in the hypothesis test).
    `path_length` is in mm, `drift_length` in m and `tof` in s.
    """

    candidate_id: str
    pid: int
    charge: int
    momentum: LorentzVector
    position: LorentzVector
    truth_momentum: LorentzVector
    n_clusters: float = 0.0
    tof: float = 0.0
    path_length: float = 0.0
    drift_length: float = 0.0
    chi_pi: float = 0.0
    chi_k: float = 0.0
    prob_pi: float = 0.0
    prob_k: float = 0.0
    prob_p: float = 0.0
    pid_meas: int = 0

    def clone(self) -> "Candidate":
        """Return an independent copy (vectors are immutable and shared)."""
        return replace(self)

    @property
    def formula_arguments(self) -> tuple[float, float, float, float]:
        """Return `(pt, eta, phi, energy)` as seen by probability formulas."""
        return (
            self.momentum.pt,
            self.position.eta,
            self.position.phi,
            self.momentum.e,
        )


@dataclass(frozen=True)
class EventInput:
    """One event payload with its own candidate list."""

    event_id: str
    candidates: tuple[Candidate, ...]


@dataclass(frozen=True)
class EventOutput:
    """Retained candidates of one event after relabeling."""

    event_id: str
    candidates: tuple[Candidate, ...]
    summary: "ProcessSummary"


@dataclass(frozen=True)
class TableEntry:
    """One `(output code, probability formula)` pair of a relabeling bucket."""

    pdg_out: int
    formula: Formula
    expression: str = ""

    def probability(self, candidate: Candidate) -> float:
        """Evaluate the entry formula on the candidate kinematics."""
        return float(self.formula(*candidate.formula_arguments))


@dataclass
class ProcessSummary:
    """Counters collected while processing one batch of candidates."""

    n_input: int = 0
    n_retained: int = 0
    n_dropped: int = 0
    n_relabeled: int = 0
    n_identified: int = 0
    relabel_counts: dict[tuple[int, int], int] = field(default_factory=dict)

    def merge(self, other: "ProcessSummary") -> "ProcessSummary":
        """Return the sum of two summaries."""
        counts = dict(self.relabel_counts)
        for key, value in other.relabel_counts.items():
            counts[key] = counts.get(key, 0) + value
        return ProcessSummary(
            n_input=self.n_input + other.n_input,
            n_retained=self.n_retained + other.n_retained,
            n_dropped=self.n_dropped + other.n_dropped,
            n_relabeled=self.n_relabeled + other.n_relabeled,
            n_identified=self.n_identified + other.n_identified,
            relabel_counts=counts,
        )
