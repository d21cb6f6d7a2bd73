"""Particle-hypothesis helpers used by the mass-hypothesis test.

The identification stage only discriminates charged hadrons; the ordered
tuple `MASS_HYPOTHESES` fixes the evaluation order pion, kaon, proton.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ParticleHypothesis:
    """Named particle hypothesis used to derive mass-dependent observables."""

    name: str
    mass: float
    pdg_id: int


_PION = ParticleHypothesis(name="pi", mass=0.13957, pdg_id=211)
_KAON = ParticleHypothesis(name="K", mass=0.49368, pdg_id=321)
_PROTON = ParticleHypothesis(name="p", mass=0.93827, pdg_id=2212)

MASS_HYPOTHESES: tuple[ParticleHypothesis, ...] = (_PION, _KAON, _PROTON)

_PDG_TO_HYPOTHESIS: dict[int, ParticleHypothesis] = {h.pdg_id: h for h in MASS_HYPOTHESES}


def make_pion() -> ParticleHypothesis:
    """Return the standard charged-pion mass hypothesis."""
    return _PION


def make_kaon() -> ParticleHypothesis:
    """Return the standard charged-kaon mass hypothesis."""
    return _KAON


def make_proton() -> ParticleHypothesis:
    """Return the proton mass hypothesis."""
    return _PROTON


def hypothesis_from_pdg(pdg_id: int) -> ParticleHypothesis | None:
    """Resolve a signed PDG code into a hypothesis, `None` if not a tested hadron."""
    return _PDG_TO_HYPOTHESIS.get(abs(pdg_id))


def is_identifiable_species(pdg_id: int) -> bool:
    """Return True for charged pions, kaons and protons of either sign."""
    return hypothesis_from_pdg(pdg_id) is not None
