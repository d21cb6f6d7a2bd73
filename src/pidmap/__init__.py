"""Public package exports for the parametrised particle-identification map."""
__author__ = "Renato Quagliani <rquaglia@cern.ch>"


from .clusters import cluster_yield, sample_cluster_efficiency
from .formula import FormulaError, compile_formula
from .identification import NOT_IDENTIFIED, IdentificationMap
from .models import (
    Candidate,
    EventInput,
    EventOutput,
    LorentzVector,
    ProcessSummary,
    TableEntry,
)
from .pid import (
    MASS_HYPOTHESES,
    ParticleHypothesis,
    make_kaon,
    make_pion,
    make_proton,
)
from .table import ProbabilityTable

__all__ = [
    "IdentificationMap",
    "ProbabilityTable",
    "TableEntry",
    "Candidate",
    "EventInput",
    "EventOutput",
    "LorentzVector",
    "ProcessSummary",
    "ParticleHypothesis",
    "MASS_HYPOTHESES",
    "NOT_IDENTIFIED",
    "make_pion",
    "make_kaon",
    "make_proton",
    "cluster_yield",
    "sample_cluster_efficiency",
    "compile_formula",
    "FormulaError",
]
