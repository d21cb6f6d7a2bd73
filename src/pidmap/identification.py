"""Mass-hypothesis PID test and probability-driven relabeling of candidates."""

from __future__ import annotations
__author__ = "Renato Quagliani <rquaglia@cern.ch>"


import logging
import math
from dataclasses import dataclass, field
from random import Random
from typing import Sequence

from .clusters import GAS_HE_ISOBUTANE, ClusterYieldModel, cluster_yield, sample_cluster_efficiency
from .models import Candidate, EventInput, EventOutput, ProcessSummary
from .physics import (
    C_LIGHT_M_PER_S,
    MM_TO_M,
    TOF_SIGMA_S,
    boost_factor,
    chi2_probability,
    expected_time_of_flight,
    measurement_chi2,
    select_dominant,
)
from .pid import MASS_HYPOTHESES, is_identifiable_species
from .table import ProbabilityTable

logger = logging.getLogger(__name__)

NOT_IDENTIFIED = -1


@dataclass
class IdentificationMap:
    """Annotate candidates with PID diagnostics and relabel them from a table.

    `rng` is the only random source: the relabeling draw and the
    cluster-counting efficiency draws all come from it, so a seeded
    `Random` makes a whole batch reproducible.

    `gas_option` selects the gas mixture of the expected cluster count; the
    efficiency parametrisation always uses the He/iC4H10 yield.
    """

    table: ProbabilityTable
    rng: Random = field(default_factory=Random)
    cluster_model: ClusterYieldModel = cluster_yield
    gas_option: int = GAS_HE_ISOBUTANE
    tof_sigma: float = TOF_SIGMA_S
    ndf: int = 2
    speed_of_light: float = C_LIGHT_M_PER_S

    def is_eligible(self, candidate: Candidate) -> bool:
        """Return True when the hypothesis test applies to `candidate`."""
        if not is_identifiable_species(candidate.pid):
            return False
        if candidate.n_clusters == 0:
            return False
        if candidate.path_length <= 0.0 or candidate.drift_length <= 0.0:
            return False
        return abs(candidate.truth_momentum.cos_theta) < 1.0

    def evaluate(self, candidate: Candidate) -> None:
        """Fill `chi_pi`, `chi_k`, `prob_*` and `pid_meas` on `candidate`.

        Hypotheses are evaluated in the order pion, kaon, proton. A
        non-positive expected cluster count stops the loop: the remaining
        hypotheses keep probability 0 and the diagnostics of hypotheses that
        were not reached keep their previous values. When no hypothesis has a
        strictly larger probability than the other two, `pid_meas` is left
        unchanged.
        """
        if not self.is_eligible(candidate):
            candidate.pid_meas = NOT_IDENTIFIED
            return

        p_meas = candidate.truth_momentum.p
        cos_theta = candidate.truth_momentum.cos_theta
        l_tof = candidate.path_length * MM_TO_M
        l_dc = candidate.drift_length
        probs = [0.0] * len(MASS_HYPOTHESES)

        for i, hypothesis in enumerate(MASS_HYPOTHESES):
            bg = boost_factor(p_meas, hypothesis.mass)
            eff = sample_cluster_efficiency(bg, cos_theta, self.rng, self.cluster_model)
            dndx_exp = self.cluster_model(bg, self.gas_option) * l_dc * eff
            if dndx_exp <= 0.0:
                logger.debug(
                    "Candidate %s: no cluster expectation under %s hypothesis (bg=%.4g), stopping.",
                    candidate.candidate_id,
                    hypothesis.name,
                    bg,
                )
                break
            tof_exp = expected_time_of_flight(l_tof, p_meas, hypothesis.mass, self.speed_of_light)
            variance = dndx_exp * eff
            if variance <= 0.0:
                # non-positive efficiency draw: the hypothesis cannot be scored
                chi2 = math.inf
            else:
                chi2 = measurement_chi2(
                    candidate.n_clusters,
                    dndx_exp,
                    math.sqrt(variance),
                    candidate.tof,
                    tof_exp,
                    self.tof_sigma,
                )
            if hypothesis.pdg_id == 211:
                candidate.chi_pi = chi2
            elif hypothesis.pdg_id == 321:
                candidate.chi_k = chi2
            probs[i] = chi2_probability(chi2, self.ndf)

        total = sum(probs)
        if total == 0.0:
            candidate.pid_meas = NOT_IDENTIFIED
            return
        candidate.prob_pi = probs[0] / total
        candidate.prob_k = probs[1] / total
        candidate.prob_p = probs[2] / total

        best = select_dominant(probs)
        if best is not None:
            candidate.pid_meas = candidate.charge * MASS_HYPOTHESES[best].pdg_id

    def relabel(self, candidate: Candidate, r: float) -> Candidate | None:
        """Resolve `candidate` against its bucket for a given uniform draw `r`.

        Returns a relabeled clone, or `None` when `r` falls beyond the total
        probability mass of the bucket.
        """
        total = 0.0
        for entry in self.table.lookup(candidate.pid):
            p = entry.probability(candidate)
            if total <= r < total + p:
                out = candidate.clone()
                if entry.pdg_out != 0:
                    out.pid = candidate.charge * entry.pdg_out
                return out
            total += p
        return None

    def resample(self, candidate: Candidate) -> Candidate | None:
        """Draw one uniform number from `rng` and relabel `candidate` with it."""
        return self.relabel(candidate, self.rng.random())

    def process(
        self,
        candidates: Sequence[Candidate],
        summary: ProcessSummary | None = None,
    ) -> list[Candidate]:
        """Run the PID test and relabeling over a batch, in input order.

        Inputs are left untouched; diagnostics are written on the emitted
        clones. Per candidate the relabeling draw is taken before the
        efficiency draws of the hypothesis test.
        """
        summary = summary if summary is not None else ProcessSummary()
        out: list[Candidate] = []
        for candidate in candidates:
            summary.n_input += 1
            r = self.rng.random()
            working = candidate.clone()
            self.evaluate(working)
            if working.pid_meas not in (NOT_IDENTIFIED, 0):
                summary.n_identified += 1
            emitted = self.relabel(working, r)
            if emitted is None:
                summary.n_dropped += 1
                logger.debug("Candidate %s (pid=%d) dropped.", candidate.candidate_id, candidate.pid)
                continue
            summary.n_retained += 1
            if emitted.pid != candidate.pid:
                summary.n_relabeled += 1
                key = (candidate.pid, emitted.pid)
                summary.relabel_counts[key] = summary.relabel_counts.get(key, 0) + 1
            out.append(emitted)
        return out

    def process_events(self, events: Sequence[EventInput]) -> list[EventOutput]:
        """Run `process` on a list of events and keep per-event outputs."""
        outputs: list[EventOutput] = []
        total = ProcessSummary()
        for event in events:
            summary = ProcessSummary()
            retained = self.process(event.candidates, summary)
            outputs.append(
                EventOutput(event_id=event.event_id, candidates=tuple(retained), summary=summary)
            )
            total = total.merge(summary)
        logger.info(
            "Processed %d events: %d candidates in, %d retained, %d dropped, %d relabeled, %d identified.",
            len(events),
            total.n_input,
            total.n_retained,
            total.n_dropped,
            total.n_relabeled,
            total.n_identified,
        )
        return outputs
