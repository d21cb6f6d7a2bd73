"""Unit tests for the dN/dx + time-of-flight mass-hypothesis test."""

from __future__ import annotations

import math
import unittest
from random import Random
from unittest import mock

from pidmap import Candidate, IdentificationMap, LorentzVector, NOT_IDENTIFIED, ProbabilityTable
from pidmap.clusters import GAS_AR, GAS_HE_ISOBUTANE, efficiency_central_value
from pidmap.physics import C_LIGHT_M_PER_S
from pidmap.pid import MASS_HYPOTHESES

_P = 1.0
_PATH_MM = 2000.0
_DRIFT_M = 1.0
_YIELD = 1000.0


class _GaussAtMean:
    """Random stand-in returning the Gaussian mean and counting draws."""

    def __init__(self) -> None:
        self.n_gauss = 0
        self.means: list[float] = []

    def gauss(self, mu: float, sigma: float) -> float:
        self.n_gauss += 1
        self.means.append(mu)
        return mu

    def random(self) -> float:
        return 0.0


class _NegativeGauss(_GaussAtMean):
    """Random stand-in returning a negative efficiency."""

    def gauss(self, mu: float, sigma: float) -> float:
        return -0.5


class _NoGauss(_GaussAtMean):
    """Random stand-in failing on any efficiency draw."""

    def gauss(self, mu: float, sigma: float) -> float:
        raise AssertionError("efficiency draw consumed for an ineligible candidate")


def _constant_yield(bg: float, gas_option: int = 0) -> float:
    return _YIELD


def _tof(mass: float) -> float:
    return (_PATH_MM * 1e-3) * math.sqrt(mass * mass + _P * _P) / (C_LIGHT_M_PER_S * _P)


def _expected_clusters() -> float:
    return _YIELD * _DRIFT_M * efficiency_central_value(_P / 0.13957, 0.0, _constant_yield)


def _candidate(pid: int = 211, charge: int = 1, **kwargs) -> Candidate:
    """Build a candidate travelling along x (cos(theta) = 0) with |p| = 1 GeV."""
    p4 = LorentzVector(_P, 0.0, 0.0, math.sqrt(_P * _P + 0.13957**2))
    fields = dict(
        candidate_id="c0",
        pid=pid,
        charge=charge,
        momentum=p4,
        position=LorentzVector(1.0, 0.0, 0.0, 0.0),
        truth_momentum=p4,
        n_clusters=_expected_clusters(),
        tof=_tof(0.13957),
        path_length=_PATH_MM,
        drift_length=_DRIFT_M,
    )
    fields.update(kwargs)
    return Candidate(**fields)


def _map(rng, cluster_model=_constant_yield) -> IdentificationMap:
    return IdentificationMap(
        table=ProbabilityTable.from_triples([(0, 0, "1.0")]),
        rng=rng,
        cluster_model=cluster_model,
    )


class TestEligibility(unittest.TestCase):
    """Ineligible candidates get the sentinel and consume no efficiency draw."""

    def test_non_hadron_species_is_not_identified(self) -> None:
        """Electrons are outside the pion/kaon/proton test."""
        cand = _candidate(pid=11)
        _map(_NoGauss()).evaluate(cand)
        self.assertEqual(cand.pid_meas, NOT_IDENTIFIED)

    def test_zero_cluster_count_is_not_identified(self) -> None:
        """A track without counted clusters cannot be tested."""
        cand = _candidate(n_clusters=0.0)
        _map(_NoGauss()).evaluate(cand)
        self.assertEqual(cand.pid_meas, NOT_IDENTIFIED)

    def test_non_positive_path_lengths_are_not_identified(self) -> None:
        """Both the TOF path and the drift length must be positive."""
        for kwargs in ({"path_length": 0.0}, {"drift_length": -1.0}):
            cand = _candidate(**kwargs)
            _map(_NoGauss()).evaluate(cand)
            self.assertEqual(cand.pid_meas, NOT_IDENTIFIED, kwargs)

    def test_track_along_beam_axis_is_not_identified(self) -> None:
        """cos(theta) = 1 has no defined efficiency and is skipped."""
        p4 = LorentzVector(0.0, 0.0, 1.0, 1.01)
        cand = _candidate(truth_momentum=p4)
        _map(_NoGauss()).evaluate(cand)
        self.assertEqual(cand.pid_meas, NOT_IDENTIFIED)

    def test_other_diagnostics_are_left_untouched(self) -> None:
        """Only `pid_meas` is written for ineligible candidates."""
        cand = _candidate(pid=13, chi_pi=3.0, prob_k=0.25)
        _map(_NoGauss()).evaluate(cand)
        self.assertEqual(cand.chi_pi, 3.0)
        self.assertEqual(cand.prob_k, 0.25)


class TestHypothesisTest(unittest.TestCase):
    """Chi-square, probability and selection behavior for eligible candidates."""

    def test_pion_measurement_selects_pion(self) -> None:
        """Exact pion expectations give chi2_pi = 0 and a signed pion PID."""
        rng = _GaussAtMean()
        cand = _candidate(charge=-1, pid=-211)
        _map(rng).evaluate(cand)
        self.assertEqual(rng.n_gauss, 3)
        self.assertAlmostEqual(cand.chi_pi, 0.0, places=6)
        self.assertGreater(cand.chi_k, 100.0)
        self.assertEqual(cand.pid_meas, -211)
        self.assertGreater(cand.prob_pi, 0.99)

    def test_kaon_measurement_selects_kaon(self) -> None:
        """Time of flight matching the kaon mass selects the kaon hypothesis."""
        cand = _candidate(tof=_tof(0.49368))
        _map(_GaussAtMean()).evaluate(cand)
        self.assertEqual(cand.pid_meas, 321)
        self.assertLess(cand.chi_k, cand.chi_pi)

    def test_probabilities_are_normalized(self) -> None:
        """Normalized hypothesis probabilities sum to one."""
        cand = _candidate(tof=0.5 * (_tof(0.13957) + _tof(0.49368)))
        _map(_GaussAtMean()).evaluate(cand)
        self.assertAlmostEqual(cand.prob_pi + cand.prob_k + cand.prob_p, 1.0, places=12)

    def test_smaller_chi2_has_larger_probability(self) -> None:
        """The hypothesis with smaller chi2 carries the larger probability."""
        cand = _candidate(tof=0.4 * _tof(0.13957) + 0.6 * _tof(0.49368))
        _map(_GaussAtMean()).evaluate(cand)
        self.assertLess(cand.chi_k, cand.chi_pi)
        self.assertGreater(cand.prob_k, cand.prob_pi)

    def test_incompatible_measurement_is_not_identified(self) -> None:
        """Underflowing probabilities for every hypothesis yield the sentinel."""
        cand = _candidate(tof=1.0)
        _map(_GaussAtMean()).evaluate(cand)
        self.assertEqual(cand.pid_meas, NOT_IDENTIFIED)

    def test_zero_yield_stops_before_first_hypothesis(self) -> None:
        """No expected clusters under the pion mass aborts the whole loop."""
        rng = _GaussAtMean()
        cand = _candidate(chi_pi=7.0, chi_k=8.0)
        _map(rng, cluster_model=lambda bg, gas_option=0: 0.0).evaluate(cand)
        self.assertEqual(rng.n_gauss, 1)
        self.assertEqual(cand.pid_meas, NOT_IDENTIFIED)
        self.assertEqual(cand.chi_pi, 7.0)
        self.assertEqual(cand.chi_k, 8.0)

    def test_zero_yield_after_pion_keeps_pion_result(self) -> None:
        """Aborting at the kaon leaves kaon/proton at zero and a stale chi_k."""
        rng = _GaussAtMean()
        cand = _candidate(chi_k=8.0)
        yield_model = lambda bg, gas_option=0: _YIELD if bg > 5.0 else 0.0
        _map(rng, cluster_model=yield_model).evaluate(cand)
        self.assertEqual(rng.n_gauss, 2)
        self.assertEqual(cand.chi_k, 8.0)
        self.assertEqual(cand.prob_pi, 1.0)
        self.assertEqual(cand.prob_k, 0.0)
        self.assertEqual(cand.prob_p, 0.0)
        self.assertEqual(cand.pid_meas, 211)

    def test_tied_maximum_keeps_previous_pid_meas(self) -> None:
        """Without a strict winner `pid_meas` keeps its previous value."""
        cand = _candidate(pid_meas=42)
        with mock.patch("pidmap.identification.chi2_probability", side_effect=[0.3, 0.3, 0.1]):
            _map(_GaussAtMean()).evaluate(cand)
        self.assertEqual(cand.pid_meas, 42)
        self.assertAlmostEqual(cand.prob_pi, 0.3 / 0.7, places=12)
        self.assertAlmostEqual(cand.prob_p, 0.1 / 0.7, places=12)

    def test_seeded_runs_are_identical(self) -> None:
        """Same seed and inputs reproduce the diagnostics bit for bit."""
        results = []
        for _ in range(2):
            cand = _candidate(tof=0.5 * (_tof(0.13957) + _tof(0.49368)))
            id_map = IdentificationMap(
                table=ProbabilityTable.from_triples([(0, 0, "1.0")]),
                rng=Random(2024),
            )
            id_map.evaluate(cand)
            results.append(cand)
        self.assertEqual(results[0], results[1])


class TestGasOption(unittest.TestCase):
    """The gas mixture only changes the expected cluster count."""

    def test_efficiency_uses_reference_gas(self) -> None:
        """Efficiency means follow the He/iC4H10 yield whatever the gas option."""
        rng = _GaussAtMean()
        id_map = IdentificationMap(
            table=ProbabilityTable.from_triples([(0, 0, "1.0")]),
            rng=rng,
            gas_option=GAS_AR,
        )
        id_map.evaluate(_candidate())
        expected = [efficiency_central_value(_P / h.mass, 0.0) for h in MASS_HYPOTHESES]
        self.assertEqual(len(rng.means), 3)
        for mean, value in zip(rng.means, expected):
            self.assertAlmostEqual(mean, value, places=12)

    def test_yield_model_queries(self) -> None:
        """Each hypothesis asks the reference gas for efficiency, the configured one for dN/dx."""
        seen: list[int] = []

        def model(bg: float, gas_option: int = 0) -> float:
            seen.append(gas_option)
            return _YIELD

        id_map = _map(_GaussAtMean(), cluster_model=model)
        id_map.gas_option = GAS_AR
        id_map.evaluate(_candidate())
        self.assertEqual(seen, [GAS_HE_ISOBUTANE, GAS_AR] * 3)


class TestNonPositiveVariance(unittest.TestCase):
    """A negative efficiency draw with a positive expectation cannot be scored."""

    def test_hypotheses_score_zero_probability(self) -> None:
        """Every hypothesis gets chi2 = inf and the candidate is not identified."""
        cand = _candidate()
        _map(_NegativeGauss(), cluster_model=lambda bg, gas_option=0: -_YIELD).evaluate(cand)
        self.assertEqual(cand.chi_pi, math.inf)
        self.assertEqual(cand.chi_k, math.inf)
        self.assertEqual(cand.pid_meas, NOT_IDENTIFIED)


if __name__ == "__main__":
    unittest.main()
