"""Input/output helpers for JSON inputs and tabular result export."""

from __future__ import annotations
__author__ = "Renato Quagliani <rquaglia@cern.ch>"


import json
from pathlib import Path
from typing import Any, Sequence

from .formula import compile_formula
from .models import Candidate, EventInput, EventOutput, LorentzVector
from .table import FormulaCompiler, ProbabilityTable


def load_table_triples(path: str | Path) -> list[tuple[int, int, str]]:
    """Load `(pdg_in, pdg_out, expression)` triples from a table JSON.

    Supports, under key `efficiency_formula`:
    - list of `[pdg_in, pdg_out, "expr"]` triples
    - list of `{"pdg_in": ..., "pdg_out": ..., "formula": "..."}` objects
    - flat card-style list `[pdg_in, pdg_out, "expr", pdg_in, ...]`.
    """
    data = _load_json(path)
    raw = data.get("efficiency_formula")
    if not isinstance(raw, list):
        raise ValueError("Table JSON must contain a list under key 'efficiency_formula'.")
    return _parse_triples(raw)


def load_probability_table(
    path: str | Path,
    compiler: FormulaCompiler = compile_formula,
) -> ProbabilityTable:
    """Load and compile a probability table from JSON."""
    return ProbabilityTable.from_triples(load_table_triples(path), compiler=compiler)


def load_run_options(path: str | Path) -> dict[str, Any]:
    """Read optional `gas_option` / `seed` settings stored next to the table."""
    data = _load_json(path)
    options: dict[str, Any] = {}
    if "gas_option" in data:
        options["gas_option"] = int(data["gas_option"])
    if "seed" in data:
        options["seed"] = int(data["seed"])
    return options


def load_candidates_json(path: str | Path) -> list[Candidate]:
    """Load candidate container JSON into `Candidate` objects."""
    data = _load_json(path)
    items = data.get("candidates")
    if not isinstance(items, list):
        raise ValueError("Input JSON must contain a list under key 'candidates'.")
    return [
        _parse_candidate_item(item=item, idx=idx, context=f"{path}")
        for idx, item in enumerate(items)
    ]


def load_events_json(path: str | Path) -> list[EventInput]:
    """Load multi-event input JSON into `EventInput` objects.

    Expected shape:
    {
      "events": [
        {"event_id": "...", "candidates": [...]},
        ...
      ]
    }
    """
    data = _load_json(path)
    events_data = data.get("events")
    if not isinstance(events_data, list):
        raise ValueError("Events JSON must contain a list under key 'events'.")
    out: list[EventInput] = []
    for idx, event in enumerate(events_data):
        if not isinstance(event, dict):
            raise ValueError(f"Event entry at index {idx} must be an object.")
        event_id = str(event.get("event_id", f"evt{idx}"))
        items = event.get("candidates")
        if not isinstance(items, list):
            raise ValueError(f"Event '{event_id}' must contain a list under key 'candidates'.")
        candidates = tuple(
            _parse_candidate_item(item=item, idx=cidx, context=f"event '{event_id}'")
            for cidx, item in enumerate(items)
        )
        out.append(EventInput(event_id=event_id, candidates=candidates))
    return out


def write_candidates_table(
    path: str | Path,
    candidates: Sequence[Candidate],
    event_id: str | None = None,
) -> None:
    """Write candidates into Parquet/CSV/Pickle table."""
    _write_rows(path, _candidate_rows(candidates, event_id))


def write_events_table(path: str | Path, outputs: Sequence[EventOutput]) -> None:
    """Write retained candidates of all events into one table."""
    rows: list[dict[str, Any]] = []
    for output in outputs:
        rows.extend(_candidate_rows(output.candidates, output.event_id))
    _write_rows(path, rows)


def _write_rows(path: str | Path, rows: list[dict[str, Any]]) -> None:
    """Dump row dictionaries with pandas, format chosen by file suffix."""
    pd = _require_pandas()
    df = pd.DataFrame(rows, columns=_COLUMNS)
    out = Path(path)
    suffix = out.suffix.lower()
    if suffix == ".parquet":
        df.to_parquet(out, index=False)
    elif suffix in (".pkl", ".pickle"):
        df.to_pickle(out)
    elif suffix == ".csv":
        df.to_csv(out, index=False)
    else:
        raise ValueError(
            f"Unsupported output format '{suffix}'. Use .parquet, .csv, or .pkl"
        )


_COLUMNS = [
    "event_id",
    "candidate_id",
    "pid",
    "charge",
    "px",
    "py",
    "pz",
    "energy",
    "pt",
    "eta",
    "phi",
    "p_true",
    "n_clusters",
    "tof",
    "path_length",
    "drift_length",
    "chi_pi",
    "chi_k",
    "prob_pi",
    "prob_k",
    "prob_p",
    "pid_meas",
]


def _candidate_rows(candidates: Sequence[Candidate], event_id: str | None) -> list[dict[str, Any]]:
    """Flatten candidates into DataFrame-ready row dictionaries."""
    rows: list[dict[str, Any]] = []
    for cand in candidates:
        pt, eta, phi, energy = cand.formula_arguments
        rows.append(
            {
                "event_id": event_id,
                "candidate_id": cand.candidate_id,
                "pid": cand.pid,
                "charge": cand.charge,
                "px": cand.momentum.px,
                "py": cand.momentum.py,
                "pz": cand.momentum.pz,
                "energy": energy,
                "pt": pt,
                "eta": eta,
                "phi": phi,
                "p_true": cand.truth_momentum.p,
                "n_clusters": cand.n_clusters,
                "tof": cand.tof,
                "path_length": cand.path_length,
                "drift_length": cand.drift_length,
                "chi_pi": cand.chi_pi,
                "chi_k": cand.chi_k,
                "prob_pi": cand.prob_pi,
                "prob_k": cand.prob_k,
                "prob_p": cand.prob_p,
                "pid_meas": cand.pid_meas,
            }
        )
    return rows


def _require_pandas():
    """Import pandas lazily and provide a clear installation hint on failure."""
    try:
        import pandas as pd  # type: ignore
    except ModuleNotFoundError as exc:
        raise ModuleNotFoundError(
            "pandas is required to write output tables. Install pandas and pyarrow."
        ) from exc
    return pd


def _parse_triples(raw: list[Any]) -> list[tuple[int, int, str]]:
    """Normalize the supported triple layouts into tuples."""
    if raw and not isinstance(raw[0], (list, dict)):
        # Flat card-style layout.
        if len(raw) % 3 != 0:
            raise ValueError("Flat 'efficiency_formula' list length must be a multiple of 3.")
        raw = [raw[i:i + 3] for i in range(0, len(raw), 3)]
    out: list[tuple[int, int, str]] = []
    for idx, item in enumerate(raw):
        if isinstance(item, dict):
            try:
                triple = (item["pdg_in"], item["pdg_out"], item["formula"])
            except KeyError as exc:
                raise ValueError(
                    f"Table entry at index {idx} must define 'pdg_in', 'pdg_out' and 'formula'."
                ) from exc
        elif isinstance(item, list) and len(item) == 3:
            triple = (item[0], item[1], item[2])
        else:
            raise ValueError(f"Table entry at index {idx} must be a 3-item list or an object.")
        pdg_in, pdg_out, expression = triple
        if isinstance(expression, (int, float)) and not isinstance(expression, bool):
            expression = repr(float(expression))
        if not isinstance(expression, str):
            raise ValueError(f"Table entry at index {idx} has a non-string formula {expression!r}.")
        out.append((_as_int(pdg_in, "pdg_in", idx), _as_int(pdg_out, "pdg_out", idx), expression))
    return out


def _as_int(value: Any, name: str, idx: int) -> int:
    """Convert an integral JSON value, rejecting fractional codes."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"Table entry at index {idx}: '{name}' must be an integer.")
    try:
        as_float = float(value)
    except ValueError as exc:
        raise ValueError(f"Table entry at index {idx}: '{name}' must be an integer.") from exc
    if not as_float.is_integer():
        raise ValueError(f"Table entry at index {idx}: '{name}' must be an integer.")
    return int(as_float)


def _parse_candidate_item(item: Any, idx: int, context: str) -> Candidate:
    """Parse one candidate dictionary into a `Candidate`."""
    if not isinstance(item, dict):
        raise ValueError(f"Candidate entry at index {idx} in {context} must be an object.")
    try:
        momentum = _parse_vector(item["momentum"], "momentum")
    except KeyError as exc:
        raise ValueError(f"Candidate at index {idx} in {context} must define 'momentum'.") from exc
    position = _parse_vector(item.get("position", [0.0, 0.0, 0.0, 0.0]), "position")
    truth = item.get("truth_momentum")
    truth_momentum = momentum if truth is None else _parse_vector(truth, "truth_momentum")
    return Candidate(
        candidate_id=str(item.get("candidate_id", f"c{idx}")),
        pid=int(item["pid"]),
        charge=int(item.get("charge", 0)),
        momentum=momentum,
        position=position,
        truth_momentum=truth_momentum,
        n_clusters=float(item.get("n_clusters", 0.0)),
        tof=float(item.get("tof", 0.0)),
        path_length=float(item.get("path_length", 0.0)),
        drift_length=float(item.get("drift_length", 0.0)),
    )


def _parse_vector(value: Any, name: str) -> LorentzVector:
    """Validate and convert `[px, py, pz, e]` (or `[x, y, z, t]`) into a vector."""
    if isinstance(value, dict):
        keys = ("px", "py", "pz", "e") if "px" in value else ("x", "y", "z", "t")
        try:
            value = [value[k] for k in keys]
        except KeyError as exc:
            raise ValueError(f"Field '{name}' object must define {', '.join(keys)}.") from exc
    if not isinstance(value, list) or len(value) != 4:
        raise ValueError(f"Field '{name}' must be a 4-item list.")
    return LorentzVector(float(value[0]), float(value[1]), float(value[2]), float(value[3]))


def _load_json(path: str | Path) -> dict[str, Any]:
    """Read and validate a JSON object document from disk."""
    raw = Path(path).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"JSON document at {path} must be an object.")
    return data
