"""Label dictionary loading: JSON document, training CSV, or built-in defaults."""

import functools
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path

import httpx
import pandas as pd
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from facade360.config import TASKS
from facade360.errors import LabelMapError
from facade360.models import LabelMap

logger = logging.getLogger(__name__)

DEFAULT_LABEL_MAPS: LabelMap = {
    "tipologia": {
        "0": "Tipo Residencial Básico",
        "1": "Tipo Comercial Básico",
        "2": "Tipo Industrial Básico",
    },
    "material_fachada": {
        "0": "Acabado Básico",
        "1": "Acabado Intermedio",
        "2": "Sin Acabado",
    },
    "pisos": {
        "0": "1",
        "1": "2",
        "2": "3",
    },
}

# CSV column is matched when its lowercase name contains the keyword
_CSV_COLUMN_KEYWORDS = {
    "tipologia": "tipologia",
    "material_fachada": "material",
    "pisos": "pisos",
}

_LEADING_INT_RE = re.compile(r"\s*([-+]?\d+)")


@dataclass(frozen=True)
class LabelMapResult:
    """Loaded label maps and where they came from: json, csv or default."""

    label_maps: LabelMap
    origin: str


def validate_label_maps(data: object, tasks: tuple[str, ...] = TASKS) -> bool:
    """Check that every task maps to a non-empty dictionary."""
    if not isinstance(data, dict):
        logger.error("Label maps document is not an object")
        return False
    for task in tasks:
        entries = data.get(task)
        if not isinstance(entries, dict):
            logger.error("Missing or invalid task in label maps: %s", task)
            return False
        if not entries:
            logger.error("Empty task in label maps: %s", task)
            return False
    return True


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, max=10),
    retry=retry_if_exception_type(httpx.TimeoutException),
)
def _fetch_json(url: str, timeout: int = 30) -> object:
    """Download a JSON document."""
    with httpx.Client(timeout=timeout) as client:
        resp = client.get(url)
        resp.raise_for_status()
    return resp.json()


def load_label_maps_json(source: str | Path, tasks: tuple[str, ...] = TASKS) -> LabelMap:
    """Load label maps from a local JSON file or an http(s) URL."""
    source_str = str(source)
    if source_str.startswith(("http://", "https://")):
        data = _fetch_json(source_str)
    else:
        with open(source_str, encoding="utf-8") as f:
            data = json.load(f)

    if not validate_label_maps(data, tasks):
        raise LabelMapError(f"Invalid label maps structure in {source_str}")
    assert isinstance(data, dict)
    return {task: {str(k): str(v) for k, v in data[task].items()} for task in tasks}


def _leading_int(value: str) -> int | None:
    match = _LEADING_INT_RE.match(value)
    return int(match.group(1)) if match else None


def _compare_numeric_aware(a: str, b: str) -> int:
    """Order numerically when both values start with an integer, else by text."""
    num_a, num_b = _leading_int(a), _leading_int(b)
    if num_a is not None and num_b is not None:
        return num_a - num_b
    return (a > b) - (a < b)


def label_maps_from_csv(path: str | Path, sep: str = ";") -> LabelMap:
    """Derive label maps from the unique values of a training CSV.

    Labels are sorted and numbered from 0; the floor-count task is sorted
    numerically.
    """
    df = pd.read_csv(path, sep=sep, dtype=str, keep_default_na=False)
    if df.empty:
        raise LabelMapError(f"CSV needs a header and at least one data row: {path}")

    label_maps: LabelMap = {}
    for task, keyword in _CSV_COLUMN_KEYWORDS.items():
        column = next((c for c in df.columns if keyword in str(c).lower()), None)
        if column is None:
            raise LabelMapError(f"Column for '{task}' not found in {path}")
        values = {v.strip() for v in df[column] if v and v.strip()}
        if task == "pisos":
            ordered = sorted(values, key=functools.cmp_to_key(_compare_numeric_aware))
        else:
            ordered = sorted(values)
        label_maps[task] = {str(i): label for i, label in enumerate(ordered)}

    logger.info(
        "Label maps derived from CSV %s: %s",
        path,
        {task: len(labels) for task, labels in label_maps.items()},
    )
    return label_maps


def load_label_maps(
    json_source: str | Path | None,
    csv_source: str | Path | None = None,
) -> LabelMapResult:
    """Load label maps, falling back from JSON to CSV to the built-in defaults."""
    if json_source:
        try:
            maps = load_label_maps_json(json_source)
            logger.info("Label maps loaded from %s", json_source)
            return LabelMapResult(maps, "json")
        except (OSError, ValueError, httpx.HTTPError, RetryError, LabelMapError) as e:
            logger.warning("Could not load label maps from %s: %s", json_source, e)

    if csv_source:
        try:
            return LabelMapResult(label_maps_from_csv(csv_source), "csv")
        except (OSError, ValueError, LabelMapError) as e:
            logger.warning("Could not derive label maps from CSV %s: %s", csv_source, e)

    logger.warning("Using default label maps")
    return LabelMapResult({t: dict(m) for t, m in DEFAULT_LABEL_MAPS.items()}, "default")
