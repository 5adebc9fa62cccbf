"""Facade classifier ensemble: one TorchScript model per (architecture, task)."""

import logging
from pathlib import Path
from typing import Protocol

import numpy as np
import torch
from PIL import Image

from facade360.config import (
    DEVICE,
    IMAGENET_MEAN,
    IMAGENET_STD,
    MODEL_ARCHITECTURES,
    MODEL_FILENAME_TEMPLATE,
    MODEL_INPUT_SIZE,
    TASKS,
)
from facade360.errors import ModelUnavailable, PredictionFailure
from facade360.models import (
    ANALYSIS_ERROR,
    NOT_FOUND,
    PREDICTION_ERROR,
    LabelMap,
    PredictionRecord,
    RasterFrame,
    unmapped_label,
)

logger = logging.getLogger(__name__)


class TaskModel(Protocol):
    """A single-task classifier returning a class index."""

    is_stub: bool

    def predict(self, batch: torch.Tensor) -> int: ...


class TorchScriptTaskModel:
    """Classifier exported with ``torch.jit.save``."""

    is_stub = False

    def __init__(self, path: str | Path, device: str = DEVICE) -> None:
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Model not found: {self.path}")
        self.device = device
        self.model = torch.jit.load(str(self.path), map_location=device).eval()

    def predict(self, batch: torch.Tensor) -> int:
        with torch.no_grad():
            logits = self.model(batch.to(self.device))
        if isinstance(logits, (tuple, list)):
            logits = logits[0]
        return int(torch.argmax(logits, dim=1)[0])


class StubTaskModel:
    """Random predictions standing in for a model that could not be loaded.

    Records produced with a stub are flagged ``is_stub`` so they are never
    mistaken for real predictions.
    """

    is_stub = True

    def __init__(self, num_classes: int, seed: int | None = None) -> None:
        if num_classes < 1:
            raise ValueError("num_classes must be at least 1")
        self.num_classes = num_classes
        self._rng = np.random.default_rng(seed)

    def predict(self, batch: torch.Tensor) -> int:
        return int(self._rng.integers(self.num_classes))


def preprocess(raster: RasterFrame, size: int = MODEL_INPUT_SIZE) -> torch.Tensor:
    """Nearest resize, scale to [0, 1], ImageNet-normalize. Returns (1, 3, H, W)."""
    image = Image.fromarray(np.ascontiguousarray(raster, dtype=np.uint8)).convert("RGB")
    image = image.resize((size, size), Image.Resampling.NEAREST)
    arr = np.asarray(image, dtype=np.float32) / 255.0
    arr = (arr - np.array(IMAGENET_MEAN, dtype=np.float32)) / np.array(
        IMAGENET_STD, dtype=np.float32
    )
    return torch.from_numpy(np.ascontiguousarray(arr.transpose(2, 0, 1))).unsqueeze(0)


class ClassificationEnsemble:
    """Runs every architecture's task models over a raster."""

    def __init__(
        self,
        models: dict[str, dict[str, TaskModel | None]],
        label_maps: LabelMap,
        tasks: tuple[str, ...] = TASKS,
    ) -> None:
        self.models = models
        self.label_maps = label_maps
        self.tasks = tasks
        self.architectures = tuple(models)

    @property
    def ready(self) -> bool:
        has_model = any(m is not None for tm in self.models.values() for m in tm.values())
        return has_model and all(t in self.label_maps for t in self.tasks)

    def predict(self, batch: torch.Tensor, architecture: str, task: str) -> int:
        """Class index for one (architecture, task) pair."""
        model = self.models.get(architecture, {}).get(task)
        if model is None:
            raise ModelUnavailable(f"No model for {architecture}/{task}")
        try:
            return model.predict(batch)
        except Exception as e:
            raise PredictionFailure(f"{architecture}/{task}: {e}") from e

    def resolve_label(self, task: str, class_index: int) -> str:
        label = self.label_maps.get(task, {}).get(str(class_index))
        if label is None:
            logger.warning("No label for %s class %d", task, class_index)
            return unmapped_label(class_index)
        return label

    def classify(self, raster: RasterFrame) -> list[PredictionRecord]:
        """One PredictionRecord per architecture.

        Missing models yield ``NOT_FOUND`` and failing models
        ``PREDICTION_ERROR`` for that field only.
        """
        try:
            batch = preprocess(raster)
        except Exception:
            logger.exception("Preprocessing failed")
            return [
                PredictionRecord(arch, ANALYSIS_ERROR, ANALYSIS_ERROR, ANALYSIS_ERROR)
                for arch in self.architectures
            ]

        records: list[PredictionRecord] = []
        for architecture in self.architectures:
            fields = {task: NOT_FOUND for task in self.tasks}
            is_stub = False
            for task in self.tasks:
                try:
                    class_index = self.predict(batch, architecture, task)
                except ModelUnavailable:
                    continue
                except PredictionFailure as e:
                    logger.error("Prediction failed: %s", e)
                    fields[task] = PREDICTION_ERROR
                    continue
                fields[task] = self.resolve_label(task, class_index)
                is_stub = is_stub or self.models[architecture][task].is_stub  # type: ignore[union-attr]
                logger.debug(
                    "%s - %s: class %d -> %r", architecture, task, class_index, fields[task]
                )
            records.append(PredictionRecord(model_id=architecture, is_stub=is_stub, **fields))
        return records

    def status(self) -> dict[str, dict[str, str]]:
        """Per architecture and task: loaded, stub or missing."""
        result: dict[str, dict[str, str]] = {}
        for architecture, task_models in self.models.items():
            result[architecture] = {}
            for task in self.tasks:
                model = task_models.get(task)
                if model is None:
                    result[architecture][task] = "missing"
                else:
                    result[architecture][task] = "stub" if model.is_stub else "loaded"
        return result


def load_ensemble(
    models_dir: str | Path,
    label_maps: LabelMap,
    architectures: tuple[str, ...] = MODEL_ARCHITECTURES,
    tasks: tuple[str, ...] = TASKS,
    device: str = DEVICE,
    stub_missing: bool = True,
    seed: int | None = None,
) -> ClassificationEnsemble:
    """Load ``modelo_{architecture}_{task}.pt`` files from ``models_dir``.

    Models that fail to load become stubs when ``stub_missing`` is set,
    otherwise they stay unavailable.
    """
    models_dir = Path(models_dir)
    models: dict[str, dict[str, TaskModel | None]] = {}
    for architecture in architectures:
        models[architecture] = {}
        for task in tasks:
            path = models_dir / MODEL_FILENAME_TEMPLATE.format(architecture=architecture, task=task)
            try:
                models[architecture][task] = TorchScriptTaskModel(path, device=device)
                logger.info("Model loaded: %s", path.name)
            except (OSError, RuntimeError, ValueError) as e:
                logger.warning("Could not load model %s_%s: %s", architecture, task, e)
                if stub_missing:
                    num_classes = len(label_maps.get(task, {})) or 3
                    models[architecture][task] = StubTaskModel(num_classes, seed=seed)
                else:
                    models[architecture][task] = None
    return ClassificationEnsemble(models, label_maps, tasks=tasks)
