"""Tests for the classification ensemble."""

import numpy as np
import pytest
import torch
from conftest import FailingTaskModel, FakeTaskModel, make_ensemble, make_raster

from facade360.classification.ensemble import (
    ClassificationEnsemble,
    StubTaskModel,
    TorchScriptTaskModel,
    load_ensemble,
    preprocess,
)
from facade360.classification.labels import DEFAULT_LABEL_MAPS
from facade360.errors import ModelUnavailable, PredictionFailure
from facade360.models import ANALYSIS_ERROR, NOT_FOUND, PREDICTION_ERROR


class ConstantHead(torch.nn.Module):
    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return torch.tensor([[0.1, 0.2, 0.9]])


def test_preprocess_shape_and_normalization():
    raster = np.full((50, 80, 3), 255, dtype=np.uint8)
    batch = preprocess(raster)
    assert batch.shape == (1, 3, 224, 224)
    # (1.0 - 0.485) / 0.229
    assert batch[0, 0, 0, 0].item() == pytest.approx(2.2489, abs=1e-3)


def test_classify_one_record_per_architecture():
    records = make_ensemble(class_index=1).classify(make_raster(64, 64))
    assert [r.model_id for r in records] == ["mobilenet", "efficientnet"]
    assert records[0].tipologia == DEFAULT_LABEL_MAPS["tipologia"]["1"]
    assert records[0].material_fachada == DEFAULT_LABEL_MAPS["material_fachada"]["1"]
    assert records[0].pisos == "2"
    assert not records[0].is_stub


def test_unmapped_class_index():
    records = make_ensemble(class_index=7).classify(make_raster(64, 64))
    assert records[0].tipologia == "class 7 (unmapped)"


def test_missing_model_gives_not_found():
    ensemble = ClassificationEnsemble(
        {"mobilenet": {"tipologia": FakeTaskModel(0), "material_fachada": None, "pisos": None}},
        DEFAULT_LABEL_MAPS,
    )
    record = ensemble.classify(make_raster(64, 64))[0]
    assert record.tipologia == DEFAULT_LABEL_MAPS["tipologia"]["0"]
    assert record.material_fachada == NOT_FOUND
    assert record.pisos == NOT_FOUND


def test_failing_model_only_affects_its_field():
    ensemble = ClassificationEnsemble(
        {
            "mobilenet": {
                "tipologia": FailingTaskModel(),
                "material_fachada": FakeTaskModel(2),
                "pisos": FakeTaskModel(0),
            }
        },
        DEFAULT_LABEL_MAPS,
    )
    record = ensemble.classify(make_raster(64, 64))[0]
    assert record.tipologia == PREDICTION_ERROR
    assert record.material_fachada == DEFAULT_LABEL_MAPS["material_fachada"]["2"]
    assert record.pisos == "1"


def test_unreadable_raster_gives_analysis_error():
    records = make_ensemble().classify("not a raster")
    assert len(records) == 2
    for record in records:
        assert record.tipologia == ANALYSIS_ERROR
        assert record.material_fachada == ANALYSIS_ERROR
        assert record.pisos == ANALYSIS_ERROR


def test_predict_errors():
    ensemble = ClassificationEnsemble(
        {"mobilenet": {"tipologia": FailingTaskModel(), "material_fachada": None}},
        DEFAULT_LABEL_MAPS,
    )
    batch = torch.zeros((1, 3, 224, 224))
    with pytest.raises(PredictionFailure):
        ensemble.predict(batch, "mobilenet", "tipologia")
    with pytest.raises(ModelUnavailable):
        ensemble.predict(batch, "mobilenet", "material_fachada")
    with pytest.raises(ModelUnavailable):
        ensemble.predict(batch, "efficientnet", "tipologia")


def test_stub_predictions_are_flagged():
    ensemble = ClassificationEnsemble(
        {
            "mobilenet": {
                "tipologia": StubTaskModel(3, seed=1),
                "material_fachada": FakeTaskModel(0),
                "pisos": FakeTaskModel(0),
            },
            "efficientnet": {
                "tipologia": FakeTaskModel(0),
                "material_fachada": FakeTaskModel(0),
                "pisos": FakeTaskModel(0),
            },
        },
        DEFAULT_LABEL_MAPS,
    )
    mobilenet, efficientnet = ensemble.classify(make_raster(64, 64))
    assert mobilenet.is_stub
    assert mobilenet.tipologia in DEFAULT_LABEL_MAPS["tipologia"].values()
    assert not efficientnet.is_stub


def test_stub_model_range():
    stub = StubTaskModel(3, seed=0)
    batch = torch.zeros((1, 3, 224, 224))
    assert {stub.predict(batch) for _ in range(50)} <= {0, 1, 2}


def test_stub_model_needs_classes():
    with pytest.raises(ValueError):
        StubTaskModel(0)


def test_ready():
    assert make_ensemble().ready
    assert not ClassificationEnsemble({}, DEFAULT_LABEL_MAPS).ready
    assert not ClassificationEnsemble({"mobilenet": {}}, {"tipologia": {"0": "x"}}).ready
    assert not ClassificationEnsemble({"mobilenet": {"pisos": None}}, DEFAULT_LABEL_MAPS).ready


def test_load_ensemble_stubs_missing_files(tmp_path):
    ensemble = load_ensemble(tmp_path, DEFAULT_LABEL_MAPS, seed=0)
    status = ensemble.status()
    assert set(status) == {"mobilenet", "efficientnet"}
    assert all(state == "stub" for tasks in status.values() for state in tasks.values())
    assert all(r.is_stub for r in ensemble.classify(make_raster(64, 64)))


def test_load_ensemble_without_stubs(tmp_path):
    ensemble = load_ensemble(tmp_path, DEFAULT_LABEL_MAPS, stub_missing=False)
    assert ensemble.status()["mobilenet"]["pisos"] == "missing"
    assert not ensemble.ready
    record = ensemble.classify(make_raster(64, 64))[0]
    assert record.tipologia == NOT_FOUND
    assert not record.is_stub


def test_load_torchscript_model(tmp_path):
    torch.jit.save(torch.jit.script(ConstantHead()), str(tmp_path / "modelo_mobilenet_pisos.pt"))

    ensemble = load_ensemble(
        tmp_path,
        DEFAULT_LABEL_MAPS,
        architectures=("mobilenet",),
        tasks=("pisos",),
    )

    assert ensemble.status() == {"mobilenet": {"pisos": "loaded"}}
    assert isinstance(ensemble.models["mobilenet"]["pisos"], TorchScriptTaskModel)
    assert ensemble.predict(preprocess(make_raster(64, 64)), "mobilenet", "pisos") == 2


def test_torchscript_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        TorchScriptTaskModel(tmp_path / "modelo_mobilenet_tipologia.pt")
