"""
Tests for ModelRecord and JsonModelStore
"""

import json
from datetime import datetime, timedelta

import pytest

from conftest import FIXED_NOW, make_metrics, make_trained_model

from credit_lifecycle.core.exceptions import RegistryError
from credit_lifecycle.registry.model_record import ModelRecord, ModelStatus
from credit_lifecycle.registry.store import JsonModelStore


def _record(**overrides):
    fields = dict(
        model_id="model_abc",
        version="v2024.06.01.1717243200000",
        status=ModelStatus.TRAINED,
        algorithm="logistic_regression",
        created_at=FIXED_NOW,
        model=make_trained_model(),
        metrics=make_metrics(),
        training_samples=100,
    )
    fields.update(overrides)
    return ModelRecord(**fields)


class TestModelRecord:
    """Test suite for ModelRecord."""

    def test_status_coerced(self):
        assert _record(status="deployed").status == ModelStatus.DEPLOYED

    def test_immutable(self):
        record = _record()

        with pytest.raises(Exception):
            record.usage_count = 5
        with pytest.raises(TypeError):
            record.training_options['x'] = 1

    def test_evolve_returns_new_record(self):
        record = _record()

        updated = record.evolve(usage_count=3)

        assert updated.usage_count == 3
        assert record.usage_count == 0

    def test_days_in_production(self):
        record = _record(status=ModelStatus.DEPLOYED, deployed_at=FIXED_NOW)

        assert record.days_in_production(FIXED_NOW + timedelta(days=12)) == 12

    def test_days_in_production_stops_at_retirement(self):
        record = _record(
            status=ModelStatus.RETIRED,
            deployed_at=FIXED_NOW,
            retired_at=FIXED_NOW + timedelta(days=5),
        )

        assert record.days_in_production(FIXED_NOW + timedelta(days=50)) == 5

    def test_never_deployed(self):
        assert _record().days_in_production() == 0

    def test_quality_score(self):
        assert _record().quality_score == pytest.approx(1.0)
        assert _record(metrics=None).quality_score == 0.0

    def test_needs_retraining(self):
        deployed = _record(status=ModelStatus.DEPLOYED, deployed_at=FIXED_NOW)

        assert not deployed.needs_retraining(now=FIXED_NOW + timedelta(days=10))
        assert deployed.needs_retraining(now=FIXED_NOW + timedelta(days=91))
        assert _record(metrics=make_metrics(perfect=False)).needs_retraining(now=FIXED_NOW)
        assert _record(drift_metrics={'drift_detected': True}).needs_retraining(now=FIXED_NOW)

    def test_top_features(self):
        assert len(_record().top_features(1)) == 1
        assert _record(model=None).top_features() == []

    def test_dict_round_trip(self):
        record = _record(
            status=ModelStatus.DEPLOYED,
            deployed_at=FIXED_NOW,
            drift_baseline={'x1': {'cut_points': [0.0], 'distribution': [0.4, 0.6], 'sample_size': 80}},
            preprocessing={'fill_values': {'x1': 0.5, 'x2': 0.0}},
            drift_metrics={'drift_score': 0.01, 'status': 'stable'},
        )

        restored = ModelRecord.from_dict(json.loads(json.dumps(record.to_dict(), default=str)))

        assert restored.to_dict()['model'] == record.to_dict()['model']
        assert restored.metrics == record.metrics
        assert restored.drift_baseline['x1']['distribution'] == (0.4, 0.6)
        assert restored.deployed_at == FIXED_NOW
        assert restored.drift_metrics['status'] == 'stable'

    def test_export_has_audit_fields(self):
        data = _record().to_dict()

        for key in ('model_id', 'version', 'status', 'metrics', 'feature_importance',
                    'training_options', 'created_at', 'performance_summary'):
            assert key in data


class TestJsonModelStore:
    """Directory persistence."""

    def test_save_and_load(self, tmp_path):
        store = JsonModelStore(tmp_path)
        store.save(_record())

        loaded = store.load_all()

        assert [r.model_id for r in loaded] == ["model_abc"]
        assert (tmp_path / "model_abc.json").exists()
        assert not list(tmp_path.glob("*.tmp"))

    def test_overwrite(self, tmp_path):
        store = JsonModelStore(tmp_path)
        store.save(_record())
        store.save(_record(usage_count=9))

        assert store.load_all()[0].usage_count == 9

    def test_delete(self, tmp_path):
        store = JsonModelStore(tmp_path)
        store.save(_record())

        store.delete("model_abc")
        store.delete("model_abc")

        assert store.load_all() == []

    def test_unwritable_directory(self, tmp_path):
        store = JsonModelStore(tmp_path)
        store.directory = tmp_path / "missing"

        with pytest.raises(RegistryError):
            store.save(_record())
