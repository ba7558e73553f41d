"""
Tests for ModelLifecycleService

End-to-end training, deployment, inference and monitoring on synthetic
loans.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from conftest import generate_loans, make_customer, make_loan, make_metrics, make_trained_model

from credit_lifecycle.config.schema import ExternalTrainerConfig, LifecycleConfig, RegistryConfig
from credit_lifecycle.core.exceptions import ModelTrainingError
from credit_lifecycle.models.trained_model import METHOD_EXTERNAL, TrainedModel
from credit_lifecycle.pipeline.lifecycle import ModelLifecycleService
from credit_lifecycle.registry.model_record import ModelStatus
from credit_lifecycle.tracking.training_log import TrainingLog


@pytest.fixture
def service(lifecycle_config):
    with ModelLifecycleService(lifecycle_config) as service:
        yield service


@pytest.fixture
def deployed_service(service, sample_loans):
    outcome = service.train_new_model(sample_loans)
    assert outcome.success, outcome
    service.deploy_model(outcome.model_id)
    return service


def _config_with(config: LifecycleConfig, **sections) -> LifecycleConfig:
    return config.model_copy(update=sections)


class TestTraining:
    """Training pipeline."""

    def test_successful_training(self, service, sample_loans):
        outcome = service.train_new_model(sample_loans)

        assert outcome.success
        assert outcome.deployment_ready
        assert outcome.training_samples == 240
        assert outcome.validation_samples == 60
        assert len(outcome.features_used) == len(service.extractor.feature_names)
        assert 0.0 <= outcome.metrics.accuracy <= 1.0

        record = service.registry.get(outcome.model_id)
        assert record.status == ModelStatus.TRAINED
        assert record.version == outcome.version
        assert record.training_samples == 240
        assert record.metrics == outcome.metrics
        assert record.drift_baseline
        assert set(record.preprocessing['fill_values']) == set(service.extractor.feature_names)
        assert record.validation_results['validation_samples'] == 60

    def test_training_is_not_deployed(self, service, sample_loans):
        service.train_new_model(sample_loans)

        assert service.registry.get_deployed() is None

    def test_insufficient_data(self, service):
        outcome = service.train_new_model(generate_loans(50))

        assert not outcome.success
        assert outcome.reason == "insufficient_data"
        assert outcome.training_samples == 50
        assert "minimum: 100" in outcome.error
        assert len(service.registry) == 0

    def test_below_threshold(self, lifecycle_config, sample_loans):
        config = _config_with(lifecycle_config, registry=RegistryConfig(performance_threshold=1.0))

        with ModelLifecycleService(config) as service:
            outcome = service.train_new_model(sample_loans)

        assert not outcome.success
        assert outcome.reason == "performance_below_threshold"
        assert outcome.required_accuracy == 1.0
        assert outcome.metrics is not None
        assert outcome.training_samples == 240
        assert len(service.registry) == 0

    def test_trainer_failure(self, service, sample_loans):
        service.trainer.train = MagicMock(side_effect=ModelTrainingError("backend down"))

        outcome = service.train_new_model(sample_loans)

        assert not outcome.success
        assert outcome.reason == "training_error"
        assert "backend down" in outcome.error
        assert len(service.registry) == 0

    def test_unexpected_failure(self, service, sample_loans):
        service.evaluator.evaluate = MagicMock(side_effect=RuntimeError("bug"))

        outcome = service.train_new_model(sample_loans)

        assert outcome.reason == "training_error"
        assert len(service.registry) == 0

    def test_options(self, service, sample_loans):
        outcome = service.train_new_model(sample_loans, {
            'max_samples': 150,
            'validation_ratio': 0.5,
            'max_iterations': 3,
            'description': 'weekly retrain',
        })

        assert outcome.success
        assert outcome.training_samples == 75
        assert outcome.validation_samples == 75
        record = service.registry.get(outcome.model_id)
        assert record.description == 'weekly retrain'
        assert record.model.training_metrics['iterations'] == 3
        assert record.training_options['max_samples'] == 150

    def test_background_job(self, service, sample_loans):
        future = service.submit_training(sample_loans)

        outcome = future.result(timeout=120)

        assert outcome.success
        assert service.registry.get(outcome.model_id).status == ModelStatus.TRAINED

    def test_attempts_logged(self, lifecycle_config, sample_loans, tmp_path):
        log = TrainingLog(str(tmp_path / "training_log.csv"))

        with ModelLifecycleService(lifecycle_config, training_log=log) as service:
            service.train_new_model(sample_loans)
            service.train_new_model(generate_loans(20))

        history = log.get_history()
        assert list(history['status']) == ['success', 'failed']
        assert history.iloc[1]['reason'] == 'insufficient_data'

    def test_outcome_to_dict(self, service, sample_loans):
        data = service.train_new_model(sample_loans).to_dict()

        json.dumps(data)
        assert data['metrics']['confusion_matrix']
        assert isinstance(data['features_used'], list)


class TestPrediction:
    """Scoring with the deployed model."""

    def test_no_deployed_model(self, service, loan):
        result = service.predict_loan(loan)

        assert not result.success
        assert result.reason == "no_deployed_model"

    def test_predict_loan(self, deployed_service, loan):
        deployed = deployed_service.registry.get_deployed()

        result = deployed_service.predict_loan(loan)

        assert result.success
        assert 0.0 <= result.probability <= 1.0
        assert result.predicted_class in (0, 1)
        assert result.model_id == deployed.model_id
        assert deployed_service.registry.get(deployed.model_id).usage_count == 1

    def test_missing_values_filled(self, deployed_service):
        loan = make_loan(make_customer(
            employment_duration_months=None,
            digital_engagement_score=None,
            birth_date=None,
            age=None,
        ))

        result = deployed_service.predict_loan(loan)

        assert result.success

    def test_invalid_record(self, deployed_service):
        result = deployed_service.predict_loan(make_loan(make_customer(monthly_income=-100.0)))

        assert not result.success
        assert result.reason == "invalid_record"

    def test_unreadable_date(self, deployed_service):
        result = deployed_service.predict_loan(make_loan(created_at="12/03/2024"))

        assert result.reason == "invalid_record"

    def test_scoring_failure(self, service):
        record = service.registry.register(make_trained_model(), make_metrics())
        service.deploy_model(record.model_id)

        result = service.predict({'x1': 1.0})

        assert not result.success
        assert result.reason == "scoring_failed"
        assert service.registry.get(record.model_id).usage_count == 0

    def test_non_numeric_feature(self, service):
        record = service.registry.register(make_trained_model(), make_metrics())
        service.deploy_model(record.model_id)

        result = service.predict({'x1': 'high', 'x2': 1.0})

        assert result.reason == "scoring_failed"
        assert "not numeric" in result.error

    @pytest.mark.parametrize("probabilities", [[None], 0.7])
    @patch("credit_lifecycle.models.scoring.requests.post")
    def test_malformed_remote_scores(self, mock_post, probabilities, lifecycle_config):
        external = ExternalTrainerConfig(predict_endpoint="http://trainer.local/api/predict")
        config = _config_with(
            lifecycle_config,
            training=lifecycle_config.training.model_copy(update={'external': external}),
        )
        response = MagicMock()
        response.json.return_value = {'probabilities': probabilities}
        mock_post.return_value = response
        model = TrainedModel(
            algorithm="gradient_boosting",
            method=METHOD_EXTERNAL,
            parameters={'model': {'blob': 'abc'}},
            feature_names=('x1', 'x2'),
        )

        with ModelLifecycleService(config) as service:
            record = service.registry.register(model, make_metrics())
            service.deploy_model(record.model_id)
            result = service.predict({'x1': 1.0, 'x2': 2.0})

        assert not result.success
        assert result.reason == "scoring_failed"
        assert result.probability is None

    def test_predict_feature_vector(self, service):
        record = service.registry.register(make_trained_model(), make_metrics())
        service.deploy_model(record.model_id)

        result = service.predict({'x1': 3.0, 'x2': 1.0})

        assert result.success
        assert result.predicted_class == 1


class TestDeployment:
    """Deploy / retire through the service."""

    def test_deploy_and_replace(self, service, sample_loans):
        first = service.train_new_model(sample_loans)
        second = service.train_new_model(sample_loans)

        a = service.deploy_model(first.model_id)
        b = service.deploy_model(second.model_id)

        assert a.success and b.success
        assert b.previous_model_id == first.model_id
        assert b.deployed_at is not None
        deployed = service.registry.list_models(ModelStatus.DEPLOYED)
        assert [r.model_id for r in deployed] == [second.model_id]
        assert service.registry.get(first.model_id).status == ModelStatus.RETIRED

    def test_deploy_unknown(self, service):
        result = service.deploy_model("model_missing")

        assert not result.success
        assert result.reason == "model_not_found"

    def test_deploy_training_record(self, service):
        record = service.registry.reserve("logistic_regression")

        result = service.deploy_model(record.model_id)

        assert not result.success
        assert result.reason == "invalid_status"
        assert result.status == "training"
        assert service.registry.get_deployed() is None

    def test_retire(self, deployed_service):
        model_id = deployed_service.registry.get_deployed().model_id

        result = deployed_service.retire_model(model_id)

        assert result.success
        assert result.status == "retired"
        assert result.deployed_at is None
        assert deployed_service.registry.get_deployed() is None
        assert deployed_service.predict({}).reason == "no_deployed_model"

    def test_export(self, deployed_service, tmp_path):
        model_id = deployed_service.registry.get_deployed().model_id
        path = tmp_path / "exports" / "model.json"

        document = deployed_service.export_model(model_id, str(path))

        assert document['model_id'] == model_id
        assert document['status'] == 'deployed'
        assert 'exported_at' in document
        assert json.loads(path.read_text())['model_id'] == model_id


class TestMonitoring:
    """Drift, retraining advice and health through the service."""

    def test_drift_without_model(self, service):
        assert service.check_drift([]).status == "no_active_model"

    def test_drift_check_stored(self, deployed_service):
        recent = [
            deployed_service.extractor.extract_features(loan)
            for loan in generate_loans(200, seed=7)
        ]

        report = deployed_service.check_drift(recent)

        assert report.is_assessed
        record = deployed_service.registry.get_deployed()
        assert record.drift_metrics['drift_score'] == pytest.approx(report.drift_score)

    def test_critical_alert(self, lifecycle_config, sample_loans):
        sink = MagicMock()
        with ModelLifecycleService(lifecycle_config, alert_sink=sink) as service:
            outcome = service.train_new_model(sample_loans)
            service.deploy_model(outcome.model_id)
            shifted = [
                service.extractor.extract_features(make_loan(
                    make_customer(monthly_income=50000.0, savings_amount=0.0, existing_debt_amount=0.0),
                    amount=100000.0,
                ))
                for _ in range(50)
            ]

            report = service.check_drift(shifted)

        assert report.status == "critical"
        sink.assert_called_once_with(report)

    def test_should_retrain_without_model(self, service):
        assert service.should_retrain()['should_retrain'] is False

    def test_should_retrain(self, deployed_service):
        result = deployed_service.should_retrain(new_samples=10_000)

        assert result['score'] == 25
        assert result['should_retrain'] is False

    def test_health_report(self, deployed_service):
        report = deployed_service.health_report()

        assert report['model_id'] == deployed_service.registry.get_deployed().model_id
        assert report['status'] in ("healthy", "degraded")
        assert set(report['checks']) == {'model_age', 'usage', 'performance', 'data_drift', 'feature_importance'}
        assert isinstance(report['recommendations'], list)

    def test_realtime_performance_without_model(self, service):
        assert service.analyze_realtime_performance()['performance_status'] == "no_active_model"

    def test_realtime_performance(self, deployed_service, sample_loans):
        for loan in sample_loans[:20]:
            deployed_service.predict_loan(loan)

        report = deployed_service.analyze_realtime_performance()

        assert report['model_id'] == deployed_service.registry.get_deployed().model_id
        assert report['predictions_count'] == 20
        assert report['success_rate'] == 1.0
        assert report['average_execution_time_ms'] >= 0.0
        assert 0.0 <= report['score_distribution']['min'] <= report['score_distribution']['max'] <= 1.0
        assert report['performance_status'] in ("excellent", "good", "fair", "poor")

    def test_realtime_performance_counts_failures(self, service):
        record = service.registry.register(make_trained_model(), make_metrics())
        service.deploy_model(record.model_id)

        service.predict({'x1': 1.0, 'x2': 2.0})
        service.predict({'x1': 'high', 'x2': 2.0})
        service.predict({'x1': None})

        report = service.analyze_realtime_performance()

        assert report['predictions_count'] == 3
        assert report['failed_predictions'] == 2
        assert report['success_rate'] == pytest.approx(1 / 3)
        assert report['performance_status'] == "poor"

    def test_invalid_records_not_logged(self, deployed_service):
        deployed_service.predict_loan(make_loan(make_customer(monthly_income=-100.0)))

        assert deployed_service.analyze_realtime_performance()['performance_status'] == "no_recent_activity"
