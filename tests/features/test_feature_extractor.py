"""
Tests for FeatureExtractor
"""

import math
from datetime import datetime

import numpy as np
import pytest

from conftest import make_customer, make_loan

from credit_lifecycle.config.schema import ExtractionConfig
from credit_lifecycle.core.exceptions import FeatureExtractionError
from credit_lifecycle.data.records import PriorLoan
from credit_lifecycle.features.feature_extractor import (
    BASE_FEATURES,
    RATIO_FEATURES,
    FeatureExtractor,
)


@pytest.fixture
def extractor():
    return FeatureExtractor()


class TestFeatureSchema:
    """Fixed feature schema."""

    def test_schema_includes_log_companions(self, extractor):
        assert extractor.feature_names[:len(BASE_FEATURES)] == BASE_FEATURES
        assert extractor.feature_names[len(BASE_FEATURES):] == [
            'age_log', 'monthly_income_log', 'loan_amount_log', 'savings_amount_log'
        ]

    def test_vector_matches_schema(self, extractor, loan):
        features = extractor.extract_features(loan)

        assert list(features.keys()) == extractor.feature_names


class TestExtractFeatures:
    """Single-record extraction."""

    def test_demographics(self, extractor, loan):
        features = extractor.extract_features(loan)

        # Born 1985-03-15, applied 2024-03-12: birthday not reached yet
        assert features['age'] == 38.0
        assert features['employment_duration_months'] == 48.0
        assert features['number_of_dependents'] == 1.0
        assert features['employment_type_encoded'] == 1.0

    def test_age_fallback_to_stated_age(self, extractor):
        loan = make_loan(make_customer(birth_date=None, age=52))

        assert extractor.extract_features(loan)['age'] == 52.0

    def test_missing_age_is_none(self, extractor):
        loan = make_loan(make_customer(birth_date=None, age=None))

        assert extractor.extract_features(loan)['age'] is None
        assert extractor.extract_features(loan)['age_log'] == 0.0

    def test_unknown_employment_encodes_zero(self, extractor):
        loan = make_loan(make_customer(employment_status="astronaut"))

        assert extractor.extract_features(loan)['employment_type_encoded'] == 0.0

    def test_ratios(self, extractor, loan):
        features = extractor.extract_features(loan)

        assert features['debt_to_income_ratio'] == pytest.approx(9000 / 36000)
        assert features['loan_to_income_ratio'] == pytest.approx(12000 / 36000)
        # 6000 / 3000 = 2.0, at the cap
        assert features['savings_to_income_ratio'] == pytest.approx(2.0)

    def test_ratios_clamped(self, extractor):
        loan = make_loan(
            make_customer(monthly_income=100.0, existing_debt_amount=1e9, savings_amount=1e9),
            amount=1e9,
        )

        features = extractor.extract_features(loan)

        for name in RATIO_FEATURES:
            assert features[name] == 2.0

    def test_zero_income_ratios(self, extractor):
        loan = make_loan(make_customer(monthly_income=0.0))

        features = extractor.extract_features(loan)

        assert features['debt_to_income_ratio'] == 1.0
        assert features['loan_to_income_ratio'] == 1.0
        assert features['savings_to_income_ratio'] == 0.0

    @pytest.mark.parametrize("income", [0.0, 0.01, 1.0, 1e3, 1e7])
    @pytest.mark.parametrize("debt", [0.0, 1e2, 1e8])
    def test_ratios_in_bounds(self, extractor, income, debt):
        loan = make_loan(
            make_customer(monthly_income=income, existing_debt_amount=debt, savings_amount=debt),
            amount=debt,
        )

        features = extractor.extract_features(loan)

        for name in RATIO_FEATURES:
            assert 0.0 <= features[name] <= 2.0

    def test_credit_history_before_application_only(self, extractor, customer_with_history):
        features = extractor.extract_features(make_loan(customer_with_history))

        assert features['previous_loans_count'] == 3.0
        assert features['previous_defaults_count'] == 1.0
        assert features['previous_completed_count'] == 2.0

    def test_temporal(self, extractor, loan):
        features = extractor.extract_features(loan)

        assert features['application_month'] == 3.0
        assert features['application_day_of_week'] == 2.0  # Tuesday
        assert features['application_hour'] == 14.0

    def test_behavioural(self, extractor):
        loan = make_loan(make_customer(
            digital_engagement_score=None,
            average_response_time_hours=3.5,
            auto_payment_opted=False,
        ))

        features = extractor.extract_features(loan)

        assert features['digital_engagement_score'] is None
        assert features['response_time_hours'] == 3.5
        assert features['auto_payment_opted'] == 0.0

    def test_log_companions(self, extractor, loan):
        features = extractor.extract_features(loan)

        assert features['monthly_income_log'] == pytest.approx(math.log(3001.0))
        assert features['loan_amount_log'] == pytest.approx(math.log(12001.0))

    def test_default_term(self, extractor):
        loan = make_loan(term_months=None)

        assert extractor.extract_features(loan)['loan_term_months'] == 12.0

    def test_negative_income_rejected(self, extractor):
        loan = make_loan(make_customer(monthly_income=-5.0))

        with pytest.raises(FeatureExtractionError):
            extractor.extract_features(loan)


class TestLabels:
    """Binary repayment label."""

    @pytest.mark.parametrize("status,label", [
        ("completed", 1),
        ("defaulted", 0),
        ("rejected", 0),
    ])
    def test_label(self, extractor, status, label):
        example = extractor.extract(make_loan(status=status))

        assert example.label == label
        assert example.source_id == "LOAN_0000001"

    def test_custom_positive_status(self):
        extractor = FeatureExtractor(ExtractionConfig(positive_status="repaid"))

        assert extractor.label_for("repaid") == 1
        assert extractor.label_for("completed") == 0


class TestExtractDataset:
    """Batch extraction."""

    def test_only_terminal_loans(self, extractor, sample_loans):
        dataset = extractor.extract_dataset(sample_loans)

        assert len(dataset) == 300
        assert dataset.metadata['total_loans_processed'] == 300
        assert dataset.metadata['success_rate'] == 1.0
        assert dataset.metadata['feature_count'] == len(extractor.feature_names)

    def test_bad_records_skipped(self, extractor):
        loans = [
            make_loan(loan_id="ok"),
            make_loan(make_customer(monthly_income=-1.0), loan_id="bad"),
        ]

        dataset = extractor.extract_dataset(loans)

        assert [e.source_id for e in dataset] == ["ok"]
        assert dataset.metadata['failed_samples'] == 1
        assert dataset.metadata['success_rate'] == 0.5

    def test_unreadable_date_skipped(self, extractor):
        loans = [
            make_loan(loan_id="ok", created_at=datetime(2024, 1, 1)),
            make_loan(loan_id="bad", created_at="not-a-date"),
        ]

        dataset = extractor.extract_dataset(loans)

        assert [e.source_id for e in dataset] == ["ok"]
        assert dataset.metadata['failed_samples'] == 1
        assert dataset.metadata['total_loans_processed'] == 2

    def test_aware_and_naive_dates_mixed(self, extractor):
        loans = [
            make_loan(loan_id="naive", created_at=datetime(2024, 1, 1)),
            make_loan(loan_id="aware", created_at="2024-02-01T00:00:00+00:00"),
            make_loan(loan_id="zulu", created_at="2024-03-01T00:00:00Z"),
        ]

        dataset = extractor.extract_dataset(loans, start_date="2023-12-31T23:00:00-01:00")

        assert [e.source_id for e in dataset] == ["zulu", "aware", "naive"]
        assert dataset.metadata['failed_samples'] == 0

    def test_unreadable_prior_loan_date(self, extractor):
        customer = make_customer(loans=[PriorLoan(status="completed", created_at="yesterday")])

        with pytest.raises(FeatureExtractionError, match="Unreadable loan date"):
            extractor.extract_features(make_loan(customer))

    def test_newest_first_with_cap(self, extractor):
        loans = [
            make_loan(loan_id=f"L{day}", created_at=datetime(2024, 1, day))
            for day in range(1, 11)
        ]

        dataset = extractor.extract_dataset(loans, max_samples=3)

        assert [e.source_id for e in dataset] == ["L10", "L9", "L8"]

    def test_date_window(self, extractor):
        loans = [
            make_loan(loan_id=f"L{day}", created_at=datetime(2024, 1, day))
            for day in range(1, 11)
        ]

        dataset = extractor.extract_dataset(loans, start_date="2024-01-03", end_date="2024-01-05")

        assert sorted(e.source_id for e in dataset) == ["L3", "L4", "L5"]

    def test_label_counts(self, extractor, sample_loans):
        dataset = extractor.extract_dataset(sample_loans)

        assert dataset.metadata['positive_samples'] == dataset.positive_count
        assert dataset.metadata['negative_samples'] == dataset.negative_count
        assert 0 < dataset.positive_count < len(dataset)

    def test_ratio_bounds_over_batch(self, extractor, sample_loans):
        dataset = extractor.extract_dataset(sample_loans)
        X = dataset.to_frame()

        for name in RATIO_FEATURES:
            assert X[name].between(0.0, 2.0).all()

    def test_empty_input(self, extractor):
        dataset = extractor.extract_dataset([])

        assert len(dataset) == 0
        assert dataset.metadata['success_rate'] == 0.0
