"""
Pytest Configuration and Shared Fixtures

Provides common fixtures for all test modules including:
- Lifecycle configurations sized for fast tests
- Synthetic loan and customer records with known properties
- Labeled datasets (separable and noisy)
- Registries with fixed clocks
"""

import sys
import pytest
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List

import numpy as np

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from credit_lifecycle.config.schema import (
    DriftConfig,
    LifecycleConfig,
    PreparationConfig,
    RegistryConfig,
    TrainingConfig,
)
from credit_lifecycle.data.dataset import Dataset, LabeledExample
from credit_lifecycle.data.records import CustomerRecord, LoanRecord, PriorLoan
from credit_lifecycle.evaluation.metrics import compute_metrics
from credit_lifecycle.models.trained_model import METHOD_LOCAL, TrainedModel
from credit_lifecycle.registry.model_registry import ModelRegistry


FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0)


# ===================================================================
# CONFIGURATION FIXTURES
# ===================================================================

@pytest.fixture
def lifecycle_config() -> LifecycleConfig:
    """Small-scale config: low sample minimum, no outlier removal, quick optimizer."""
    return LifecycleConfig(
        preparation=PreparationConfig(outlier_removal=False),
        training=TrainingConfig(min_samples=100, learning_rate=0.01, max_iterations=200),
        registry=RegistryConfig(performance_threshold=0.0),
        drift=DriftConfig(min_baseline_samples=20, min_recent_samples=10),
    )


@pytest.fixture
def sample_config_dict() -> Dict[str, Any]:
    """Minimal valid nested config dict."""
    return {
        "training": {"min_samples": 500, "learning_rate": 0.05},
        "registry": {"performance_threshold": 0.75},
        "drift": {"critical_threshold": 0.2, "warning_threshold": 0.1, "monitoring_threshold": 0.05},
    }


# ===================================================================
# RECORD FIXTURES
# ===================================================================

def make_customer(**overrides) -> CustomerRecord:
    """Customer with complete, plausible data; override any field."""
    fields = dict(
        customer_id="CUST_000001",
        birth_date=datetime(1985, 3, 15).date(),
        employment_duration_months=48,
        number_of_dependents=1,
        employment_status="permanent",
        monthly_income=3000.0,
        monthly_expenses=1500.0,
        savings_amount=6000.0,
        existing_debt_amount=9000.0,
        digital_engagement_score=70.0,
        average_response_time_hours=6.0,
        auto_payment_opted=True,
        loans=[],
    )
    fields.update(overrides)
    return CustomerRecord(**fields)


def make_loan(customer: CustomerRecord = None, **overrides) -> LoanRecord:
    fields = dict(
        loan_id="LOAN_0000001",
        customer=customer or make_customer(),
        amount=12000.0,
        created_at=datetime(2024, 3, 12, 14, 30),
        status="completed",
        term_months=24,
    )
    fields.update(overrides)
    return LoanRecord(**fields)


def generate_loans(n: int, seed: int = 42) -> List[LoanRecord]:
    """Loans whose repayment is driven by the debt burden."""
    rng = np.random.RandomState(seed)
    start = datetime(2023, 1, 1)
    loans = []
    for i in range(n):
        income = float(rng.uniform(1500, 6000))
        debt = float(rng.uniform(0, 3) * income * 12 / 3)
        created_at = start + timedelta(days=int(rng.randint(0, 500)), hours=int(rng.randint(8, 20)))
        customer = make_customer(
            customer_id=f"CUST_{i:06d}",
            birth_date=(created_at - timedelta(days=int(rng.randint(22, 65) * 365.25))).date(),
            employment_duration_months=None if rng.rand() < 0.1 else int(rng.randint(1, 200)),
            monthly_income=income,
            existing_debt_amount=debt,
            savings_amount=float(rng.uniform(0, 4) * income),
            digital_engagement_score=None if rng.rand() < 0.1 else float(rng.uniform(20, 100)),
            auto_payment_opted=bool(rng.rand() < 0.5),
        )
        repaid = debt / (income * 12) < 0.5
        if rng.rand() < 0.1:
            repaid = not repaid
        loans.append(make_loan(
            customer,
            loan_id=f"LOAN_{i:07d}",
            amount=float(rng.uniform(1000, 20000)),
            created_at=created_at,
            status="completed" if repaid else "defaulted",
        ))
    return loans


@pytest.fixture
def customer() -> CustomerRecord:
    return make_customer()


@pytest.fixture
def loan(customer) -> LoanRecord:
    return make_loan(customer)


@pytest.fixture
def sample_loans() -> List[LoanRecord]:
    """300 terminal loans plus a few that must be ignored."""
    loans = generate_loans(300)
    loans.append(make_loan(loan_id="LOAN_ACTIVE", status="active"))
    loans.append(make_loan(loan_id="LOAN_PENDING", status="pending"))
    return loans


@pytest.fixture
def customer_with_history() -> CustomerRecord:
    return make_customer(loans=[
        PriorLoan(status="completed", created_at=datetime(2021, 5, 1)),
        PriorLoan(status="defaulted", created_at=datetime(2022, 8, 1)),
        PriorLoan(status="completed", created_at=datetime(2023, 1, 1)),
        # After the application date; must not count
        PriorLoan(status="defaulted", created_at=datetime(2024, 5, 1)),
    ])


# ===================================================================
# DATASET FIXTURES
# ===================================================================

def make_dataset(X: np.ndarray, y: np.ndarray, feature_names=None) -> Dataset:
    feature_names = feature_names or [f"x{j + 1}" for j in range(X.shape[1])]
    examples = tuple(
        LabeledExample(
            features={name: float(v) for name, v in zip(feature_names, row)},
            label=int(label),
            source_id=i,
        )
        for i, (row, label) in enumerate(zip(X, y))
    )
    return Dataset(examples=examples, feature_names=tuple(feature_names))


@pytest.fixture
def separable_dataset() -> Dataset:
    """Two features, label = 1 iff x1 + x2 > 0, with a margin."""
    np.random.seed(42)
    X = np.random.uniform(-3, 3, size=(600, 2))
    X = X[np.abs(X.sum(axis=1)) > 0.3][:400]
    y = (X.sum(axis=1) > 0).astype(int)
    return make_dataset(X, y)


@pytest.fixture
def clean_dataset_1200() -> Dataset:
    np.random.seed(42)
    X = np.random.normal(0, 1, size=(1200, 3))
    y = (np.random.rand(1200) < 0.3).astype(int)
    return make_dataset(X, y)


# ===================================================================
# MODEL / REGISTRY FIXTURES
# ===================================================================

def make_trained_model(weights=(1.0, -1.0), intercept=0.0, feature_names=("x1", "x2")) -> TrainedModel:
    return TrainedModel(
        algorithm="logistic_regression",
        method=METHOD_LOCAL,
        parameters={'weights': list(weights), 'intercept': intercept},
        feature_names=feature_names,
        feature_importance={'x1': 1.0, 'x2': 1.0},
        training_options={'learning_rate': 0.1},
        training_metrics={'iterations': 10, 'converged': True},
    )


def make_metrics(perfect: bool = True):
    """Accuracy 1.0 when perfect, else 0.5."""
    y_true = np.array([1, 0, 1, 0])
    y_score = np.array([0.9, 0.1, 0.8, 0.2]) if perfect else np.array([0.9, 0.7, 0.2, 0.3])
    return compute_metrics(y_true, y_score)


class FakeClock:
    """Settable time source."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock) -> ModelRegistry:
    """In-memory registry with a fixed clock."""
    return ModelRegistry(RegistryConfig(performance_threshold=0.8), clock=clock)


@pytest.fixture
def trained_model() -> TrainedModel:
    return make_trained_model()


@pytest.fixture
def good_metrics():
    return make_metrics()
