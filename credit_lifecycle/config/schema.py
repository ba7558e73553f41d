"""
Pydantic Configuration Schema

Defines all configuration models for the model lifecycle.
Each component receives its own frozen section at construction.
"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, model_validator


class ExtractionConfig(BaseModel):
    """Feature extraction configuration."""

    model_config = {"frozen": True}

    terminal_statuses: List[str] = Field(
        default_factory=lambda: ["completed", "defaulted", "rejected"]
    )
    positive_status: str = "completed"
    employment_categories: Dict[str, int] = Field(
        default_factory=lambda: {
            "permanent": 1,
            "fixed_term": 2,
            "freelance": 3,
            "civil_servant": 4,
            "unemployed": 5,
        }
    )
    log_features: List[str] = Field(
        default_factory=lambda: ["age", "monthly_income", "loan_amount", "savings_amount"]
    )
    ratio_min: float = 0.0
    ratio_max: float = 2.0
    default_term_months: int = Field(default=12, ge=1)

    @model_validator(mode="after")
    def ratio_bounds_valid(self) -> "ExtractionConfig":
        if self.ratio_min >= self.ratio_max:
            raise ValueError(
                f"ratio_min ({self.ratio_min}) must be less than ratio_max ({self.ratio_max})"
            )
        return self


class PreparationConfig(BaseModel):
    """Data cleaning configuration."""

    model_config = {"frozen": True}

    critical_features: List[str] = Field(
        default_factory=lambda: ["monthly_income", "loan_amount", "age"]
    )
    imputation_strategies: Dict[str, Literal["mean", "median", "mode", "zero"]] = Field(
        default_factory=lambda: {
            "employment_duration_months": "mean",
            "digital_engagement_score": "mean",
            "response_time_hours": "median",
            "employment_type_encoded": "mode",
            "previous_loans_count": "zero",
            "previous_defaults_count": "zero",
        }
    )
    default_strategy: Literal["mean", "median", "mode", "zero"] = "mean"
    imputation_defaults: Dict[str, float] = Field(
        default_factory=lambda: {
            "employment_duration_months": 36,
            "digital_engagement_score": 65,
            "response_time_hours": 12,
            "employment_type_encoded": 1,
            "previous_loans_count": 0,
            "previous_defaults_count": 0,
        }
    )
    outlier_removal: bool = True
    iqr_multiplier: float = Field(default=1.5, gt=0.0)
    outlier_min_values: int = Field(default=10, ge=1)
    outlier_exclude_features: List[str] = Field(default_factory=list)


class SplittingConfig(BaseModel):
    """Train/validation splitting configuration."""

    model_config = {"frozen": True}

    validation_ratio: float = Field(default=0.20, gt=0.0, lt=1.0)
    random_state: Optional[int] = 42


class ExternalTrainerConfig(BaseModel):
    """Delegated training backend configuration."""

    model_config = {"frozen": True}

    endpoint: Optional[str] = None
    predict_endpoint: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: float = Field(default=300.0, gt=0.0)
    algorithm: str = "gradient_boosting"
    hyperparameters: Dict[str, Any] = Field(
        default_factory=lambda: {
            "n_estimators": 100,
            "learning_rate": 0.1,
            "max_depth": 6,
        }
    )
    cross_validation_folds: int = Field(default=5, ge=2)

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint)


class TrainingConfig(BaseModel):
    """Model training configuration."""

    model_config = {"frozen": True}

    min_samples: int = Field(default=1000, ge=1)
    learning_rate: float = Field(default=0.01, gt=0.0)
    max_iterations: int = Field(default=1000, ge=1)
    tolerance: float = Field(default=1e-6, gt=0.0)
    external: ExternalTrainerConfig = Field(default_factory=ExternalTrainerConfig)


class EvaluationConfig(BaseModel):
    """Model evaluation configuration."""

    model_config = {"frozen": True}

    classification_threshold: float = Field(default=0.5, ge=0.0, le=1.0)


class RegistryConfig(BaseModel):
    """Model registry configuration."""

    model_config = {"frozen": True}

    performance_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    storage_dir: Optional[str] = None
    max_days_in_production: int = Field(default=90, ge=1)
    min_accuracy: float = Field(default=0.80, ge=0.0, le=1.0)


class DriftConfig(BaseModel):
    """Drift monitoring configuration."""

    model_config = {"frozen": True}

    enabled: bool = True
    critical_threshold: float = Field(default=0.10, ge=0.0)
    warning_threshold: float = Field(default=0.05, ge=0.0)
    monitoring_threshold: float = Field(default=0.02, ge=0.0)
    n_bins: int = Field(default=10, ge=2)
    min_baseline_samples: int = Field(default=50, ge=1)
    min_recent_samples: int = Field(default=30, ge=1)
    retraining_drift_threshold: float = Field(default=0.10, ge=0.0)
    retraining_max_age_days: int = Field(default=60, ge=1)
    retraining_usage_threshold: int = Field(default=1000, ge=0)
    retraining_new_data_threshold: int = Field(default=500, ge=0)
    performance_window: int = Field(default=1000, ge=1)
    performance_window_hours: int = Field(default=24, ge=1)
    slow_prediction_ms: float = Field(default=1000.0, gt=0.0)
    min_score_spread: float = Field(default=0.01, ge=0.0)
    feature_concentration_threshold: float = Field(default=0.6, gt=0.0, le=1.0)

    @model_validator(mode="after")
    def thresholds_ordered(self) -> "DriftConfig":
        if not (self.monitoring_threshold <= self.warning_threshold <= self.critical_threshold):
            raise ValueError(
                "Drift thresholds must satisfy monitoring <= warning <= critical "
                f"(got {self.monitoring_threshold}, {self.warning_threshold}, "
                f"{self.critical_threshold})"
            )
        return self


class TrackingConfig(BaseModel):
    """Training attempt log configuration."""

    model_config = {"frozen": True}

    enabled: bool = False
    log_path: str = "outputs/training_log.csv"


class JobsConfig(BaseModel):
    """Background job configuration."""

    model_config = {"frozen": True}

    max_workers: int = Field(default=1, ge=1)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    handlers: Dict[str, Any] = Field(default_factory=dict)


class LifecycleConfig(BaseModel):
    """Top-level lifecycle configuration combining all sections."""

    model_config = {"frozen": True}

    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    preparation: PreparationConfig = Field(default_factory=PreparationConfig)
    splitting: SplittingConfig = Field(default_factory=SplittingConfig)
    training: TrainingConfig = Field(default_factory=TrainingConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    drift: DriftConfig = Field(default_factory=DriftConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    jobs: JobsConfig = Field(default_factory=JobsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
