"""
Feature Extractor

Turns one (loan, customer) pair into a fixed-schema feature vector and a
binary repayment label. Batch extraction skips records that fail and keeps
going.
"""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
import math

from credit_lifecycle.config.schema import ExtractionConfig
from credit_lifecycle.core.base import PipelineComponent
from credit_lifecycle.core.exceptions import FeatureExtractionError
from credit_lifecycle.data.dataset import Dataset, LabeledExample
from credit_lifecycle.data.records import CustomerRecord, LoanRecord, parse_datetime


BASE_FEATURES = [
    # Demographic
    'age',
    'employment_duration_months',
    'number_of_dependents',
    'employment_type_encoded',
    # Financial
    'monthly_income',
    'monthly_expenses',
    'savings_amount',
    'existing_debt_amount',
    'loan_amount',
    'loan_term_months',
    # Ratios
    'debt_to_income_ratio',
    'loan_to_income_ratio',
    'savings_to_income_ratio',
    # Credit history
    'previous_loans_count',
    'previous_defaults_count',
    'previous_completed_count',
    # Temporal
    'application_month',
    'application_day_of_week',
    'application_hour',
    # Behavioural
    'digital_engagement_score',
    'response_time_hours',
    'auto_payment_opted',
]

RATIO_FEATURES = ['debt_to_income_ratio', 'loan_to_income_ratio', 'savings_to_income_ratio']


def _years_between(start: date, end: date) -> int:
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return years


class FeatureExtractor(PipelineComponent):
    """
    Feature extraction for loan default scoring.

    Generates:
    - Demographic features (age at application, employment)
    - Financial features and income ratios clamped to [0, 2]
    - Prior credit history counts
    - Application timing features
    - Behavioural signals
    - log(x+1) companions for skewed monetary/age features
    """

    def __init__(self, config: Optional[ExtractionConfig] = None, name: Optional[str] = None):
        super().__init__(config or ExtractionConfig(), name or "FeatureExtractor")
        self.feature_names: List[str] = BASE_FEATURES + [
            f"{f}_log" for f in self.config.log_features
        ]

    def run(self, loans: Iterable[LoanRecord], **kwargs) -> Dataset:
        """Run batch extraction."""
        return self.extract_dataset(loans, **kwargs)

    def label_for(self, status: str) -> int:
        """1 iff the loan was fully repaid."""
        return 1 if status == self.config.positive_status else 0

    def extract(
        self,
        loan: LoanRecord,
        customer: Optional[CustomerRecord] = None
    ) -> LabeledExample:
        """
        Extract the feature vector and label for one loan.

        Args:
            loan: Loan in a terminal status
            customer: Customer owning the loan (defaults to loan.customer)

        Returns:
            LabeledExample

        Raises:
            FeatureExtractionError: If the record is malformed
        """
        customer = customer or loan.customer
        features = self.extract_features(loan, customer)
        return LabeledExample(
            features=features,
            label=self.label_for(loan.status),
            source_id=loan.loan_id,
        )

    def extract_features(
        self,
        loan: LoanRecord,
        customer: Optional[CustomerRecord] = None
    ) -> Dict[str, Optional[float]]:
        """
        Extract the feature vector for one loan (training or inference).

        Missing raw values are returned as None so the preparer can drop
        or impute them.
        """
        customer = customer or loan.customer
        if customer is None:
            raise FeatureExtractionError("Loan has no customer", loan_id=loan.loan_id)
        if loan.created_at is None:
            raise FeatureExtractionError("Loan has no creation date", loan_id=loan.loan_id)

        try:
            created_at = parse_datetime(loan.created_at)
            previous = [
                l for l in customer.loans
                if l.created_at is not None and parse_datetime(l.created_at) < created_at
            ]
        except (TypeError, ValueError) as e:
            raise FeatureExtractionError(f"Unreadable loan date: {e}", loan_id=loan.loan_id, cause=e)
        monthly_income = self._non_negative(customer.monthly_income, 'monthly_income', loan)
        loan_amount = self._non_negative(loan.amount, 'loan_amount', loan)

        features: Dict[str, Optional[float]] = {}

        # Demographic
        features['age'] = self._age(customer, created_at)
        features['employment_duration_months'] = self._optional(customer.employment_duration_months)
        features['number_of_dependents'] = float(customer.number_of_dependents or 0)
        features['employment_type_encoded'] = float(
            self.config.employment_categories.get(customer.employment_status or "", 0)
        )

        # Financial
        features['monthly_income'] = monthly_income
        features['monthly_expenses'] = float(customer.monthly_expenses or 0)
        features['savings_amount'] = float(customer.savings_amount or 0)
        features['existing_debt_amount'] = float(customer.existing_debt_amount or 0)
        features['loan_amount'] = loan_amount
        features['loan_term_months'] = float(loan.term_months or self.config.default_term_months)

        features.update(self._ratios(
            monthly_income or 0.0,
            features['existing_debt_amount'],
            loan_amount or 0.0,
            features['savings_amount'],
        ))

        # Credit history: only loans created strictly before this one
        features['previous_loans_count'] = float(len(previous))
        features['previous_defaults_count'] = float(
            sum(1 for l in previous if l.status == 'defaulted')
        )
        features['previous_completed_count'] = float(
            sum(1 for l in previous if l.status == 'completed')
        )

        # Temporal
        features['application_month'] = float(created_at.month)
        features['application_day_of_week'] = float(created_at.isoweekday())
        features['application_hour'] = float(created_at.hour)

        # Behavioural
        features['digital_engagement_score'] = self._optional(customer.digital_engagement_score)
        features['response_time_hours'] = self._optional(customer.average_response_time_hours)
        features['auto_payment_opted'] = 1.0 if customer.auto_payment_opted else 0.0

        # Skew reduction; the companion stays 0.0 unless the base is positive
        for feature in self.config.log_features:
            base = features.get(feature)
            features[f"{feature}_log"] = math.log(base + 1) if base is not None and base > 0 else 0.0

        return {name: features[name] for name in self.feature_names}

    def extract_dataset(
        self,
        loans: Iterable[LoanRecord],
        start_date: Any = None,
        end_date: Any = None,
        max_samples: Optional[int] = None
    ) -> Dataset:
        """
        Extract a labeled dataset from historical loans.

        Only loans in a terminal status are used. Newest loans come first,
        so ``max_samples`` keeps the most recent history.

        Args:
            loans: Loan records with their customers
            start_date: Keep loans created at or after this date
            end_date: Keep loans created at or before this date
            max_samples: Cap on the number of loans considered

        Returns:
            Dataset with extraction metadata
        """
        self._start_execution()

        start = parse_datetime(start_date)
        end = parse_datetime(end_date)

        dated: List[Tuple[datetime, LoanRecord]] = []
        failed = 0
        for loan in loans:
            if loan.status not in self.config.terminal_statuses or loan.created_at is None:
                continue
            try:
                created_at = parse_datetime(loan.created_at)
            except (TypeError, ValueError) as e:
                failed += 1
                self.logger.warning(f"Skipping loan {loan.loan_id}: bad creation date ({e})")
                continue
            if (start is None or created_at >= start) and (end is None or created_at <= end):
                dated.append((created_at, loan))

        dated.sort(key=lambda pair: pair[0], reverse=True)
        candidates = [loan for _, loan in dated]
        if max_samples is not None:
            candidates = candidates[:max_samples]

        examples: List[LabeledExample] = []
        for loan in candidates:
            try:
                examples.append(self.extract(loan))
            except Exception as e:
                failed += 1
                self.logger.warning(
                    f"Failed to extract features for loan {loan.loan_id}: {e}"
                )
        processed = len(examples) + failed

        positives = sum(e.label for e in examples)
        metadata = {
            'extraction_timestamp': datetime.now().isoformat(),
            'total_loans_processed': processed,
            'extracted_samples': len(examples),
            'failed_samples': failed,
            'success_rate': len(examples) / processed if processed else 0.0,
            'positive_samples': positives,
            'negative_samples': len(examples) - positives,
            'feature_count': len(self.feature_names),
        }

        self.logger.info(
            f"Extracted {len(examples):,} samples from {processed:,} loans "
            f"({positives:,} repaid, {len(examples) - positives:,} not repaid, "
            f"{failed:,} skipped)"
        )

        self._end_execution()
        return Dataset(examples=tuple(examples), feature_names=tuple(self.feature_names), metadata=metadata)

    def _ratios(
        self,
        monthly_income: float,
        debt: float,
        loan_amount: float,
        savings: float
    ) -> Dict[str, float]:
        if monthly_income > 0:
            annual_income = monthly_income * 12
            ratios = {
                'debt_to_income_ratio': debt / annual_income,
                'loan_to_income_ratio': loan_amount / annual_income,
                'savings_to_income_ratio': savings / monthly_income,
            }
        else:
            # No income: signal maximal debt/loan risk, minimal savings cushion
            ratios = {
                'debt_to_income_ratio': 1.0,
                'loan_to_income_ratio': 1.0,
                'savings_to_income_ratio': 0.0,
            }
        return {
            name: min(self.config.ratio_max, max(self.config.ratio_min, value))
            for name, value in ratios.items()
        }

    @staticmethod
    def _age(customer: CustomerRecord, at: datetime) -> Optional[float]:
        if customer.birth_date is not None:
            return float(_years_between(customer.birth_date, at.date()))
        if customer.age is not None:
            return float(customer.age)
        return None

    @staticmethod
    def _optional(value: Any) -> Optional[float]:
        return None if value is None else float(value)

    @staticmethod
    def _non_negative(value: Any, field_name: str, loan: LoanRecord) -> Optional[float]:
        if value is None:
            return None
        value = float(value)
        if value < 0:
            raise FeatureExtractionError(
                f"Negative {field_name}: {value}",
                loan_id=loan.loan_id,
                details={'field': field_name},
            )
        return value
