"""
Loan and Customer Records

Raw records supplied by the surrounding loan platform. They are plain
containers; all feature logic lives in the FeatureExtractor.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Union


DateLike = Union[str, date, datetime, None]


def parse_datetime(value: DateLike) -> Optional[datetime]:
    """
    Parse an ISO string, date or datetime into a naive datetime (or None).

    Timezone-aware values are converted to UTC and made naive so that
    dates from different sources compare with each other.

    Raises:
        ValueError: Unparseable string
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date(value: DateLike) -> Optional[date]:
    parsed = parse_datetime(value)
    return parsed.date() if parsed else None


@dataclass(frozen=True)
class PriorLoan:
    """A previous loan of the same customer."""
    status: str
    created_at: datetime

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriorLoan":
        return cls(
            status=str(data["status"]),
            created_at=parse_datetime(data["created_at"]),
        )


@dataclass(frozen=True)
class CustomerRecord:
    """Customer attributes used for scoring. Any field may be missing."""
    customer_id: Any = None
    birth_date: Optional[date] = None
    age: Optional[float] = None
    employment_duration_months: Optional[float] = None
    number_of_dependents: Optional[int] = None
    employment_status: Optional[str] = None
    monthly_income: Optional[float] = None
    monthly_expenses: Optional[float] = None
    savings_amount: Optional[float] = None
    existing_debt_amount: Optional[float] = None
    digital_engagement_score: Optional[float] = None
    average_response_time_hours: Optional[float] = None
    auto_payment_opted: bool = False
    loans: List[PriorLoan] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomerRecord":
        return cls(
            customer_id=data.get("customer_id"),
            birth_date=parse_date(data.get("birth_date")),
            age=data.get("age"),
            employment_duration_months=data.get("employment_duration_months"),
            number_of_dependents=data.get("number_of_dependents"),
            employment_status=data.get("employment_status"),
            monthly_income=data.get("monthly_income"),
            monthly_expenses=data.get("monthly_expenses"),
            savings_amount=data.get("savings_amount"),
            existing_debt_amount=data.get("existing_debt_amount"),
            digital_engagement_score=data.get("digital_engagement_score"),
            average_response_time_hours=data.get("average_response_time_hours"),
            auto_payment_opted=bool(data.get("auto_payment_opted", False)),
            loans=[PriorLoan.from_dict(l) for l in data.get("loans", [])],
        )


@dataclass(frozen=True)
class LoanRecord:
    """A loan application together with its customer."""
    loan_id: Any
    customer: CustomerRecord
    amount: Optional[float]
    created_at: datetime
    status: str
    term_months: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoanRecord":
        return cls(
            loan_id=data.get("loan_id"),
            customer=CustomerRecord.from_dict(data.get("customer", {})),
            amount=data.get("amount"),
            created_at=parse_datetime(data["created_at"]),
            status=str(data.get("status", "")),
            term_months=data.get("term_months"),
        )
