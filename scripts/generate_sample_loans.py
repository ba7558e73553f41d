"""
Sample Loan Generator

Generates synthetic loan records for trying out the lifecycle pipeline.
Repayment probability depends on income, debt burden, savings and prior
defaults, so a trained model has real signal to find.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List
import argparse
import json

import numpy as np
from scipy.special import expit


# Seed for reproducibility
RANDOM_SEED = 42

EMPLOYMENT_TYPES = {
    'permanent': 0.55,
    'fixed_term': 0.15,
    'freelance': 0.12,
    'civil_servant': 0.13,
    'unemployed': 0.05,
}


def generate_customer(rng: np.random.Generator, index: int, application_date: datetime) -> Dict[str, Any]:
    age = int(rng.integers(21, 70))
    birth_date = application_date - timedelta(days=int(age * 365.25) + int(rng.integers(0, 365)))
    employment = rng.choice(list(EMPLOYMENT_TYPES), p=list(EMPLOYMENT_TYPES.values()))
    income = float(np.round(rng.lognormal(mean=8.0, sigma=0.4), 2))

    n_prior = int(rng.poisson(1.2))
    prior = []
    for _ in range(n_prior):
        created = application_date - timedelta(days=int(rng.integers(60, 1500)))
        status = 'defaulted' if rng.random() < 0.12 else 'completed'
        prior.append({'status': status, 'created_at': created.isoformat()})

    return {
        'customer_id': f"CUST_{index:06d}",
        'birth_date': birth_date.date().isoformat(),
        'employment_duration_months': None if rng.random() < 0.05 else int(rng.integers(0, 240)),
        'number_of_dependents': int(rng.integers(0, 5)),
        'employment_status': str(employment),
        'monthly_income': income,
        'monthly_expenses': float(np.round(income * rng.uniform(0.3, 0.8), 2)),
        'savings_amount': float(np.round(rng.exponential(income * 2), 2)),
        'existing_debt_amount': float(np.round(rng.exponential(income * 3), 2)),
        'digital_engagement_score': None if rng.random() < 0.1 else float(rng.uniform(20, 100)),
        'average_response_time_hours': None if rng.random() < 0.1 else float(rng.exponential(10)),
        'auto_payment_opted': bool(rng.random() < 0.4),
        'loans': prior,
    }


def repayment_probability(customer: Dict[str, Any], amount: float) -> float:
    income = customer['monthly_income']
    debt_ratio = customer['existing_debt_amount'] / (income * 12)
    loan_ratio = amount / (income * 12)
    savings_ratio = customer['savings_amount'] / income
    defaults = sum(1 for l in customer['loans'] if l['status'] == 'defaulted')

    z = (
        1.5
        - 2.0 * debt_ratio
        - 1.5 * loan_ratio
        + 0.3 * min(savings_ratio, 5.0)
        - 1.2 * defaults
        + (0.5 if customer['auto_payment_opted'] else 0.0)
        - (1.0 if customer['employment_status'] == 'unemployed' else 0.0)
    )
    return float(expit(z))


def generate_loans(n_loans: int = 2000, seed: int = RANDOM_SEED) -> List[Dict[str, Any]]:
    """
    Generate loan records with customers.

    Args:
        n_loans: Number of loans
        seed: Random seed

    Returns:
        List of loan dicts accepted by LoanRecord.from_dict
    """
    rng = np.random.default_rng(seed)
    start = datetime(2023, 1, 1)

    loans = []
    for i in range(n_loans):
        created_at = start + timedelta(
            days=int(rng.integers(0, 720)),
            hours=int(rng.integers(8, 22)),
            minutes=int(rng.integers(0, 60)),
        )
        customer = generate_customer(rng, i, created_at)
        amount = float(np.round(rng.uniform(1000, 30000), -2))

        p_repay = repayment_probability(customer, amount)
        if rng.random() < p_repay:
            status = 'completed'
        else:
            status = 'rejected' if rng.random() < 0.2 else 'defaulted'

        loans.append({
            'loan_id': f"LOAN_{i:07d}",
            'customer': customer,
            'amount': amount,
            'term_months': int(rng.choice([6, 12, 24, 36, 48, 60])),
            'created_at': created_at.isoformat(),
            'status': status,
        })

    return loans


def main():
    parser = argparse.ArgumentParser(
        description="Generate synthetic loan records"
    )
    parser.add_argument(
        "--n-loans",
        type=int,
        default=2000,
        help="Number of loans to generate"
    )
    parser.add_argument(
        "--output",
        default="data/sample/loans.json",
        help="Output JSON path"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=RANDOM_SEED,
        help="Random seed"
    )
    args = parser.parse_args()

    loans = generate_loans(args.n_loans, args.seed)

    out = Path(args.output)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w") as f:
        json.dump(loans, f, indent=2)

    completed = sum(1 for l in loans if l['status'] == 'completed')
    print(f"Generated {len(loans):,} loans ({completed / len(loans):.1%} repaid) -> {out}")


if __name__ == "__main__":
    main()
