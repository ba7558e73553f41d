#!/usr/bin/env python3
"""
Credit Scoring Model Lifecycle CLI

Trains, deploys, exports and monitors the loan scoring model.

Usage:
    # Train a model from historical loans (JSON list of loan records):
    python scripts/run_lifecycle.py train --loans data/sample/loans.json

    # Train and deploy when the performance gate passes:
    python scripts/run_lifecycle.py train --loans data/sample/loans.json --deploy

    # Override settings:
    python scripts/run_lifecycle.py train \\
        --loans data/sample/loans.json \\
        --max-samples 5000 \\
        --learning-rate 0.05 \\
        --performance-threshold 0.80

    # Deploy / retire / export a registered model:
    python scripts/run_lifecycle.py deploy --model-id model_<id>
    python scripts/run_lifecycle.py export --model-id model_<id> --output exports/model.json

    # Drift check of the deployed model against recent applications:
    python scripts/run_lifecycle.py drift --loans data/sample/recent_loans.json

    # Registry statistics and model health:
    python scripts/run_lifecycle.py status
"""

import sys
import argparse
import json
import logging
from pathlib import Path

# Add project root to path
project_root = str(Path(__file__).resolve().parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from credit_lifecycle.config.loader import load_config
from credit_lifecycle.core.exceptions import LifecycleError
from credit_lifecycle.core.logger import setup_logging
from credit_lifecycle.data.records import LoanRecord
from credit_lifecycle.pipeline.lifecycle import ModelLifecycleService


def parse_args():
    parser = argparse.ArgumentParser(
        description="Credit Scoring Model Lifecycle",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "action",
        choices=["train", "deploy", "retire", "export", "drift", "status"],
        help="Lifecycle action to run",
    )

    # Config file
    parser.add_argument(
        "--config",
        default="config/lifecycle_config.yaml",
        help="Path to YAML config file",
    )

    # Inputs
    parser.add_argument(
        "--loans",
        default=None,
        help="Path to a JSON file with loan records",
    )
    parser.add_argument(
        "--model-id",
        default=None,
        help="Registry model id (deploy / retire / export)",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Output path for export",
    )

    # Training options
    parser.add_argument("--algorithm", default=None, help="Algorithm name")
    parser.add_argument("--max-samples", type=int, default=None, help="Cap on extracted loans")
    parser.add_argument("--start-date", default=None, help="Earliest loan creation date (YYYY-MM-DD)")
    parser.add_argument("--end-date", default=None, help="Latest loan creation date (YYYY-MM-DD)")
    parser.add_argument("--learning-rate", type=float, default=None, help="Gradient descent step size")
    parser.add_argument("--max-iterations", type=int, default=None, help="Gradient descent iteration cap")
    parser.add_argument(
        "--deploy",
        action="store_true",
        default=False,
        help="Deploy the model when training succeeds",
    )

    # Config overrides
    parser.add_argument(
        "--performance-threshold",
        type=float,
        default=None,
        help="Minimum validation accuracy to keep a model",
    )
    parser.add_argument(
        "--storage-dir",
        default=None,
        help="Registry storage directory",
    )
    parser.add_argument(
        "--validation-ratio",
        type=float,
        default=None,
        help="Fraction of cleaned data held out for validation",
    )

    return parser.parse_args()


def _load_loans(path: str):
    with open(path, "r", encoding="utf-8") as f:
        return [LoanRecord.from_dict(item) for item in json.load(f)]


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def main() -> int:
    args = parse_args()

    config_path = args.config if Path(args.config).exists() else None
    config = load_config(
        config_path,
        cli_overrides={
            "registry.performance_threshold": args.performance_threshold,
            "registry.storage_dir": args.storage_dir,
            "splitting.validation_ratio": args.validation_ratio,
        },
    )
    setup_logging(config.logging.model_dump())

    logger = logging.getLogger("run_lifecycle")
    logger.info("Credit Scoring Model Lifecycle: %s", args.action)
    logger.info("Config: %s", config_path or "defaults")

    with ModelLifecycleService(config) as service:
        try:
            if args.action == "train":
                if not args.loans:
                    logger.error("--loans is required for training")
                    return 2
                options = {
                    k: v for k, v in {
                        "algorithm": args.algorithm,
                        "max_samples": args.max_samples,
                        "start_date": args.start_date,
                        "end_date": args.end_date,
                        "learning_rate": args.learning_rate,
                        "max_iterations": args.max_iterations,
                    }.items() if v is not None
                }
                outcome = service.submit_training(_load_loans(args.loans), options).result()
                _print_json(outcome.to_dict())

                if outcome.success and args.deploy:
                    _print_json(service.deploy_model(outcome.model_id).to_dict())
                return 0 if outcome.success else 1

            if args.action in ("deploy", "retire", "export") and not args.model_id:
                logger.error("--model-id is required for %s", args.action)
                return 2

            if args.action == "deploy":
                result = service.deploy_model(args.model_id)
                _print_json(result.to_dict())
                return 0 if result.success else 1

            if args.action == "retire":
                result = service.retire_model(args.model_id)
                _print_json(result.to_dict())
                return 0 if result.success else 1

            if args.action == "export":
                _print_json(service.export_model(args.model_id, args.output))
                return 0

            if args.action == "drift":
                if not args.loans:
                    logger.error("--loans is required for a drift check")
                    return 2
                recent = [service.extractor.extract_features(loan) for loan in _load_loans(args.loans)]
                _print_json(service.check_drift(recent).to_dict())
                return 0

            _print_json({
                "registry": service.registry.statistics(),
                "health": service.health_report(),
                "retraining": service.should_retrain(),
            })
            return 0

        except LifecycleError as e:
            logger.error("Lifecycle action failed: %s", e)
            _print_json(e.to_dict())
            return 1


if __name__ == "__main__":
    sys.exit(main())
