"""
Credit Scoring Model Lifecycle

Extraction, preparation, training, evaluation, registry and drift monitoring
for the loan default scoring model.
"""

__version__ = "1.0.0"
__author__ = "Credit Scoring Team"
