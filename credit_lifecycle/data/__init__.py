"""
Data Module

Records, the Dataset model, cleaning and splitting.
"""

from credit_lifecycle.data.records import CustomerRecord, LoanRecord, PriorLoan
from credit_lifecycle.data.dataset import Dataset, LabeledExample, FeatureVector
from credit_lifecycle.data.data_preparer import DataPreparer
from credit_lifecycle.data.data_splitter import DatasetSplitter, DataSplit

__all__ = [
    "CustomerRecord",
    "LoanRecord",
    "PriorLoan",
    "Dataset",
    "LabeledExample",
    "FeatureVector",
    "DataPreparer",
    "DatasetSplitter",
    "DataSplit",
]
