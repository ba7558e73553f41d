"""
Data Splitter

Handles the train/validation split of a cleaned dataset.

The split is a uniform shuffle, not stratified by label. With rare
defaults the validation set can end up with very few positives; callers
that need class balance must stratify before splitting.
"""

from dataclasses import dataclass
from typing import Optional
import math

import numpy as np

from credit_lifecycle.config.schema import SplittingConfig
from credit_lifecycle.core.base import PipelineComponent
from credit_lifecycle.core.exceptions import ConfigurationError
from credit_lifecycle.data.dataset import Dataset


@dataclass(frozen=True)
class DataSplit:
    """Container for the disjoint train/validation datasets."""
    train: Dataset
    validation: Dataset

    @property
    def total(self) -> int:
        return len(self.train) + len(self.validation)


class DatasetSplitter(PipelineComponent):
    """
    Splits a dataset into training and validation subsets.

    Supports:
    - Validation fraction from config or per call
    - Reproducible shuffles with a random seed
    """

    def __init__(self, config: Optional[SplittingConfig] = None, name: Optional[str] = None):
        super().__init__(config or SplittingConfig(), name or "DatasetSplitter")

    def run(self, dataset: Dataset, validation_ratio: Optional[float] = None) -> DataSplit:
        """Run the splitting."""
        return self.split(dataset, validation_ratio)

    def split(
        self,
        dataset: Dataset,
        validation_ratio: Optional[float] = None,
        random_state: Optional[int] = None
    ) -> DataSplit:
        """
        Split a dataset.

        Args:
            dataset: Cleaned dataset
            validation_ratio: Fraction for validation, in (0, 1)
            random_state: Seed overriding the configured one

        Returns:
            DataSplit with |validation| = floor(|dataset| * ratio)

        Raises:
            ConfigurationError: If the ratio is outside (0, 1)
        """
        ratio = self.config.validation_ratio if validation_ratio is None else validation_ratio
        if not 0.0 < ratio < 1.0:
            raise ConfigurationError(
                f"Validation ratio must be in (0, 1), got {ratio}",
                details={'validation_ratio': ratio},
            )

        seed = self.config.random_state if random_state is None else random_state
        rng = np.random.default_rng(seed)

        total = len(dataset)
        # tolerance keeps e.g. 100 * 0.29 (28.999...) at 29
        validation_size = math.floor(total * ratio + 1e-9)
        train_size = total - validation_size

        indices = rng.permutation(total)
        train_indices = indices[:train_size]
        validation_indices = indices[train_size:]

        split = DataSplit(
            train=dataset.subset(train_indices, {'split': 'train', 'validation_ratio': ratio}),
            validation=dataset.subset(validation_indices, {'split': 'validation', 'validation_ratio': ratio}),
        )

        self.logger.info(
            f"Split {total:,} samples: train={len(split.train):,}, "
            f"validation={len(split.validation):,} "
            f"(validation positives={split.validation.positive_count:,})"
        )
        return split
