"""
Data Preparer

Cleans an extracted dataset: drops rows missing critical features, imputes
the remaining gaps and removes IQR outliers. Always returns a new Dataset
with the cleaning statistics and the imputation table in its metadata.
"""

from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from credit_lifecycle.config.schema import PreparationConfig
from credit_lifecycle.core.base import PipelineComponent
from credit_lifecycle.data.dataset import Dataset


class DataPreparer(PipelineComponent):
    """
    Cleans training data before splitting.

    Steps:
    1. Drop examples whose critical features are missing or exactly zero
    2. Impute remaining missing values per feature strategy
       (mean, median, mode, zero), with domain defaults as fallback
    3. Remove outliers with Tukey's IQR rule, per feature
    """

    def __init__(self, config: Optional[PreparationConfig] = None, name: Optional[str] = None):
        super().__init__(config or PreparationConfig(), name or "DataPreparer")

    def run(self, dataset: Dataset) -> Dataset:
        """Run the cleaning."""
        return self.prepare(dataset)

    def prepare(self, dataset: Dataset) -> Dataset:
        """
        Clean a raw dataset.

        Args:
            dataset: Dataset produced by the FeatureExtractor

        Returns:
            New, cleaned Dataset (never larger than the input)
        """
        self._start_execution()

        feature_names = list(dataset.feature_names)
        source_ids = [e.source_id for e in dataset.examples]
        total = len(dataset)

        df = dataset.to_frame()
        df['_source_pos'] = np.arange(total)

        # Step 1: critical features
        df = self._drop_missing_critical(df)
        after_critical = len(df)

        # Step 2: imputation
        df, imputation = self._impute(df, feature_names)

        # Step 3: outliers
        bounds: Dict[str, Dict[str, float]] = {}
        if self.config.outlier_removal:
            df, bounds = self._remove_outliers(df, feature_names)

        kept = len(df)
        metadata = dict(dataset.metadata)
        metadata.update({
            'cleaning_applied': True,
            'outlier_detection': self.config.outlier_removal,
            'original_samples': total,
            'after_critical_filter': after_critical,
            'outliers_removed': after_critical - kept,
            'cleaned_samples': kept,
            'cleaning_ratio': kept / total if total else 0.0,
            'imputation_strategies': {
                f: self._strategy_for(f) for f in feature_names
            },
            'imputation_values': imputation,
            'outlier_bounds': bounds,
        })

        self.logger.info(
            f"Data cleaning completed: {total:,} -> {kept:,} samples "
            f"({total - after_critical:,} missing critical, "
            f"{after_critical - kept:,} outliers)"
        )

        positions = df['_source_pos'].tolist()
        cleaned = Dataset.from_frame(
            df.drop(columns=['_source_pos']),
            feature_names,
            metadata=metadata,
            source_ids=[source_ids[p] for p in positions],
        )

        self._end_execution()
        return cleaned

    def _drop_missing_critical(self, df: pd.DataFrame) -> pd.DataFrame:
        """Zero counts as missing for critical features."""
        mask = pd.Series(True, index=df.index)
        for feature in self.config.critical_features:
            if feature not in df.columns:
                continue
            mask &= df[feature].notna() & (df[feature] != 0)
        return df[mask]

    def _strategy_for(self, feature: str) -> str:
        return self.config.imputation_strategies.get(feature, self.config.default_strategy)

    def _impute(
        self,
        df: pd.DataFrame,
        feature_names: List[str]
    ) -> Tuple[pd.DataFrame, Dict[str, Dict[str, Any]]]:
        """Fill missing values. Returns the frame and the fill table used."""
        df = df.copy()
        table: Dict[str, Dict[str, Any]] = {}

        for feature in feature_names:
            missing = int(df[feature].isna().sum())
            if missing == 0:
                continue

            strategy = self._strategy_for(feature)
            value, source = self._fill_value(df[feature].dropna(), feature, strategy)
            df[feature] = df[feature].fillna(value)

            table[feature] = {
                'strategy': strategy,
                'value': value,
                'source': source,
                'missing_count': missing,
            }
            self.logger.debug(
                f"Imputed {missing} values of {feature} with {value} ({strategy}, {source})"
            )

        return df, table

    def _fill_value(
        self,
        present: pd.Series,
        feature: str,
        strategy: str
    ) -> Tuple[float, str]:
        if strategy == 'zero':
            return 0.0, 'strategy'

        if len(present) > 0:
            if strategy == 'mean':
                return float(present.mean()), 'aggregate'
            if strategy == 'median':
                return float(present.median()), 'aggregate'
            if strategy == 'mode':
                return float(present.mode().iloc[0]), 'aggregate'

        if feature in self.config.imputation_defaults:
            return float(self.config.imputation_defaults[feature]), 'default'

        return (1.0 if strategy == 'mode' else 0.0), 'fallback'

    def _remove_outliers(
        self,
        df: pd.DataFrame,
        feature_names: List[str]
    ) -> Tuple[pd.DataFrame, Dict[str, Dict[str, float]]]:
        """Drop a row if any checked feature falls outside [Q1 - k*IQR, Q3 + k*IQR]."""
        k = self.config.iqr_multiplier
        outlier = pd.Series(False, index=df.index)
        bounds: Dict[str, Dict[str, float]] = {}

        for feature in feature_names:
            if feature in self.config.outlier_exclude_features:
                continue

            values = np.sort(df[feature].dropna().to_numpy(dtype=float))
            count = len(values)
            if count <= self.config.outlier_min_values:
                continue

            q1, q3 = self.quartiles(values)
            iqr = q3 - q1
            lower, upper = q1 - k * iqr, q3 + k * iqr
            bounds[feature] = {'q1': q1, 'q3': q3, 'lower': lower, 'upper': upper}

            outlier |= (df[feature] < lower) | (df[feature] > upper)

        return df[~outlier], bounds

    def fill_values(self, dataset: Dataset) -> Dict[str, float]:
        """
        Per-feature fill value under the configured strategies.

        Computed on a cleaned training set and stored with the model, so
        inference fills gaps exactly as training would have.
        """
        df = dataset.to_frame()
        return {
            feature: self._fill_value(df[feature].dropna(), feature, self._strategy_for(feature))[0]
            for feature in dataset.feature_names
        }

    @staticmethod
    def quartiles(sorted_values: np.ndarray) -> Tuple[float, float]:
        """Nearest-rank quartiles: values at int(n*0.25) and int(n*0.75)."""
        count = len(sorted_values)
        return float(sorted_values[int(count * 0.25)]), float(sorted_values[int(count * 0.75)])
