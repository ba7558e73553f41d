"""
Dataset Model

Immutable containers for labeled examples. Cleaning and splitting always
produce new Dataset instances; nothing is mutated in place.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import math

import numpy as np
import pandas as pd


FeatureVector = Mapping[str, Optional[float]]

LABEL_COLUMN = "label"


def is_missing(value: Any) -> bool:
    """True for None and NaN."""
    if value is None:
        return True
    try:
        return math.isnan(value)
    except TypeError:
        return False


@dataclass(frozen=True)
class LabeledExample:
    """A feature vector with its binary outcome label."""
    features: FeatureVector
    label: int
    source_id: Any = None

    def __post_init__(self):
        if self.label not in (0, 1):
            raise ValueError(f"Label must be 0 or 1, got {self.label!r}")
        object.__setattr__(self, "label", int(self.label))
        object.__setattr__(self, "features", MappingProxyType(dict(self.features)))

    def value(self, feature: str) -> Optional[float]:
        return self.features.get(feature)


@dataclass(frozen=True)
class Dataset:
    """
    Ordered collection of labeled examples sharing one feature schema.

    Attributes:
        examples: Labeled examples, in extraction order
        feature_names: The fixed feature schema
        metadata: Extraction and cleaning metadata
    """
    examples: Tuple[LabeledExample, ...]
    feature_names: Tuple[str, ...]
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "examples", tuple(self.examples))
        object.__setattr__(self, "feature_names", tuple(self.feature_names))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

        schema = set(self.feature_names)
        for i, example in enumerate(self.examples):
            if set(example.features.keys()) != schema:
                raise ValueError(
                    f"Example {i} does not match the dataset schema "
                    f"({sorted(set(example.features.keys()) ^ schema)})"
                )

    def __len__(self) -> int:
        return len(self.examples)

    def __iter__(self):
        return iter(self.examples)

    @property
    def labels(self) -> np.ndarray:
        return np.array([e.label for e in self.examples], dtype=int)

    @property
    def positive_count(self) -> int:
        return int(sum(e.label for e in self.examples))

    @property
    def negative_count(self) -> int:
        return len(self.examples) - self.positive_count

    def subset(
        self,
        indices: Iterable[int],
        metadata: Optional[Dict[str, Any]] = None
    ) -> "Dataset":
        """Return a new Dataset holding the examples at the given positions."""
        examples = tuple(self.examples[i] for i in indices)
        merged = dict(self.metadata)
        if metadata:
            merged.update(metadata)
        return Dataset(examples=examples, feature_names=self.feature_names, metadata=merged)

    def with_metadata(self, **metadata) -> "Dataset":
        merged = dict(self.metadata)
        merged.update(metadata)
        return replace(self, metadata=merged)

    def to_matrix(self) -> np.ndarray:
        """Feature matrix in schema order. Missing values become NaN."""
        return np.array(
            [
                [np.nan if is_missing(e.features[f]) else float(e.features[f])
                 for f in self.feature_names]
                for e in self.examples
            ],
            dtype=float,
        ).reshape(len(self.examples), len(self.feature_names))

    def to_frame(self) -> pd.DataFrame:
        """Feature frame plus a ``label`` column."""
        df = pd.DataFrame(self.to_matrix(), columns=list(self.feature_names))
        df[LABEL_COLUMN] = self.labels
        return df

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        feature_names: Sequence[str],
        metadata: Optional[Dict[str, Any]] = None,
        source_ids: Optional[Sequence[Any]] = None
    ) -> "Dataset":
        """Build a Dataset from a frame with feature columns and a label column."""
        examples: List[LabeledExample] = []
        for pos, (_, row) in enumerate(df.iterrows()):
            features = {
                f: (None if pd.isna(row[f]) else float(row[f]))
                for f in feature_names
            }
            examples.append(LabeledExample(
                features=features,
                label=int(row[LABEL_COLUMN]),
                source_id=source_ids[pos] if source_ids is not None else None,
            ))
        return cls(examples=tuple(examples), feature_names=tuple(feature_names), metadata=metadata or {})
