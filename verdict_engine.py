# This module turns the raw probability vector of the image classifier into a recyclability verdict
# It only reads its inputs: no model, no image and no Streamlit state is touched here

from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Sequence

from category_map import CategoryMap, MaterialType
from errors import IndexOutOfRange

# an item is recyclable once its best material scores strictly above 1%
DEFAULT_ACCEPTANCE_THRESHOLD = 0.01


@dataclass(frozen=True)
class Verdict:
    """Final decision for one image."""
    material_type: Optional[MaterialType]
    confidence_percent: float
    recyclable: bool

    @property
    def label(self) -> str:
        return "Recyclable" if self.recyclable else "Non-recyclable"


def material_scores(
    vector: Sequence[float],
    category_map: CategoryMap,
    apply_weights: bool = False
) -> "OrderedDict[MaterialType, float]":
    """
    Return the highest probability seen for each material type.

    Scores are never summed: a material with many class indices is not favoured
    over one with a single index. Keys follow the declaration order of the map.
    """
    vector_length = len(vector)
    for entry in category_map:
        if entry.class_index >= vector_length:
            raise IndexOutOfRange(entry.class_index, vector_length)

    # every declared material starts at zero, in the order that ranks ties
    scores: "OrderedDict[MaterialType, float]" = OrderedDict(
        (material_type, 0.0) for material_type in category_map.material_types
    )
    for entry in category_map:
        probability = float(vector[entry.class_index])
        if apply_weights:
            probability *= entry.weight
        scores[entry.material_type] = max(scores[entry.material_type], probability)
    return scores


def evaluate(
    vector: Sequence[float],
    category_map: CategoryMap,
    acceptance_threshold: float = DEFAULT_ACCEPTANCE_THRESHOLD,
    apply_weights: bool = False
) -> Verdict:
    """Decide whether the item behind vector is recyclable and of which material."""
    scores = material_scores(vector, category_map, apply_weights=apply_weights)

    # strict comparison in declaration order: on a tie the first declared material wins
    best_type: Optional[MaterialType] = None
    best_score = 0.0
    for material_type, score in scores.items():
        if score > best_score:
            best_type, best_score = material_type, score

    recyclable = best_score > acceptance_threshold
    return Verdict(
        material_type=best_type if recyclable else None,
        confidence_percent=best_score * 100,
        recyclable=recyclable,
    )
