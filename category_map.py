# This module declares which outputs of the image classifier belong to which recyclable material
# The class indices are positions in the output vector of the 1000-class ImageNet classifier (MobileNet),
# so they have to be re-derived whenever the underlying classifier changes

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Tuple

from errors import ConfigurationError, IndexOutOfRange


class MaterialType(Enum):
    """Recyclable material categories shown to the user."""
    PAPER = "Paper"
    PLASTIC = "Plastic"
    GLASS = "Glass"
    METAL = "Metal"


@dataclass(frozen=True)
class ClassificationEntry:
    """One classifier output index mapped onto a material type."""
    class_index: int
    material_type: MaterialType
    display_name: str
    weight: float = 1.0

    def __post_init__(self):
        if isinstance(self.class_index, bool) or not isinstance(self.class_index, int) or self.class_index < 0:
            raise ConfigurationError(
                f"class_index must be a non-negative integer, got {self.class_index!r}",
                config_field="category_map.class_index"
            )
        if not isinstance(self.material_type, MaterialType):
            raise ConfigurationError(
                f"material_type must be a MaterialType, got {self.material_type!r}",
                config_field="category_map.material_type"
            )
        if not 0.0 < self.weight <= 1.0:
            raise ConfigurationError(
                f"weight must be in (0, 1], got {self.weight}",
                config_field="category_map.weight"
            )


@dataclass(frozen=True)
class CategoryMap:
    """Read-only table of classifier entries, iterated in declaration order."""
    entries: Tuple[ClassificationEntry, ...]

    def __post_init__(self):
        # accepts any iterable but always stores a tuple so the map stays hashable
        object.__setattr__(self, "entries", tuple(self.entries))
        if not self.entries:
            raise ConfigurationError(
                "The category map needs at least one entry",
                config_field="category_map"
            )

    def __iter__(self) -> Iterator[ClassificationEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def max_class_index(self) -> int:
        return max(entry.class_index for entry in self.entries)

    @property
    def required_length(self) -> int:
        """Smallest probability vector length that covers every entry."""
        return self.max_class_index + 1

    @property
    def material_types(self) -> Tuple[MaterialType, ...]:
        """Material types in the order they are first declared."""
        seen: List[MaterialType] = []
        for entry in self.entries:
            if entry.material_type not in seen:
                seen.append(entry.material_type)
        return tuple(seen)

    def validate_against(self, output_size: int) -> None:
        """Raise IndexOutOfRange if a classifier with output_size classes cannot serve this map."""
        if output_size < self.required_length:
            raise IndexOutOfRange(self.max_class_index, output_size)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "CategoryMap":
        """
        Build a map from plain records such as
        {"index": 671, "type": "Plastic", "name": "plastic bottle", "weight": 1.0}.
        """
        entries = []
        for position, record in enumerate(records):
            try:
                entries.append(ClassificationEntry(
                    class_index=record["index"],
                    material_type=MaterialType(record["type"]),
                    display_name=str(record["name"]),
                    weight=float(record.get("weight", 1.0)),
                ))
            except (KeyError, ValueError, TypeError) as e:
                raise ConfigurationError(
                    f"Invalid category map record at position {position}: {e}",
                    config_field="category_map"
                ).add_suggestion('Each record needs "index", "type" and "name" keys') from e
        return cls(tuple(entries))


def _entry(class_index, name, material_type):
    return ClassificationEntry(class_index, material_type, name, 1.0)


# the default table, in the order the material types are ranked on a tie
DEFAULT_CATEGORY_MAP = CategoryMap((
    # paper products
    _entry(676, "paper", MaterialType.PAPER),
    _entry(483, "newspaper", MaterialType.PAPER),
    _entry(494, "paper towel", MaterialType.PAPER),
    _entry(603, "notebook", MaterialType.PAPER),
    _entry(415, "magazine", MaterialType.PAPER),
    _entry(532, "envelope", MaterialType.PAPER),

    # plastic items
    _entry(671, "plastic bottle", MaterialType.PLASTIC),
    _entry(672, "plastic bucket", MaterialType.PLASTIC),
    _entry(404, "plastic bag", MaterialType.PLASTIC),
    _entry(899, "water bottle", MaterialType.PLASTIC),
    _entry(737, "recycling bin", MaterialType.PLASTIC),

    # glass items
    _entry(530, "glass bottle", MaterialType.GLASS),
    _entry(531, "glass jar", MaterialType.GLASS),
    _entry(892, "wine bottle", MaterialType.GLASS),
    _entry(907, "window", MaterialType.GLASS),

    # metal items
    _entry(609, "metal can", MaterialType.METAL),
    _entry(610, "metal container", MaterialType.METAL),
    _entry(441, "milk can", MaterialType.METAL),
    _entry(463, "tin can", MaterialType.METAL),
    _entry(768, "soda can", MaterialType.METAL),
    _entry(509, "aluminum", MaterialType.METAL),
))
