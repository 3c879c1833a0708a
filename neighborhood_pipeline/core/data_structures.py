#!/usr/bin/env python3

"""
Core data structures for the neighborhood pipeline.

Defines the genomic feature record, region boundaries, neighborhoods and
the result containers produced by overlap reconciliation and grouping.
"""

from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from .exceptions import EmptyNeighborhoodError, ValidationError

if TYPE_CHECKING:
    from .feature_index import FeatureIndex

VALID_STRANDS = ('+', '-', '.')

# new feature ID -> IDs of the old features it overlaps
OverlapRecord = Dict[str, Set[str]]

# (contig ID, feature ID); feature IDs are only unique within a contig
FeatureKey = Tuple[str, str]


@dataclass(frozen=True)
class Feature:
    """A genomic interval (gene, predicted element, hit) on one contig.

    Coordinates are 1-based and inclusive. Reversed coordinates are swapped
    on construction so that ``begin <= end`` always holds.
    """
    contig_id: str
    feature_id: str
    begin: int
    end: int
    strand: str = '.'
    feature_type: str = ""
    attributes: Dict[str, List[str]] = field(default_factory=OrderedDict, compare=False, hash=False)
    source: str = field(default=".", compare=False)

    def __post_init__(self):
        """Normalize and validate feature data after initialization."""
        if not self.contig_id:
            raise ValueError("Contig ID cannot be empty")
        if not self.feature_id:
            raise ValueError("Feature ID cannot be empty")
        begin, end = int(self.begin), int(self.end)
        if begin > end:
            begin, end = end, begin
        if begin < 1:
            raise ValueError(f"Invalid feature coordinates: {self.begin}-{self.end}")
        object.__setattr__(self, 'begin', begin)
        object.__setattr__(self, 'end', end)
        if self.strand not in VALID_STRANDS:
            object.__setattr__(self, 'strand', '.')

    @property
    def length(self) -> int:
        """Get feature length."""
        return self.end - self.begin + 1

    @property
    def key(self) -> FeatureKey:
        return (self.contig_id, self.feature_id)

    def overlap_length(self, other: 'Feature') -> int:
        """Number of shared bases with another feature (0 if disjoint or on another contig)."""
        if self.contig_id != other.contig_id:
            return 0
        return max(0, min(self.end, other.end) - max(self.begin, other.begin) + 1)

    def overlaps_with(self, other: 'Feature') -> bool:
        """Check if this feature overlaps with another."""
        return self.overlap_length(other) > 0

    def get_attribute(self, key: str, default: str = "") -> str:
        """First value of a multi-valued attribute."""
        values = self.attributes.get(key)
        if not values:
            return default
        return values[0]

    def with_id(self, feature_id: str, **attribute_updates: List[str]) -> 'Feature':
        """Copy of this feature under another identifier.

        Extra keyword arguments are appended to the copied attributes.
        """
        attributes = OrderedDict((k, list(v)) for k, v in self.attributes.items())
        for key, values in attribute_updates.items():
            attributes.setdefault(key, [])
            attributes[key].extend(v for v in values if v not in attributes[key])
        return replace(self, feature_id=feature_id, attributes=attributes)


class RegionBoundary(NamedTuple):
    """Span and member count of a set of co-located features."""
    contig_id: str
    begin: int
    end: int
    count: int

    @property
    def size_bp(self) -> int:
        return self.end - self.begin + 1


def region_boundary(members: Iterable[Feature], region_id: str = "") -> RegionBoundary:
    """
    Compute the span of a set of features sharing one region.

    Args:
        members: Features of one neighborhood or region
        region_id: Identifier used in error messages

    Returns:
        RegionBoundary with min begin, max end and member count

    Raises:
        EmptyNeighborhoodError: if no members are given
        ValidationError: if members lie on different contigs
    """
    members = list(members)
    if not members:
        raise EmptyNeighborhoodError(region_id)

    contig_id = members[0].contig_id
    for feature in members:
        if feature.contig_id != contig_id:
            raise ValidationError(
                f"region {region_id or '?'} spans contigs {contig_id} and {feature.contig_id}",
                contig_id, feature.feature_id
            )

    return RegionBoundary(
        contig_id=contig_id,
        begin=min(f.begin for f in members),
        end=max(f.end for f in members),
        count=len(members),
    )


class Neighborhood:
    """A set of features on one contig treated as one unit of analysis."""

    def __init__(self, neighborhood_id: str, contig_id: str):
        if not neighborhood_id:
            raise ValueError("Neighborhood ID cannot be empty")
        self.neighborhood_id = neighborhood_id
        self.contig_id = contig_id
        self._members: Dict[Tuple[int, str], Feature] = {}
        self._ids: Set[str] = set()

    def __repr__(self):
        return f"Neighborhood({self.neighborhood_id!r}, {self.contig_id!r}, members={len(self)})"

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, feature_id: str) -> bool:
        return feature_id in self._ids

    def add_feature(self, feature: Feature) -> None:
        """Add a member; members on another contig are rejected."""
        if feature.contig_id != self.contig_id:
            raise ValidationError(
                f"cannot add feature to neighborhood {self.neighborhood_id} on {self.contig_id}",
                feature.contig_id, feature.feature_id
            )
        self._members[(feature.begin, feature.feature_id)] = feature
        self._ids.add(feature.feature_id)

    @property
    def features(self) -> List[Feature]:
        """Members ordered by begin, then feature ID."""
        return [self._members[key] for key in sorted(self._members)]

    @property
    def feature_ids(self) -> Set[str]:
        return set(self._ids)

    def boundary(self) -> RegionBoundary:
        """Current boundary, recomputed from membership."""
        return region_boundary(self._members.values(), self.neighborhood_id)


class Neighborhoods:
    """Ordered collection of neighborhoods produced by one merge call."""

    def __init__(self, tag: str, merge_distance: int, first_counter: int = 1):
        self.tag = tag
        self.merge_distance = merge_distance
        self.first_counter = first_counter
        self.next_counter = first_counter
        self._hoods: 'OrderedDict[str, Neighborhood]' = OrderedDict()

    def __len__(self) -> int:
        return len(self._hoods)

    def __iter__(self):
        return iter(self._hoods.values())

    def __contains__(self, neighborhood_id: str) -> bool:
        return neighborhood_id in self._hoods

    def __getitem__(self, neighborhood_id: str) -> Neighborhood:
        return self._hoods[neighborhood_id]

    def add(self, neighborhood: Neighborhood) -> None:
        if neighborhood.neighborhood_id in self._hoods:
            raise ValidationError(f"neighborhood {neighborhood.neighborhood_id} already exists",
                                  neighborhood.contig_id)
        self._hoods[neighborhood.neighborhood_id] = neighborhood

    @property
    def ids(self) -> List[str]:
        return list(self._hoods)

    def member_ids(self) -> Set[str]:
        """All feature IDs that belong to any neighborhood."""
        ids = set()
        for hood in self._hoods.values():
            ids.update(hood.feature_ids)
        return ids

    def membership(self) -> Dict[str, frozenset]:
        """Mapping of neighborhood ID to the frozen set of its member IDs."""
        return {hood_id: frozenset(hood.feature_ids) for hood_id, hood in self._hoods.items()}

    def boundaries(self) -> Dict[str, RegionBoundary]:
        return {hood_id: hood.boundary() for hood_id, hood in self._hoods.items()}


@dataclass
class ReconcileResult:
    """Outcome of merging newly predicted features into an existing annotation."""
    overlaps: OverlapRecord = field(default_factory=dict)
    id_map: Dict[str, str] = field(default_factory=dict)
    outcomes: Dict[str, str] = field(default_factory=dict)
    conflicts: Dict[str, List[str]] = field(default_factory=dict)
    passed_through: List[str] = field(default_factory=list)
    merged: Optional["FeatureIndex"] = None

    @property
    def old_overlapping_count(self) -> int:
        """Distinct old features overlapped by at least one new feature."""
        old_ids = set()
        for ids in self.overlaps.values():
            old_ids.update(ids)
        return len(old_ids)

    @property
    def new_overlapping_count(self) -> int:
        """New features that adopted an old identifier."""
        return sum(1 for outcome in self.outcomes.values() if outcome == 'both')

    def count_outcome(self, outcome: str) -> int:
        if outcome == 'old':
            return len(self.passed_through)
        return sum(1 for value in self.outcomes.values() if value == outcome)


@dataclass
class GroupAssignment:
    """Stable group identifiers assigned to clustered elements."""
    groups: Dict[str, List[str]] = field(default_factory=OrderedDict)
    element_to_group: Dict[str, str] = field(default_factory=dict)
    clusters_seen: int = 0
    singletons: int = 0

    @property
    def group_count(self) -> int:
        return len(self.groups)


@dataclass
class SimilarityEdge:
    """Undirected, deduplicated similarity edge."""
    source: str
    target: str
    weight: float
    observations: int = 1


@dataclass(frozen=True)
class Rule:
    """Tag-based filter: all required tags present and no forbidden tag."""
    name: str
    required: frozenset = frozenset()
    forbidden: frozenset = frozenset()

    def accepts(self, tags: Set[str]) -> bool:
        return self.required.issubset(tags) and not (self.forbidden & tags)
