#!/usr/bin/env python3

"""
File parsers for feature annotations, sequences and tabular inputs.

Handles GFF3 and BED-like feature files, FASTA sequences, similarity
lists, cluster files, tag rules and per-feature annotations.
"""

import logging
from collections import OrderedDict, defaultdict
from typing import Dict, Iterator, List, Set, Tuple
from urllib.parse import unquote

from .data_structures import Feature, FeatureKey, Rule
from .exceptions import ParseError

MULTI_VALUE_SEPARATORS = (',', ';', '|')


class FeatureParser:
    """Parse feature files with O(n) complexity, collecting data-quality warnings."""

    def __init__(self):
        self.warnings: List[str] = []

    def _warn(self, file_path: str, line_num: int, message: str, line: str = "") -> None:
        """Record and log one data-quality problem."""
        text = f"{file_path}:{line_num}: {message}"
        if line:
            text += f" [{line}]"
        self.warnings.append(text)
        logging.warning(text)

    def parse_gff3(self, file_path: str, target_type: str = "gene",
                   name_field: str = "ID") -> List[Feature]:
        """
        Parse features of one type from a GFF3 file.

        Args:
            file_path: GFF3 path
            target_type: Value of column 3 to keep
            name_field: Attribute holding the feature ID

        Returns:
            Features in file order
        """
        logging.info(f"Parsing GFF3 file: {file_path}")
        features = []

        try:
            with open(file_path, 'r') as f:
                for line_num, line in enumerate(f, 1):
                    line = line.rstrip('\n')
                    if not line.strip() or line.startswith('#'):
                        continue

                    parts = line.split('\t')
                    if len(parts) != 9:
                        self._warn(file_path, line_num, "expected 9 tab-separated columns", line)
                        continue

                    contig, source, feature_type, begin, end, _score, strand, _phase, attributes = parts
                    if feature_type != target_type:
                        continue

                    attr_dict = self._parse_gff3_attributes(attributes)
                    names = attr_dict.get(name_field)
                    if not names or not names[0]:
                        self._warn(file_path, line_num,
                                   f"{target_type} has no parseable {name_field} attribute", line)
                        continue

                    try:
                        features.append(Feature(
                            contig_id=contig,
                            feature_id=names[0],
                            begin=int(begin),
                            end=int(end),
                            strand=strand,
                            feature_type=feature_type,
                            attributes=attr_dict,
                            source=source,
                        ))
                    except ValueError as e:
                        self._warn(file_path, line_num, f"invalid {target_type} record: {e}", line)

        except FileNotFoundError:
            raise ParseError(f"GFF3 file not found: {file_path}")
        except OSError as e:
            raise ParseError(f"Failed to read GFF3 file: {e}", file_path)

        logging.info(f"Parsed {len(features)} {target_type} features from {file_path}")
        return features

    def parse_bed(self, file_path: str) -> Tuple[List[Feature], Dict[FeatureKey, Set[str]], Dict[FeatureKey, str]]:
        """
        Parse a BED-like feature table.

        Columns are ``contig, begin, end, featureID, tag(s), strand, groupID,
        annotation``; only the first four are required. Coordinates are
        kept as written.

        Returns:
            Tuple of (features, (contig, feature ID) -> tags,
            (contig, feature ID) -> group ID)
        """
        features = []
        tags: Dict[FeatureKey, Set[str]] = defaultdict(set)
        groups: Dict[FeatureKey, str] = OrderedDict()

        for feature, feature_tags, group_id in self._bed_rows(file_path):
            features.append(feature)
            tags[feature.key].update(feature_tags)
            if group_id:
                groups[feature.key] = group_id

        return features, dict(tags), groups

    def parse_neighborhood_bed(self, file_path: str) -> Dict[str, List[Feature]]:
        """Members of each neighborhood in a membership table, in file order."""
        members: Dict[str, List[Feature]] = OrderedDict()
        for feature, _tags, hood_id in self._bed_rows(file_path):
            if hood_id:
                members.setdefault(hood_id, []).append(feature)
        return members

    def _bed_rows(self, file_path: str) -> Iterator[Tuple[Feature, Set[str], str]]:
        """Yield (feature, tags, group ID) per valid row; the group ID is "" when absent."""
        try:
            with open(file_path, 'r') as f:
                for line_num, line in enumerate(f, 1):
                    line = line.rstrip('\n')
                    if not line.strip() or line.startswith('#'):
                        continue

                    parts = line.split('\t')
                    if len(parts) < 4:
                        self._warn(file_path, line_num, "expected at least 4 tab-separated columns", line)
                        continue
                    parts += ['.'] * (8 - len(parts))
                    contig, begin, end, feature_id, tag_field, strand, group_id, annotation = parts[:8]

                    attributes = OrderedDict()
                    if annotation not in ('', '.'):
                        attributes['annotation'] = split_multi(annotation)
                    try:
                        feature = Feature(
                            contig_id=contig,
                            feature_id=feature_id,
                            begin=int(begin),
                            end=int(end),
                            strand=strand,
                            feature_type="bed",
                            attributes=attributes,
                        )
                    except ValueError as e:
                        self._warn(file_path, line_num, f"invalid record: {e}", line)
                        continue

                    feature_tags = {t for t in split_multi(tag_field) if t != '.'}
                    yield feature, feature_tags, '' if group_id == '.' else group_id

        except FileNotFoundError:
            raise ParseError(f"BED file not found: {file_path}")
        except OSError as e:
            raise ParseError(f"Failed to read BED file: {e}", file_path)

    def parse_similarities(self, file_path: str) -> List[Tuple[str, str, float]]:
        """Parse ``refID\\tqueID\\tsimilarity`` lines; similarity must lie in [0, 1)."""
        pairs = []
        for line_num, parts in self._read_table(file_path):
            if len(parts) < 3:
                self._warn(file_path, line_num, "expected 3 tab-separated columns", '\t'.join(parts))
                continue
            try:
                similarity = float(parts[2])
            except ValueError:
                self._warn(file_path, line_num, f"similarity {parts[2]!r} is not a number")
                continue
            if not 0 <= similarity < 1:
                self._warn(file_path, line_num, f"similarity {similarity} outside [0, 1)")
                continue
            pairs.append((parts[0], parts[1], similarity))
        return pairs

    def parse_clusters(self, file_path: str) -> List[List[str]]:
        """One cluster per line, members separated by tabs (MCL output)."""
        clusters = []
        for _line_num, parts in self._read_table(file_path):
            members = [p for p in parts if p]
            if members:
                clusters.append(members)
        return clusters

    def parse_rules(self, file_path: str) -> List[Rule]:
        """Parse ``name\\trequired\\tforbidden`` rules of comma-joined tags."""
        rules = []
        for line_num, parts in self._read_table(file_path):
            if len(parts) < 2:
                self._warn(file_path, line_num, "rule needs a name and a required tag list")
                continue
            forbidden = parts[2] if len(parts) > 2 else '.'
            rules.append(Rule(
                name=parts[0],
                required=frozenset(t for t in parts[1].split(',') if t and t != '.'),
                forbidden=frozenset(t for t in forbidden.split(',') if t and t != '.'),
            ))
        return rules

    def parse_annotations(self, file_path: str) -> Dict[str, List[str]]:
        """Parse ``featureID\\tsource\\tvalue`` lines into multi-valued annotations."""
        annotations: Dict[str, List[str]] = OrderedDict()
        for line_num, parts in self._read_table(file_path):
            if len(parts) < 3:
                self._warn(file_path, line_num, "expected 3 tab-separated columns", '\t'.join(parts))
                continue
            feature_id, _source, value = parts[:3]
            values = annotations.setdefault(feature_id, [])
            if value and value not in values:
                values.append(value)
        return annotations

    def parse_path_list(self, file_path: str) -> List[Tuple[str, str]]:
        """Parse ``genomeID\\tpath`` lines."""
        entries = []
        for line_num, parts in self._read_table(file_path):
            if len(parts) < 2:
                self._warn(file_path, line_num, "expected genome code and path", '\t'.join(parts))
                continue
            entries.append((parts[0], parts[1]))
        return entries

    def _read_table(self, file_path: str):
        """Yield (line number, columns) for non-empty, non-comment lines."""
        try:
            with open(file_path, 'r') as f:
                for line_num, line in enumerate(f, 1):
                    line = line.rstrip('\n')
                    if not line.strip() or line.startswith('#'):
                        continue
                    yield line_num, line.split('\t')
        except FileNotFoundError:
            raise ParseError(f"File not found: {file_path}")
        except OSError as e:
            raise ParseError(f"Failed to read file: {e}", file_path)

    def _parse_gff3_attributes(self, attr_string: str) -> Dict[str, List[str]]:
        """Parse GFF3 attributes into an ordered key -> values mapping."""
        attributes: Dict[str, List[str]] = OrderedDict()
        for attr in attr_string.strip().split(';'):
            if '=' in attr:
                key, value = attr.split('=', 1)
                attributes[key.strip()] = [unquote(v) for v in value.split(',')]
        return attributes


def split_multi(value: str) -> List[str]:
    """Split a field joined with any of the reserved multi-value separators."""
    for separator in MULTI_VALUE_SEPARATORS[1:]:
        value = value.replace(separator, MULTI_VALUE_SEPARATORS[0])
    return [v for v in value.split(MULTI_VALUE_SEPARATORS[0]) if v]


def parse_fasta(file_path: str) -> Dict[str, str]:
    """Parse FASTA file into sequence dictionary."""
    sequences: Dict[str, str] = OrderedDict()
    current_id = None
    current_seq = []
    line_num = 0

    try:
        with open(file_path, 'r') as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()

                if line.startswith('>'):
                    if current_id and current_seq:
                        sequences[current_id] = ''.join(current_seq)

                    current_id = line[1:].split()[0]  # Take first part of header
                    current_seq = []

                elif line and current_id:
                    current_seq.append(line)

            if current_id and current_seq:
                sequences[current_id] = ''.join(current_seq)

    except FileNotFoundError:
        raise ParseError(f"Sequence file not found: {file_path}")
    except (OSError, IndexError) as e:
        raise ParseError(f"Failed to parse FASTA file {file_path}: {e}", file_path, line_num)

    return sequences
