#!/usr/bin/env python3

"""
Qualified identifier helpers.

A qualified ID is ``genomeID<SEP>featureID``. The separator is a single
character; ``:``, ``;`` and ``|`` are reserved for joining multiple values.
"""

from collections import OrderedDict
from dataclasses import replace
from typing import Iterable, List

from .data_structures import Feature
from .exceptions import ConfigurationError, ValidationError

RESERVED_SEPARATORS = (':', ';', '|')


def validate_separator(separator: str) -> str:
    """Reject separators that are not a single, non-reserved character."""
    if not isinstance(separator, str) or len(separator) != 1:
        raise ConfigurationError(f"separator must be a single character, got {separator!r}")
    if separator in RESERVED_SEPARATORS or separator.isspace():
        raise ConfigurationError(
            f"separator {separator!r} is reserved; choose a character other than "
            f"{', '.join(RESERVED_SEPARATORS)} or whitespace"
        )
    return separator


def genome_from_id(qualified_id: str, separator: str) -> str:
    """Genome prefix of a qualified contig or feature ID."""
    genome, sep, _rest = qualified_id.partition(separator)
    if not sep or not genome:
        raise ValidationError(
            f"identifier {qualified_id!r} does not contain separator {separator!r}",
            feature_id=qualified_id
        )
    return genome


def qualify_id(genome_id: str, feature_id: str, separator: str) -> str:
    """Prefix an ID with its genome, leaving already qualified IDs alone."""
    prefix = f"{genome_id}{separator}"
    if feature_id.startswith(prefix):
        return feature_id
    return prefix + feature_id


def format_neighborhood_id(genome_id: str, separator: str, tag: str, counter: int) -> str:
    return f"{genome_id}{separator}{tag}{str(counter).zfill(5)}"


def format_group_id(idtag: str, counter: int) -> str:
    return f"{idtag}{str(counter).zfill(4)}"


def format_features(features: Iterable[Feature], genome_id: str, separator: str) -> List[Feature]:
    """
    Qualify contig and feature IDs of one genome's features.

    Args:
        features: Features parsed from one genome's annotation
        genome_id: Genome code used as prefix
        separator: Separator character

    Returns:
        New Feature records; the inputs are left untouched
    """
    validate_separator(separator)
    if not genome_id or separator in genome_id:
        raise ValidationError(
            f"genome code {genome_id!r} must be non-empty and must not contain {separator!r}"
        )

    formatted = []
    for feature in features:
        formatted.append(replace(
            feature,
            contig_id=qualify_id(genome_id, feature.contig_id, separator),
            feature_id=qualify_id(genome_id, feature.feature_id, separator),
            attributes=OrderedDict((k, list(v)) for k, v in feature.attributes.items()),
        ))
    return formatted
