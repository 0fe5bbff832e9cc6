"""Aggregation of content sources and classification into a catalog."""

from .aggregator import ContentAggregator, aggregate_content, merge_buckets
from .catalog import ContentCatalog
from .classifier import ContentClassifier, classify_content
from .descriptor import ComponentDescriptor, parse_descriptor
from .models import (
    Alias,
    Attachment,
    Component,
    ComponentVersion,
    ComponentVersionBucket,
    Example,
    Image,
    Navigation,
    Origin,
    Page,
    Partial,
)

__all__ = [
    "Alias",
    "Attachment",
    "Component",
    "ComponentDescriptor",
    "ComponentVersion",
    "ComponentVersionBucket",
    "ContentAggregator",
    "ContentCatalog",
    "ContentClassifier",
    "Example",
    "Image",
    "Navigation",
    "Origin",
    "Page",
    "Partial",
    "aggregate_content",
    "classify_content",
    "merge_buckets",
    "parse_descriptor",
]
