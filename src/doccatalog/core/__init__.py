"""Pattern, version and resource-id primitives shared by the pipeline."""

from .matcher import PatternCache, create_matcher, filter_refs
from .resource_id import ResourceId, parse_resource_id
from .utils import brace_expand
from .versions import version_compare_desc

__all__ = [
    "PatternCache",
    "ResourceId",
    "brace_expand",
    "create_matcher",
    "filter_refs",
    "parse_resource_id",
    "version_compare_desc",
]
