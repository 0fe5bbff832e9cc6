from __future__ import annotations


def aggregate_content(playbook, *, hooks=None, credential_store=None):
    from .content.aggregator import aggregate_content as _aggregate

    return _aggregate(playbook, hooks=hooks, credential_store=credential_store)


def classify_content(aggregate, *, playbook=None, hooks=None, duplicate_policy=None):
    from .content.classifier import classify_content as _classify

    if duplicate_policy is None:
        duplicate_policy = playbook.content.duplicate_policy if playbook else "last-wins"
    return _classify(
        aggregate, playbook=playbook, hooks=hooks, duplicate_policy=duplicate_policy
    )


def build_catalog(
    playbook_path: str,
    *,
    fetch: bool | None = None,
    cache_dir: str | None = None,
    hooks=None,
):
    """Load a playbook, aggregate its sources and return the ContentCatalog."""
    from .playbook import load_playbook

    playbook = load_playbook(playbook_path, fetch=fetch, cache_dir=cache_dir)
    aggregate = aggregate_content(playbook, hooks=hooks)
    return classify_content(aggregate, playbook=playbook, hooks=hooks)


__all__ = [
    "aggregate_content",
    "build_catalog",
    "classify_content",
]
