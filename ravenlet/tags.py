"""Tag merging."""

from typing import Dict, Mapping, Optional


def merge_tags(
    defaults: Mapping[str, str], tags: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """
    Combine client-wide default tags with per-call tags.

    Per-call tags win on key collision. Values are replaced, not merged.

    Args:
        defaults: Tags sent with every event
        tags: Tags for this event, or None

    Returns:
        The defaults when tags is None, otherwise a new merged dict
    """
    if tags is None:
        return dict(defaults)

    merged = {key: value for key, value in defaults.items() if key not in tags}
    merged.update(tags)
    return merged
