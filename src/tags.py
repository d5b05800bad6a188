"""
Tag conversion between declared tag maps and ARM metadata.

Limits are enforced by the tags attribute schema (see schema.tags_attribute).
"""

from typing import Any, Dict, Optional

MAX_TAGS = 50
MAX_TAG_KEY_LENGTH = 512
MAX_TAG_VALUE_LENGTH = 256


def expand_tags(tags: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Declared tags -> ARM metadata (all values become strings)."""
    if not tags:
        return {}
    return {key: "" if value is None else str(value) for key, value in tags.items()}


def flatten_tags(metadata: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """ARM metadata -> declared tags; null values read back as empty strings."""
    if not metadata:
        return {}
    return {key: "" if value is None else str(value) for key, value in metadata.items()}
