import re
from typing import List

TAG_PATTERN = re.compile(r"#([a-zA-Z0-9_]+)")


def extract_tags(content: str) -> List[str]:
    """Hash-prefixed tokens in order of appearance, duplicates kept."""
    return TAG_PATTERN.findall(content or "")


__all__ = ["TAG_PATTERN", "extract_tags"]
