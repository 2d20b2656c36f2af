"""
Normalization helpers for matching keys and display strings.

Categories and service areas are compared by exact string equality, so every
value that takes part in matching goes through normalize_key() first.
"""

from typing import Iterable, List, Optional, Union


def normalize_key(value: Optional[str]) -> str:
    """
    Trim and lower-case a matching key.

    Examples:
        >>> normalize_key("  Seattle ")
        'seattle'
        >>> normalize_key(None)
        ''
    """
    if value is None:
        return ""
    return str(value).strip().lower()


def normalize_list(values: Optional[Iterable[Optional[str]]]) -> List[str]:
    """Normalize each entry, drop blanks and duplicates, keep first-seen order."""
    if not values:
        return []
    seen = set()
    out: List[str] = []
    for value in values:
        key = normalize_key(value)
        if key and key not in seen:
            seen.add(key)
            out.append(key)
    return out


def split_csv(value: Optional[Union[str, Iterable[str]]]) -> List[str]:
    """
    Turn "Austin, 78701, Dallas" (or an already split list) into normalized keys.

    Examples:
        >>> split_csv("Austin, 78701,, Dallas")
        ['austin', '78701', 'dallas']
    """
    if value is None:
        return []
    if isinstance(value, str):
        return normalize_list(value.split(","))
    return normalize_list(value)


def format_title(text: Optional[str]) -> str:
    """Capitalize the first letter of every space-separated word."""
    if not text:
        return ""
    return " ".join(word[:1].upper() + word[1:] for word in text.split(" "))
