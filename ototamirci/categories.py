from typing import Iterable, Optional

CANONICAL_CATEGORIES = ("Motor", "Kaporta", "Elektrik", "Lastik", "Bakım")

# Lower-cased alias -> canonical label
CATEGORY_ALIASES = {
    "motor": "Motor",
    "engine": "Motor",
    "kaporta": "Kaporta",
    "bodywork": "Kaporta",
    "elektrik": "Elektrik",
    "electric": "Elektrik",
    "electrical": "Elektrik",
    "lastik": "Lastik",
    "tires": "Lastik",
    "tyres": "Lastik",
    "bakim": "Bakım",
    "bakım": "Bakım",
    "maintenance": "Bakım",
}


def normalize_category(value: Optional[str]) -> Optional[str]:
    """Map a free-text category onto its canonical label.

    Unknown values pass through trimmed but otherwise untouched.
    """
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    return CATEGORY_ALIASES.get(cleaned.lower(), cleaned)


def normalize_categories(values: Optional[Iterable[str]]) -> list[str]:
    seen = []
    for value in values or []:
        category = normalize_category(value)
        if category and category not in seen:
            seen.append(category)
    return seen
