"""
Name conversions shared by the GraphQL renderer and the code generators.
"""

from __future__ import annotations

import re

_IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
}

_UNCOUNTABLE = {"data", "information", "equipment", "news", "series", "species", "media"}


def lower_first(name: str) -> str:
    return name[:1].lower() + name[1:]


def upper_first(name: str) -> str:
    return name[:1].upper() + name[1:]


def _ends_with_word(name: str, word: str) -> bool:
    return name.lower() == word or name.endswith(upper_first(word))


def pluralize(name: str) -> str:
    """
    Pluralize a model name the way the API names list fields.

    The casing of the first letter is preserved: `User` -> `Users`,
    `category` -> `categories`.
    """
    if not name:
        return name
    lower = name.lower()

    for singular, plural in _IRREGULAR_PLURALS.items():
        if _ends_with_word(name, singular):
            stem = name[: len(name) - len(singular)]
            tail = name[len(name) - len(singular) :]
            return stem + (upper_first(plural) if tail[:1].isupper() else plural)

    if any(_ends_with_word(name, word) for word in _UNCOUNTABLE):
        return name
    if re.search(r"[^aeiou]y$", lower):
        return name[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", lower):
        return name + "es"
    return name + "s"


def snake_case(name: str) -> str:
    """Convert camelCase or PascalCase to snake_case."""
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    return name.replace("-", "_").lower()


def camel_case(name: str) -> str:
    """Convert snake_case to camelCase."""
    parts = name.split("_")
    return parts[0] + "".join(upper_first(p) for p in parts[1:])


__all__ = ["lower_first", "upper_first", "pluralize", "snake_case", "camel_case"]
