"""
Lightweight scriptural reference detection.

Finds references such as "Salmos 23", "João 3:16" or "1 Coríntios 13:4-7"
in free text. Used to fill the record's biblical basis when the admin did
not seed one.
"""

import re
from typing import List

MAX_REFERENCES = 3

_REFERENCE_PATTERN = re.compile(
    r"\b((?:[1-3]\s?)?[A-ZÁÂÃÀÉÊÍÓÔÕÚ][a-záâãàéêíóôõúç]+)\s+(\d{1,3})(?::(\d{1,3})(?:-(\d{1,3}))?)?"
)


def detect_references(text: str, limit: int = MAX_REFERENCES) -> List[str]:
    """Up to limit distinct references, in order of appearance."""
    found: List[str] = []
    for match in _REFERENCE_PATTERN.finditer((text or "").strip()):
        book, chapter, verse, end_verse = match.groups()
        reference = f"{book} {chapter}"
        if verse:
            reference += f":{verse}"
            if end_verse:
                reference += f"-{end_verse}"
        if reference not in found:
            found.append(reference)
        if len(found) >= limit:
            break
    return found


def detect_biblical_base(text: str) -> str:
    """Detected references joined for storage ("; " separated)."""
    return "; ".join(detect_references(text))
