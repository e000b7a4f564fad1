"""
Text utilities for handling Spanish text with accents.

Used to normalize product descriptions before matching them to fuel types.
"""

import unicodedata
from typing import Optional


def normalize_label(label: Optional[str]) -> Optional[str]:
    """
    Normalize a free-text label for keyword matching.

    Handles Spanish accents and surrounding whitespace:
    - "Diésel Automotriz" → "DIESEL AUTOMOTRIZ"
    - "  Gasolina Premium " → "GASOLINA PREMIUM"

    Args:
        label: Original label (may have accents, mixed case)

    Returns:
        Normalized uppercase ASCII string, or None if input is empty
    """
    if not label:
        return None

    label = label.strip()

    if not label:
        return None

    # NFD decomposition separates base chars from accents
    normalized = unicodedata.normalize('NFD', label)

    # Drop combining marks (Unicode category 'Mn')
    ascii_label = ''.join(
        c for c in normalized
        if unicodedata.category(c) != 'Mn'
    )

    # Collapse internal runs of whitespace
    return ' '.join(ascii_label.upper().split())
