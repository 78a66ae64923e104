"""Normalization helpers for student identity fields."""

from __future__ import annotations

import re

# Particles kept lowercase in Brazilian names
PT_PARTICLES = frozenset({"de", "da", "do", "dos", "das", "e"})


def clean_cpf(cpf: str) -> str:
    """Strip punctuation from a CPF, keeping digits only."""
    return re.sub(r"\D", "", cpf)


def is_valid_cpf(cpf: str) -> bool:
    """Validate a CPF by length and its two check digits.

    Args:
        cpf: CPF digits, with or without punctuation.

    Returns:
        True if the CPF is well-formed.
    """
    digits = clean_cpf(cpf)
    if len(digits) != 11 or digits == digits[0] * 11:
        return False

    numbers = [int(d) for d in digits]
    for position in (9, 10):
        total = sum(n * (position + 1 - i) for i, n in enumerate(numbers[:position]))
        check = (total * 10) % 11
        if check == 10:
            check = 0
        if check != numbers[position]:
            return False
    return True


def clean_phone(phone: str) -> str:
    """Strip punctuation from a phone number, keeping digits only."""
    return re.sub(r"\D", "", phone)


def normalize_name(value: str) -> str:
    """Title-case a name, keeping Portuguese particles lowercase.

    >>> normalize_name("  MARIA DA  SILVA ")
    'Maria da Silva'
    """
    words = value.split()
    return " ".join(
        word.lower() if word.lower() in PT_PARTICLES else word[:1].upper() + word[1:].lower()
        for word in words
    )
