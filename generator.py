"""
generator.py – Random password generation.

GenerationSettings describes what to generate (length and the four
character classes); generate() turns it into a password using the
operating system's CSPRNG through the secrets module.

Every character is drawn independently with secrets.randbelow(), so each
symbol of the active alphabet is equally likely.  No class is guaranteed
to appear in the output: a short password with every class enabled may,
rarely, contain no digit at all.
"""

import secrets
from dataclasses import dataclass, replace

from config import DEFAULT_LENGTH, DIGITS, LOWERCASE, MAX_LENGTH, MIN_LENGTH, SYMBOLS, UPPERCASE


class GenerationError(ValueError):
    """Base class for errors raised by generate()."""


class EmptyAlphabet(GenerationError):
    """Raised when every character class is disabled."""

    def __init__(self) -> None:
        super().__init__("No character classes selected")


class LengthOutOfRange(GenerationError):
    """Raised when the requested length lies outside [MIN_LENGTH, MAX_LENGTH]."""

    def __init__(self, length: int) -> None:
        super().__init__(
            f"Password length must be between {MIN_LENGTH} and {MAX_LENGTH} (got {length})"
        )
        self.length: int = length


@dataclass(frozen=True)
class GenerationSettings:
    """Length and enabled character classes for a generated password."""

    length: int = DEFAULT_LENGTH
    include_lower: bool = True
    include_upper: bool = True
    include_numbers: bool = True
    include_symbols: bool = True

    def flags(self) -> tuple:
        """Class flags in canonical order: lower, upper, digits, symbols."""
        return (self.include_lower, self.include_upper,
                self.include_numbers, self.include_symbols)

    def alphabet(self) -> str:
        """Concatenation of the enabled classes, in canonical order."""
        classes = (LOWERCASE, UPPERCASE, DIGITS, SYMBOLS)
        return "".join(chars for chars, on in zip(classes, self.flags()) if on)

    def toggled(self, index: int) -> "GenerationSettings":
        """Return a copy with class flag *index* (0-3) flipped."""
        names = ("include_lower", "include_upper", "include_numbers", "include_symbols")
        name = names[index]
        return replace(self, **{name: not getattr(self, name)})

    def with_length(self, length: int) -> "GenerationSettings":
        return replace(self, length=length)


def generate(settings: GenerationSettings) -> str:
    """
    Return a new random password for *settings*.

    Raises
    ------
    EmptyAlphabet
        If no character class is enabled (checked before the length).
    LengthOutOfRange
        If settings.length is below MIN_LENGTH or above MAX_LENGTH.
    """
    alphabet = settings.alphabet()
    if not alphabet:
        raise EmptyAlphabet()
    if not MIN_LENGTH <= settings.length <= MAX_LENGTH:
        raise LengthOutOfRange(settings.length)

    size = len(alphabet)
    return "".join(alphabet[secrets.randbelow(size)] for _ in range(settings.length))
