"""Key-distance calculator: maps two key names to a signed semitone shift."""

from keyshift.errors import InvalidKeyError

# Chromatic position of every recognised spelling (index 0 = C)
KEY_POSITIONS: dict[str, int] = {
    "C": 0,
    "C#": 1, "Db": 1,
    "D": 2,
    "D#": 3, "Eb": 3,
    "E": 4,
    "F": 5,
    "F#": 6, "Gb": 6,
    "G": 7,
    "G#": 8, "Ab": 8,
    "A": 9,
    "A#": 10, "Bb": 10,
    "B": 11,
}

KEY_NAMES: list[str] = list(KEY_POSITIONS)
MINOR_KEY_NAMES: list[str] = [f"{name}m" for name in KEY_NAMES]

MINOR_SUFFIX = "m"
HALF_OCTAVE = 6
OCTAVE = 12


def key_root(name: str) -> str:
    """Strip a trailing minor suffix, e.g. 'Bbm' -> 'Bb'."""
    if name.endswith(MINOR_SUFFIX):
        return name[: -len(MINOR_SUFFIX)]
    return name


def is_valid_key(name: str, allow_minor: bool = True) -> bool:
    """Return True when *name* is one of the 17 spellings (optionally minor)."""
    if name in KEY_POSITIONS:
        return True
    return allow_minor and name.endswith(MINOR_SUFFIX) and key_root(name) in KEY_POSITIONS


def key_position(name: str) -> int:
    """
    Chromatic position 0-11 of a key name.

    Raises:
        InvalidKeyError: If the letter/accidental prefix is not recognised.
    """
    try:
        return KEY_POSITIONS[key_root(name)]
    except KeyError:
        raise InvalidKeyError(f"Unrecognised key name: {name!r}") from None


def semitone_shift(source_key: str, target_key: str) -> int:
    """
    Shortest signed chromatic distance from *source_key* to *target_key*.

    The raw difference is wrapped into [-6, 6] with strict comparisons, so an
    exact half-octave is never renormalised: C -> F# is +6, F# -> C is -6.
    The result is therefore always anti-symmetric,
    ``semitone_shift(a, b) == -semitone_shift(b, a)``.

    Args:
        source_key: Key the audio is currently in, e.g. 'Bb' or 'Am'.
        target_key: Key to move to.

    Returns:
        Semitones to shift by, in the closed range [-6, 6].
    """
    shift = key_position(target_key) - key_position(source_key)
    if shift > HALF_OCTAVE:
        shift -= OCTAVE
    if shift < -HALF_OCTAVE:
        shift += OCTAVE
    return shift
