"""
Symmetry orbits of grid offsets.

A stencil term is declared by one generator offset; the full set of sampled
points is the orbit of that generator under the symmetry group of the target
operator:

- ``full``: all coordinate permutations and sign flips (Laplacian, Bilaplacian).
- ``odd_first_axis``: the first coordinate keeps its magnitude, the remaining
  coordinates take all permutations and sign flips; images with positive first
  coordinate carry weight +1 and their mirrors -1 (x component of the gradient
  of the Laplacian).
"""

from __future__ import annotations

import itertools
from enum import Enum

Offset = tuple[int, ...]
SignedOffset = tuple[Offset, int]


class Symmetry(str, Enum):
    """Symmetry class of a stencil family."""

    FULL = "full"
    ODD_FIRST_AXIS = "odd_first_axis"


def _hyperoctahedral_images(generator: Offset) -> set[Offset]:
    images: set[Offset] = set()
    for permuted in itertools.permutations(generator):
        choices = [(value, -value) if value else (0,) for value in permuted]
        images.update(itertools.product(*choices))
    return images


def orbit(generator: Offset | list[int], symmetry: Symmetry | str = Symmetry.FULL) -> tuple[SignedOffset, ...]:
    """
    Return the signed orbit of a generator offset.

    Args:
        generator: Integer offset in units of h
        symmetry: Symmetry class used to generate the images

    Returns:
        Sorted, de-duplicated tuple of ``(offset, sign)`` pairs

    Raises:
        ValueError: If the generator is empty or, for ``odd_first_axis``, its
            first coordinate is not positive

    Example:
        >>> orbit((1, 0))
        (((-1, 0), 1), ((0, -1), 1), ((0, 1), 1), ((1, 0), 1))
    """
    generator = tuple(int(value) for value in generator)
    symmetry = Symmetry(symmetry)
    if not generator:
        raise ValueError("Generator offset must have at least one coordinate")

    if symmetry is Symmetry.FULL:
        return tuple((image, 1) for image in sorted(_hyperoctahedral_images(generator)))

    first, rest = generator[0], generator[1:]
    if first <= 0:
        raise ValueError(f"odd_first_axis generator needs a positive first coordinate, got {generator}")

    transverse = _hyperoctahedral_images(rest) if rest else {()}
    signed: list[SignedOffset] = []
    for image in sorted(transverse):
        signed.append(((first, *image), 1))
        signed.append(((-first, *image), -1))
    return tuple(sorted(signed))


def orbit_size(generator: Offset | list[int], symmetry: Symmetry | str = Symmetry.FULL) -> int:
    """Number of distinct grid points in the orbit."""
    return len(orbit(generator, symmetry))
