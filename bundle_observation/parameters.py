"""
Parameter layout of an observation inside the global correction vector.

The solver numbers the unknowns of one observation in a fixed block order:

    X, Y, Z, RA, DEC[, TWIST]

Every block holds the polynomial coefficients of one axis, lowest order first.
Position blocks have `Px` terms, pointing blocks have `Pa` terms, and the TWIST
block is present only when twist is solved.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

import numpy as np


class ParameterBlock(Enum):
    """Axis blocks in solver order."""
    X = "X"
    Y = "Y"
    Z = "Z"
    RA = "RA"
    DEC = "DEC"
    TWIST = "TWI"

    @property
    def is_angle(self) -> bool:
        return self in (ParameterBlock.RA, ParameterBlock.DEC, ParameterBlock.TWIST)


POSITION_BLOCKS = (ParameterBlock.X, ParameterBlock.Y, ParameterBlock.Z)
POINTING_BLOCKS = (ParameterBlock.RA, ParameterBlock.DEC, ParameterBlock.TWIST)


class TermKind(Enum):
    """Physical meaning of a polynomial coefficient within its block."""
    VALUE = 0
    RATE = 1
    ACCELERATION = 2
    HIGHER_ORDER = 3

    @classmethod
    def for_term(cls, order: int) -> "TermKind":
        return cls(min(order, 3))


@dataclass(frozen=True)
class BlockSpan:
    """Location of one axis block in an observation's parameter vector."""
    block: ParameterBlock
    offset: int
    size: int

    @property
    def slice(self) -> slice:
        return slice(self.offset, self.offset + self.size)


class ParameterLayout:
    """
    Block layout for a given number of position and angle coefficients.

    Args:
        position_coefficients: Coefficients solved per position axis (Px)
        angle_coefficients: Coefficients solved per angle axis (Pa)
        solve_twist: Whether the TWIST block is present
    """

    def __init__(self, position_coefficients: int, angle_coefficients: int, solve_twist: bool):
        if position_coefficients < 0 or angle_coefficients < 0:
            raise ValueError("Coefficient counts must be non-negative")

        self.position_coefficients = position_coefficients
        self.angle_coefficients = angle_coefficients
        self.solve_twist = solve_twist

        spans = []
        offset = 0
        if position_coefficients > 0:
            for block in POSITION_BLOCKS:
                spans.append(BlockSpan(block, offset, position_coefficients))
                offset += position_coefficients
        if angle_coefficients > 0:
            pointing = POINTING_BLOCKS if solve_twist else POINTING_BLOCKS[:2]
            for block in pointing:
                spans.append(BlockSpan(block, offset, angle_coefficients))
                offset += angle_coefficients

        self.spans: Tuple[BlockSpan, ...] = tuple(spans)
        self.kinds: Tuple[TermKind, ...] = tuple(
            TermKind.for_term(i) for span in spans for i in range(span.size)
        )
        self._by_block: Dict[ParameterBlock, BlockSpan] = {s.block: s for s in spans}
        self.size = offset

    @classmethod
    def from_settings(cls, settings) -> "ParameterLayout":
        return cls(
            settings.number_camera_position_coefficients_solved,
            settings.number_camera_angle_coefficients_solved,
            settings.solve_twist,
        )

    @property
    def number_position_parameters(self) -> int:
        return 3 * self.position_coefficients

    @property
    def number_pointing_parameters(self) -> int:
        if self.solve_twist:
            return 3 * self.angle_coefficients
        return 2 * self.angle_coefficients

    def __len__(self) -> int:
        return self.size

    def __contains__(self, block: ParameterBlock) -> bool:
        return block in self._by_block

    def span(self, block: ParameterBlock) -> BlockSpan:
        try:
            return self._by_block[block]
        except KeyError:
            raise KeyError(f"Block {block.name} is not part of this layout") from None

    def block_values(self, vector: np.ndarray, block: ParameterBlock) -> np.ndarray:
        """Return the entries of `vector` belonging to one block."""
        return np.asarray(vector)[self.span(block).slice]

    def term_kinds(self) -> List[TermKind]:
        """Term kind of every parameter, index-aligned to the layout."""
        return list(self.kinds)

    def blocks(self) -> List[ParameterBlock]:
        """Block of every parameter, index-aligned to the layout."""
        return [span.block for span in self.spans for _ in range(span.size)]

    def parameter_names(self) -> List[str]:
        """Names such as 'X(t0)', 'RA(t1)' in solver order."""
        return [
            f"{span.block.value}(t{i})"
            for span in self.spans
            for i in range(span.size)
        ]

    def __repr__(self) -> str:
        return (
            f"ParameterLayout(position_coefficients={self.position_coefficients}, "
            f"angle_coefficients={self.angle_coefficients}, solve_twist={self.solve_twist})"
        )
