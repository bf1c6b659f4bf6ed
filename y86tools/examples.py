"""Reference versions of the routines written in Y86-64 assembly in Part A."""

from __future__ import annotations

from dataclasses import dataclass
from typing import MutableSequence, Optional, Sequence

_MASK = (1 << 64) - 1


def _wrap(value: int) -> int:
    value &= _MASK
    return value - (1 << 64) if value >> 63 else value


@dataclass
class ListNode:
    """One element of a singly linked list of longs."""

    val: int
    next: Optional["ListNode"] = None


def sum_list(ls: Optional[ListNode]) -> int:
    """Sum the elements of a linked list."""
    total = 0
    while ls is not None:
        total = _wrap(total + ls.val)
        ls = ls.next
    return total


def rsum_list(ls: Optional[ListNode]) -> int:
    """Recursive version of sum_list."""
    if ls is None:
        return 0
    return _wrap(ls.val + rsum_list(ls.next))


def copy_block(src: Sequence[int], dest: MutableSequence[int], length: int) -> int:
    """Copy length words from src into dest and return the xor checksum of src."""
    result = 0
    for index in range(max(length, 0)):
        val = src[index]
        dest[index] = val
        result ^= val
    return result