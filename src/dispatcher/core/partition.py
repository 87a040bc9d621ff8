"""
Batch partitioner - splits an ordered sequence into fixed-size chunks.
"""

from itertools import islice
from typing import Iterable, Iterator, List, TypeVar

from dispatcher.errors import ConfigurationError

T = TypeVar("T")


def partition(sequence: Iterable[T], size: int) -> Iterator[List[T]]:
    """
    Split a sequence into consecutive chunks of at most ``size`` items.

    Chunks are produced lazily and, concatenated in order, reproduce the
    input exactly. Only the last chunk may be shorter than ``size``.

    Args:
        sequence: Items to split (any iterable)
        size: Maximum chunk length

    Returns:
        Iterator over the chunks

    Raises:
        ConfigurationError: If size is not a positive integer. Raised at call
            time, not on first iteration.
    """
    if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
        raise ConfigurationError("size", size, "a positive integer")
    return _chunks(iter(sequence), size)


def _chunks(iterator: Iterator[T], size: int) -> Iterator[List[T]]:
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk
