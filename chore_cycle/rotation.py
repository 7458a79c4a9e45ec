"""Queue rotation rules.

These define whose turn it is after every mutation. The server applies
them to canonical state; clients never compute them for display.
"""


def advance_index(current_index: int, length: int) -> int:
    """Index of the next person in the queue, wrapping to the start."""
    if length <= 0:
        return 0
    return (current_index + 1) % length


def index_after_removal(current_index: int, removed_index: int, old_length: int) -> int:
    """Index of the current holder after removing ``removed_index``.

    Removing someone before the holder shifts the index left so it keeps
    pointing at the same person. Removing the holder keeps the number, which
    now points at the next person in line.
    """
    new_length = old_length - 1
    if new_length <= 0:
        return 0

    if removed_index < current_index:
        current_index -= 1

    if current_index >= new_length:
        return 0
    return current_index
