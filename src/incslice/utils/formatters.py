"""Output formatting utilities."""
from typing import List, Sequence


def format_slices(slices: Sequence, show_stats: bool = True) -> List[str]:
    """Format slices as list of strings.

    Args:
        slices: List of Slice objects
        show_stats: Include score, size and error

    Returns:
        List of formatted strings
    """
    return [format_slice_string(s, show_stats) for s in slices]


def format_slice_string(slice_, show_stats: bool = True) -> str:
    """Format a single slice as string.

    Args:
        slice_: Slice object
        show_stats: Include score, size and error

    Returns:
        Formatted string
    """
    if show_stats:
        return (f"{slice_.to_string()} : score={slice_.score:.4f} "
                f"size={int(slice_.size)} error={slice_.error:.4f}")
    else:
        return slice_.to_string()
