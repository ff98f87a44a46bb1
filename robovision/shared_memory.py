"""Named shared memory blocks shared between programs."""

from __future__ import annotations

from multiprocessing import shared_memory


class SharedMemoryError(Exception):
    """Raised when a shared memory block cannot be created or attached."""


def open_shared_memory(name: str, size: int) -> shared_memory.SharedMemory:
    """Create the named block of ``size`` bytes, or attach to it if it exists.

    The caller owns the returned block and should ``close()`` it, and
    ``unlink()`` it when no program needs it any more.
    """
    if size <= 0:
        raise SharedMemoryError(f"shared memory size must be positive: {size}")
    try:
        return shared_memory.SharedMemory(name=name, create=True, size=size)
    except FileExistsError:
        pass
    except OSError as exc:
        raise SharedMemoryError(f"shared memory file mapping error: {exc}") from exc
    try:
        block = shared_memory.SharedMemory(name=name, create=False)
    except OSError as exc:
        raise SharedMemoryError(f"shared memory file mapping error: {exc}") from exc
    if block.size < size:
        block.close()
        raise SharedMemoryError(
            f"existing shared memory block {name!r} holds {block.size} bytes, "
            f"{size} requested"
        )
    return block