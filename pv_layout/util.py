# This file is part of the solar wizard PV suitability model, copyright © Centre for Sustainable Energy, 2020-2023
# Licensed under the Reciprocal Public License v1.5. See LICENSE for licensing details.
import os
from typing import Iterator, Sequence


def frange(start: float, end: float, step: float, tolerance: float = 0.0) -> Iterator[float]:
    """
    range() but accepts floats, and both ascending and descending steps.
    Yields values up to and including `end` (within `tolerance`).
    """
    if step == 0:
        raise ValueError("frange step cannot be 0")

    i = 0
    cur = float(start)
    if step > 0:
        while cur <= end + tolerance:
            yield cur
            i += 1
            cur = start + i * step
    else:
        while cur >= end - tolerance:
            yield cur
            i += 1
            cur = start + i * step


def get_cpu_count() -> int:
    if hasattr(os, "sched_getaffinity"):
        return len(os.sched_getaffinity(0))
    return os.cpu_count() or 1


def validate_str(val: str, name: str, allowed: Sequence[str] = None) -> str:
    if val is None:
        raise ValueError(f"parameter {name} was None")
    val = str(val)
    if allowed is not None and val not in allowed:
        raise ValueError(f"parameter {name} not in {list(allowed)}, was {val}")
    return val


def validate_float(val: float, name: str, minval: float = None, maxval: float = None,
                   exclusive_min: bool = False) -> float:
    if val is None:
        raise ValueError(f"parameter {name} was None")
    val = float(val)
    if minval is not None:
        if exclusive_min and val <= minval:
            raise ValueError(f"parameter {name} must be greater than {minval}, was {val}")
        if val < minval:
            raise ValueError(f"parameter {name} must be greater or equal to {minval}, was {val}")
    if maxval is not None and val > maxval:
        raise ValueError(f"parameter {name} must be less than or equal to {maxval}, was {val}")
    return val


def validate_int(val: int, name: str, minval: int = None, maxval: int = None) -> int:
    if val is None:
        raise ValueError(f"parameter {name} was None")
    val = int(val)
    if minval is not None and val < minval:
        raise ValueError(f"parameter {name} must be greater or equal to {minval}, was {val}")
    if maxval is not None and val > maxval:
        raise ValueError(f"parameter {name} must be less than or equal to {maxval}, was {val}")
    return val
