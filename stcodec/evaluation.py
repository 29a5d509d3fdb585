"""Batch materialization of tensors ahead of a write.

Every pending :class:`LazyTensor` in a batch is forced on one thread pool
and the call returns only once all of them have completed.  No array is
handed back while another in the same batch is still being read.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Mapping, Optional

import numpy as np

from .dtypes import from_numpy, to_numpy
from .lazy import LazyTensor

logger = logging.getLogger("stcodec")


def contiguous(array: np.ndarray) -> np.ndarray:
    """Return *array* as a C-contiguous, little-endian array of a stored dtype.

    Raises :class:`~stcodec.errors.UnsupportedTypeError` for dtypes the
    format cannot hold.
    """
    target = to_numpy(from_numpy(array.dtype))
    if array.dtype != target:
        array = array.astype(target)
    return np.require(array, requirements="C")


def evaluate(tensors: list[Any], *, max_workers: Optional[int] = None) -> None:
    """Force every unmaterialized lazy tensor in *tensors*, then return."""
    pending = [
        t for t in tensors if isinstance(t, LazyTensor) and not t.materialized
    ]
    if not pending:
        return
    logger.debug("materializing %d lazy tensors (max_workers=%s)",
                 len(pending), max_workers)
    with ThreadPoolExecutor(max_workers=max_workers,
                            thread_name_prefix="stcodec-eval") as pool:
        futures = [pool.submit(t.evaluate) for t in pending]
    # Pool shutdown is the barrier; failures surface after the whole batch.
    for fut in futures:
        fut.result()


def materialize(
    tensors: Mapping[str, Any], *, max_workers: Optional[int] = None
) -> dict[str, np.ndarray]:
    """Evaluate and make contiguous every value of *tensors*.

    Values may be numpy arrays, :class:`LazyTensor` handles, or anything
    ``np.asarray`` accepts.
    """
    evaluate(list(tensors.values()), max_workers=max_workers)
    return {name: contiguous(np.asarray(value)) for name, value in tensors.items()}
