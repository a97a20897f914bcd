from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def parallel_map_ordered(
    func: Callable[[T], R],
    items: Sequence[T] | Iterable[T],
    max_workers: int,
    *,
    on_result: Optional[Callable[[R], None]] = None,
) -> List[R]:
    """
    Execute func over items in a thread pool and return results in input order.
    on_result is called from the calling thread as each result completes.
    The first worker exception cancels pending work and is re-raised.
    """
    items = list(items)
    if max_workers <= 1 or len(items) <= 1:
        results: List[R] = []
        for item in items:
            res = func(item)
            if on_result is not None:
                on_result(res)
            results.append(res)
        return results

    slots: Dict[int, R] = {}
    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as executor:
        futures: Dict[Future[R], int] = {executor.submit(func, item): idx for idx, item in enumerate(items)}
        try:
            for fut in as_completed(futures):
                res = fut.result()
                slots[futures[fut]] = res
                if on_result is not None:
                    on_result(res)
        except BaseException:
            for pending in futures:
                pending.cancel()
            raise
    return [slots[i] for i in range(len(items))]
