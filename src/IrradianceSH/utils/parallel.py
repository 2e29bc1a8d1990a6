from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, TypeVar

from src.IrradianceSH.datatypes import Face

T = TypeVar("T")


def run_per_face(task: Callable[[Face], T]) -> List[T]:
    """
    Run task(face) for the six cube faces in parallel and wait for all of them.

    Each task must only touch its own face and return its own result; results are merged
    by the caller after the barrier. An exception raised by any task is re-raised here.

    :param task: called once per face
    :return results: task results in Face order
    """
    with ThreadPoolExecutor(max_workers=len(Face), thread_name_prefix="cubemap-face") as executor:
        futures = [executor.submit(task, face) for face in Face]
        return [future.result() for future in futures]
