"""
Explicit ownership and disposal of transient resources.

Resources fall into a closed set of kinds; ``dispose`` handles each kind
explicitly and rejects anything else.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class ResourceKind(Enum):
    # FrameHandle holding a decoded candidate
    FRAME = "frame"
    # Scratch numpy buffer (e.g. a resized frame)
    BUFFER = "buffer"
    # Open decoder, e.g. cv2.VideoCapture
    CAPTURE = "capture"


@dataclass
class Resource:
    kind: ResourceKind
    handle: Any
    label: str = ""


def dispose(resource: Resource) -> None:
    """Release one resource according to its kind."""
    kind = resource.kind
    if kind is ResourceKind.FRAME:
        resource.handle.release()
    elif kind is ResourceKind.BUFFER:
        # Dropping the last reference frees the array
        resource.handle = None
    elif kind is ResourceKind.CAPTURE:
        resource.handle.release()
    else:
        raise ValueError(f"Unhandled resource kind: {kind!r}")


class ResourceTracker:
    """
    Tracks resources owned by one pipeline run.

    Instances are created and owned explicitly by their user; there is no
    process-wide registry.
    """

    def __init__(self):
        self._active: Dict[int, Resource] = {}
        self.released: int = 0

    def track(self, kind: ResourceKind, handle: Any, label: str = "") -> Resource:
        resource = Resource(kind=kind, handle=handle, label=label)
        self._active[id(handle)] = resource
        return resource

    def release(self, handle: Any) -> bool:
        """
        Dispose of a tracked handle.

        Returns:
            True if the handle was tracked and has been released.
        """
        resource = self._active.pop(id(handle), None)
        if resource is None:
            return False
        self._dispose(resource)
        return True

    def release_all(self) -> int:
        """Dispose of every tracked resource; returns how many were released."""
        resources: List[Resource] = list(self._active.values())
        self._active.clear()
        for resource in resources:
            self._dispose(resource)
        return len(resources)

    def _dispose(self, resource: Resource) -> None:
        try:
            dispose(resource)
        except Exception:
            logger.exception(f"Failed to release {resource.kind.value} {resource.label}")
        else:
            self.released += 1

    @property
    def active_count(self) -> int:
        return len(self._active)
