"""Fatal internal-consistency errors.

These indicate an upstream invariant break: once raised, the numbers of the
current run are meaningless and the run is aborted. Recoverable conditions
(dangling origins, overlapping ranges, missing attributes) are logged
instead and never raise.
"""


class ProfileError(RuntimeError):
    """Base class for errors that abort a profiling run."""


class SortednessViolation(ProfileError):
    """Address records were not strictly ascending by start address."""

    def __init__(self, previous_start: int, start: int):
        super().__init__(
            f"address records out of order: {start:#x} follows {previous_start:#x}"
        )
        self.previous_start = previous_start
        self.start = start


class NegativeSelfSize(ProfileError):
    """A node's reported descendants claim more bytes than the node has."""

    def __init__(self, name: str, size: int, children_size: int):
        super().__init__(
            f"{name}: children claim {children_size} bytes but node has only {size}"
        )
        self.name = name
        self.size = size
        self.children_size = children_size


class DepthLimitExceeded(ProfileError):
    """Debug-info nesting went deeper than the configured bound."""

    def __init__(self, limit: int):
        super().__init__(f"debug-info nesting exceeds the limit of {limit} levels")
        self.limit = limit
