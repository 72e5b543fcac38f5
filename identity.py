"""
Identity issuance for Polyminis.

Every component that creates individuals receives the IdGenerator owned by
the running Simulation, so identity sequences are deterministic per run.
"""


class IdGenerator:
    """Monotonic integer identities starting at `start`."""

    def __init__(self, start: int = 1):
        self._next = int(start)

    def next(self) -> int:
        uid = self._next
        self._next += 1
        return uid

    def peek(self) -> int:
        return self._next

    def __repr__(self):
        return f"IdGenerator(next={self._next})"
