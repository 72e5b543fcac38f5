"""Polyminis exception hierarchy.

``InvariantViolation`` and its subclasses signal corrupted bookkeeping: they
are never caught inside a tick and halt the run. Policy outcomes (a full
epoch, unreachable body segments, clamped stimuli) are not errors and do not
raise.
"""


class PolyminiError(Exception):
    """Root of all Polyminis exceptions."""


class InvariantViolation(PolyminiError):
    """Internal state is inconsistent; the simulation cannot continue."""


class UnknownObjectError(InvariantViolation, KeyError):
    """A physics or thermal world was queried for an unregistered identity."""

    def __init__(self, world: str, uid):
        super().__init__(f"{world}: unknown object {uid!r}")
        self.world = world
        self.uid = uid

    def __str__(self):
        return self.args[0]


class DuplicateObjectError(InvariantViolation):
    """An identity was registered twice in the same physics or thermal world."""

    def __init__(self, world: str, uid):
        super().__init__(f"{world}: {uid!r} is already registered")
        self.world = world
        self.uid = uid


class AccumulatorError(InvariantViolation):
    """A fitness accumulator was built empty or fed an unregistered instinct."""


class ConfigurationError(PolyminiError):
    """Invalid or missing configuration."""
