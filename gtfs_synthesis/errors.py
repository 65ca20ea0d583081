"""Error taxonomy for schedule synthesis."""

from dataclasses import dataclass


class SynthesisError(Exception):
    """Base class for data problems found while synthesizing a schedule."""

    kind = "SynthesisError"


class MissingRequiredField(SynthesisError):
    """A row lacks one of the fields its table requires."""

    kind = "MissingRequiredField"


class UnknownStopReference(SynthesisError):
    """A stop reference matches neither a stop code nor a stop name."""

    kind = "UnknownStopReference"

    def __init__(self, ref: str) -> None:
        super().__init__(f"Unknown stop reference: {ref}")
        self.ref = ref


class PatternNotFound(SynthesisError):
    """The route referenced by an event has no pattern at all."""

    kind = "PatternNotFound"

    def __init__(self, route_id: str, origin_ref: str, dest_ref: str) -> None:
        super().__init__(f"Route {route_id} not defined ({origin_ref}->{dest_ref})")
        self.route_id = route_id
        self.origin_ref = origin_ref
        self.dest_ref = dest_ref


class StopPairNotFound(SynthesisError):
    """No pattern of the route holds origin before destination."""

    kind = "StopPairNotFound"

    def __init__(self, route_id: str, origin_ref: str, dest_ref: str) -> None:
        super().__init__(f"Stops {origin_ref}->{dest_ref} not found in Route {route_id}")
        self.route_id = route_id
        self.origin_ref = origin_ref
        self.dest_ref = dest_ref


class MissingServiceIdColumn(SynthesisError):
    """The itinerary table has no service_id column, so no event can be attributed."""

    kind = "MissingServiceIdColumn"


class CommitError(SynthesisError):
    """A staged result would leave the store inconsistent; nothing was applied."""

    kind = "CommitError"


@dataclass(frozen=True)
class RowError:
    """One recorded failure, returned to the caller after a run."""

    row: int
    source_file: str  # stops, patterns, itineraries
    kind: str
    message: str

    @classmethod
    def from_exception(cls, row: int, source_file: str, error: SynthesisError) -> "RowError":
        return cls(row=row, source_file=source_file, kind=error.kind, message=str(error))
