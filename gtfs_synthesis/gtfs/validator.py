"""Invariant checks on a synthesized schedule."""

import logging

from gtfs_synthesis.gtfs.models import SynthesisResult, ValidationReport
from gtfs_synthesis.transform.compression import SERVICE_DAY_END

logger = logging.getLogger(__name__)


class ResultValidator:
    """Validate a synthesized result for consistency."""

    def __init__(self, result: SynthesisResult) -> None:
        self.result = result
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def validate(self) -> ValidationReport:
        """Run all validation checks."""
        logger.info("Validating synthesized schedule")

        self._validate_stops()
        self._validate_segments()
        self._validate_stop_visits()
        self._validate_slots()
        self._validate_shapes()

        valid = len(self.errors) == 0
        report = ValidationReport(
            valid=valid,
            errors=self.errors.copy(),
            warnings=self.warnings.copy(),
            stats=self.result.stats,
        )

        if not valid:
            logger.error(f"Validation failed with {len(self.errors)} errors")
        elif self.warnings:
            logger.warning(f"Validation passed with {len(self.warnings)} warnings")
        else:
            logger.info("Validation passed")

        return report

    def _validate_stops(self) -> None:
        """Validate stops have valid coordinates."""
        for stop in self.result.stops:
            if not (-90 <= stop.lat <= 90):
                self.errors.append(f"Stop {stop.stop_id} has invalid latitude: {stop.lat}")
            if not (-180 <= stop.lon <= 180):
                self.errors.append(f"Stop {stop.stop_id} has invalid longitude: {stop.lon}")

    def _validate_segments(self) -> None:
        stop_ids = {stop.stop_id for stop in self.result.stops}
        for segment in self.result.segments:
            for stop_id in (segment.start_stop_id, segment.end_stop_id):
                if stop_id not in stop_ids:
                    self.errors.append(
                        f"Segment {segment.segment_id} references non-existent stop {stop_id}"
                    )
            if segment.distance_m <= 0:
                self.warnings.append(f"Segment {segment.segment_id} has no distance")

    def _validate_stop_visits(self) -> None:
        """Validate sequences, distances and times of every trip's visits."""
        trip_ids = {trip.trip_id for trip in self.result.trips}

        for trip_id, visits in self.result.stop_visits.items():
            if trip_id not in trip_ids:
                self.errors.append(f"Stop times reference non-existent trip {trip_id}")
                continue
            if len(visits) < 2:
                self.warnings.append(f"Trip {trip_id} has fewer than 2 stop times")

            for idx, visit in enumerate(visits):
                if visit.sequence != idx + 1:
                    self.errors.append(
                        f"Trip {trip_id} stop sequence {visit.sequence} at position {idx + 1}"
                    )
                if visit.departure_elapsed < visit.arrival_elapsed:
                    self.errors.append(
                        f"Trip {trip_id} departs before it arrives at sequence {visit.sequence}"
                    )
                if idx == 0:
                    continue

                previous = visits[idx - 1]
                if visit.arrival_elapsed < previous.departure_elapsed:
                    self.errors.append(
                        f"Trip {trip_id} time goes backwards at sequence {visit.sequence}"
                    )
                if visit.distance_traveled_km <= previous.distance_traveled_km:
                    self.errors.append(
                        f"Trip {trip_id} distance not increasing at sequence {visit.sequence}"
                    )

    def _validate_slots(self) -> None:
        """Validate slots are ordered, contiguous and end with the operating day."""
        segment_ids = {segment.segment_id for segment in self.result.segments}

        for segment_id, slots in self.result.slots.items():
            if segment_id not in segment_ids:
                self.errors.append(f"Time slots reference non-existent segment {segment_id}")
            if not slots:
                continue

            for idx, slot in enumerate(slots):
                if slot.start_time_of_day >= slot.end_time_of_day:
                    self.errors.append(f"Segment {segment_id} has an empty slot at {idx}")
                if slot.travel_time_s <= 0:
                    self.errors.append(f"Segment {segment_id} slot {idx} has no travel time")
                if idx > 0 and slot.start_time_of_day != slots[idx - 1].end_time_of_day:
                    self.errors.append(f"Segment {segment_id} slots not contiguous at {idx}")

            if slots[-1].end_time_of_day != SERVICE_DAY_END:
                self.errors.append(f"Segment {segment_id} slots do not end at 36:00:00")
            if segment_id not in self.result.base_travel_times:
                self.warnings.append(f"Segment {segment_id} has slots but no base travel time")

    def _validate_shapes(self) -> None:
        shape_ids = {point.shape_id for point in self.result.shapes}
        for trip in self.result.trips:
            if trip.shape_id is not None and trip.shape_id not in shape_ids:
                self.errors.append(f"Trip {trip.trip_id} references non-existent shape {trip.shape_id}")
