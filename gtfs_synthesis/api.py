"""Public API for gtfs-synthesis."""

import hashlib
import json
import logging
import platform
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from gtfs_synthesis.errors import MissingServiceIdColumn, RowError, SynthesisError
from gtfs_synthesis.gtfs.models import Manifest, SynthesisConfig, SynthesisResult, ValidationReport
from gtfs_synthesis.gtfs.reader import TableReader
from gtfs_synthesis.gtfs.rows import canonicalize_event, check_service_id_column
from gtfs_synthesis.gtfs.validator import ResultValidator
from gtfs_synthesis.output.json import STORE_FILES, load_store, write_errors, write_store
from gtfs_synthesis.output.travel_times import build_travel_time_rows, write_travel_times
from gtfs_synthesis.routing.osrm import OsrmProvider
from gtfs_synthesis.store import SynthesisStore
from gtfs_synthesis.transform.compression import compress_all
from gtfs_synthesis.transform.routes import PatternSet, build_patterns, group_patterns
from gtfs_synthesis.transform.segments import RouteProvider, SegmentGraph
from gtfs_synthesis.transform.shapes import build_shapes
from gtfs_synthesis.transform.stops import StopRegistry, build_registry
from gtfs_synthesis.transform.trips import (
    TripSynthesizer,
    build_calendars,
    build_template_trips,
    pattern_rows_from_templates,
)
from gtfs_synthesis.version import SCHEMA_VERSION, VERSION

logger = logging.getLogger(__name__)


def _registry_with_store(registry: StopRegistry, store: SynthesisStore) -> StopRegistry:
    """Add committed stops whose code the current stop rows do not redefine."""
    fresh_codes = {stop.code for stop in registry.stops}
    carried = [stop for stop in store.stops.values() if stop.code not in fresh_codes]
    if not carried:
        return registry
    logger.info(f"Carrying {len(carried)} committed stops into the registry")
    return StopRegistry(carried + registry.stops)


def synthesize(
    stop_rows: list[dict[str, Any]],
    pattern_rows: list[dict[str, Any]],
    itinerary_rows: list[dict[str, Any]],
    config: SynthesisConfig | None = None,
    store: SynthesisStore | None = None,
    provider: RouteProvider | None = None,
) -> SynthesisResult:
    """
    Synthesize a schedule from raw stop, pattern and itinerary rows.

    Data problems never raise: bad rows are skipped and reported in the
    result's error list. Nothing is committed; pass the result to
    SynthesisStore.commit to apply it.

    Args:
        stop_rows: Stop table rows
        pattern_rows: Pattern table rows; when empty, patterns are rebuilt
            from the template trips in the store
        itinerary_rows: Itinerary table rows
        config: Optional synthesis configuration
        store: Previously committed state, seeds segments and patterns
        provider: Optional routing provider for segment distance and geometry

    Returns:
        SynthesisResult staged for commit
    """
    if config is None:
        config = SynthesisConfig()

    errors: list[RowError] = []

    # Stops
    registry = build_registry(stop_rows, errors)
    if store is not None:
        registry = _registry_with_store(registry, store)

    # Patterns
    if pattern_rows:
        patterns = build_patterns(pattern_rows, registry, errors)
    elif store is not None and config.use_stored_patterns:
        logger.info("No pattern rows, rebuilding patterns from stored template trips")
        stored_rows = pattern_rows_from_templates(store.template_trips(), store.visits, registry)
        patterns = group_patterns(stored_rows, registry, errors)
    else:
        patterns = PatternSet()

    # Segments
    existing = store.segments.values() if store is not None else ()
    graph = SegmentGraph(registry, provider=provider, existing=existing)
    graph.add_pattern_segments(patterns)

    # Itineraries
    synthesizer = TripSynthesizer(registry, patterns, graph, default_block=config.default_block)
    try:
        check_service_id_column(itinerary_rows)
    except MissingServiceIdColumn as e:
        logger.error(f"Itinerary phase aborted: {e}")
        errors.append(RowError.from_exception(1, "itineraries", e))
        itinerary_rows = []

    for index, raw in enumerate(itinerary_rows):
        row = index + 2
        try:
            synthesizer.process(canonicalize_event(raw, row))
        except SynthesisError as e:
            logger.warning(f"Itinerary row {row} skipped: {e}")
            errors.append(RowError.from_exception(row, "itineraries", e))

    logger.info(f"Synthesized {len(synthesizer.trips)} trips from {len(itinerary_rows)} itinerary rows")

    # Slots
    slots, bases = compress_all(synthesizer.observations)

    # Templates, shapes, calendars
    template_trips, template_visits = build_template_trips(patterns)
    trips = template_trips + list(synthesizer.trips.values())
    visits = {**template_visits, **synthesizer.visits}

    known_shapes = store.shape_index() if store is not None else None
    trips, shapes = build_shapes(trips, visits, graph, registry, known=known_shapes)

    calendars = build_calendars(
        synthesizer.service_ids, config.service_start_date, config.calendar_days
    )

    result = SynthesisResult(
        stops=list(registry.stops),
        segments=list(graph.segments.values()),
        slots=slots,
        base_travel_times=bases,
        trips=trips,
        stop_visits=visits,
        calendars=calendars,
        shapes=shapes,
        errors=errors,
    )
    logger.info(f"Synthesis stats: {result.stats}")
    return result


def _sha256(filepath: str) -> str:
    with open(filepath, "rb") as f:
        return hashlib.sha256(f.read()).hexdigest()


def run(
    input_path: str,
    output_path: str,
    config: SynthesisConfig | None = None,
    provider: RouteProvider | None = None,
) -> Manifest:
    """
    Synthesize from a directory of CSV tables into an output store directory.

    Args:
        input_path: Directory with stops.csv, patterns.csv and itineraries.csv
        output_path: Output directory; an existing store there is updated
        config: Optional synthesis configuration
        provider: Routing provider; defaults to OSRM when config.routing_url is set

    Returns:
        Manifest with build metadata
    """
    if config is None:
        config = SynthesisConfig(input_path=input_path, output_path=output_path)

    logger.info(f"Starting synthesis: {input_path} -> {output_path}")
    start_time = datetime.now(UTC)

    # Read inputs
    reader = TableReader(input_path)
    reader.read_all()

    output_dir = Path(output_path)
    store = load_store(output_dir)

    if provider is None and config.routing_url:
        provider = OsrmProvider(config.routing_url, timeout=config.routing_timeout)

    result = synthesize(
        reader.stops,
        reader.patterns,
        reader.itineraries,
        config=config,
        store=store,
        provider=provider,
    )

    # Commit, then write
    store.commit(result)

    files_written = write_store(output_dir, store)
    files_written["errors.json"] = write_errors(output_dir, result.errors)
    travel_rows = build_travel_time_rows(store, config.day_type, config.version_label)
    files_written["travel_times.csv"] = write_travel_times(output_dir, travel_rows)

    checksums = {filename: _sha256(filepath) for filename, filepath in files_written.items()}

    stats = store.to_result().stats
    stats["errors"] = len(result.errors)
    stats["run_trips"] = len(result.trips)

    manifest = Manifest(
        schema_version=SCHEMA_VERSION,
        tool_version=VERSION,
        created_at_iso=start_time.isoformat(),
        inputs={"input_path": input_path, "routing_url": config.routing_url},
        outputs=checksums,
        stats=stats,
        build={
            "python": platform.python_version(),
            "platform": platform.platform(),
        },
    )

    manifest_path = output_dir / "manifest.json"
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(
            {
                "schema_version": manifest.schema_version,
                "tool_version": manifest.tool_version,
                "created_at": manifest.created_at_iso,
                "inputs": manifest.inputs,
                "outputs": manifest.outputs,
                "stats": manifest.stats,
                "build": manifest.build,
            },
            f,
            indent=2,
            sort_keys=True,
        )

    logger.info(f"Wrote manifest to {manifest_path}")

    elapsed = (datetime.now(UTC) - start_time).total_seconds()
    logger.info(f"Synthesis completed in {elapsed:.2f}s")

    return manifest


def validate(output_path: str) -> ValidationReport:
    """
    Validate a synthesis output directory.

    Args:
        output_path: Path to output directory written by run()

    Returns:
        ValidationReport with results
    """
    logger.info(f"Validating output: {output_path}")

    output_dir = Path(output_path)
    errors: list[str] = []
    warnings: list[str] = []

    # Check required files exist
    for filename in [*STORE_FILES, "manifest.json"]:
        if not (output_dir / filename).exists():
            errors.append(f"Required file missing: {filename}")

    if errors:
        return ValidationReport(valid=False, errors=errors, warnings=warnings)

    # Validate manifest
    manifest_path = output_dir / "manifest.json"
    try:
        with open(manifest_path, encoding="utf-8") as f:
            manifest_data = json.load(f)

        required_manifest_fields = [
            "schema_version",
            "tool_version",
            "created_at",
            "outputs",
            "stats",
        ]
        for field in required_manifest_fields:
            if field not in manifest_data:
                warnings.append(f"Manifest missing field: {field}")

        if manifest_data.get("schema_version") != SCHEMA_VERSION:
            warnings.append(
                f"Schema version {manifest_data.get('schema_version')} differs from {SCHEMA_VERSION}"
            )

        # Verify checksums
        for filename, expected_hash in manifest_data.get("outputs", {}).items():
            filepath = output_dir / filename
            if not filepath.exists():
                errors.append(f"Output listed in manifest is missing: {filename}")
                continue
            actual_hash = _sha256(str(filepath))
            if actual_hash != expected_hash:
                errors.append(
                    f"Checksum mismatch for {filename}: "
                    f"expected {expected_hash}, got {actual_hash}"
                )

    except (OSError, ValueError) as e:
        errors.append(f"Manifest validation failed: {e}")

    # Validate schedule invariants
    stats: dict[str, int] = {}
    try:
        store = load_store(output_dir)
    except (OSError, ValueError, KeyError, TypeError) as e:
        errors.append(f"Store could not be loaded: {e}")
    else:
        report = ResultValidator(store.to_result()).validate()
        errors.extend(report.errors)
        warnings.extend(report.warnings)
        stats = report.stats

    valid = len(errors) == 0

    if valid:
        logger.info("Validation passed")
    else:
        logger.error(f"Validation failed with {len(errors)} errors")

    return ValidationReport(
        valid=valid,
        errors=errors,
        warnings=warnings,
        stats=stats,
    )
