"""CSV table reader for synthesis inputs."""

import csv
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

STOP_FILES = ("stops.csv",)
PATTERN_FILES = ("patterns.csv", "routes.csv")
ITINERARY_FILES = ("itineraries.csv",)


class TableReader:
    """Read the raw stop, pattern and itinerary tables from a directory."""

    def __init__(self, input_path: str) -> None:
        """Initialize reader with input directory path."""
        self.input_path = Path(input_path)
        if not self.input_path.is_dir():
            raise ValueError(f"Input path not found or not a directory: {input_path}")

        self.stops: list[dict[str, Any]] = []
        self.patterns: list[dict[str, Any]] = []
        self.itineraries: list[dict[str, Any]] = []

    def read_all(self) -> None:
        """Read all input tables."""
        logger.info(f"Reading input tables from {self.input_path}")
        self.read_stops()
        self.read_patterns()
        self.read_itineraries()
        logger.info(
            f"Loaded {len(self.stops)} stop rows, {len(self.patterns)} pattern rows, "
            f"{len(self.itineraries)} itinerary rows"
        )

    def read_stops(self) -> None:
        """Read stops.csv."""
        file_path = self._find(STOP_FILES)
        if file_path is None:
            raise FileNotFoundError(f"Required file not found: {self.input_path / STOP_FILES[0]}")
        self.stops = self._read_csv(file_path)

    def read_patterns(self) -> None:
        """Read patterns.csv, falling back to routes.csv."""
        file_path = self._find(PATTERN_FILES)
        if file_path is None:
            logger.info("patterns.csv not found, stored patterns will be used if available")
            return
        self.patterns = self._read_csv(file_path)

    def read_itineraries(self) -> None:
        """Read itineraries.csv if present."""
        file_path = self._find(ITINERARY_FILES)
        if file_path is None:
            logger.info("itineraries.csv not found, no trips will be synthesized")
            return
        self.itineraries = self._read_csv(file_path)

    def _find(self, names: tuple[str, ...]) -> Path | None:
        for name in names:
            file_path = self.input_path / name
            if file_path.exists():
                return file_path
        return None

    @staticmethod
    def _read_csv(file_path: Path) -> list[dict[str, Any]]:
        with open(file_path, encoding="utf-8-sig", newline="") as f:
            sample = f.read(4096)
            f.seek(0)
            delimiter = ";" if sample.count(";") > sample.count(",") else ","
            return list(csv.DictReader(f, delimiter=delimiter))
