"""GTFS Synthesis - Build trips, segments and travel-time slots from raw itineraries."""

from gtfs_synthesis.api import run, synthesize, validate
from gtfs_synthesis.store import SynthesisStore
from gtfs_synthesis.version import SCHEMA_VERSION, VERSION

__version__ = VERSION
__all__ = ["SCHEMA_VERSION", "VERSION", "SynthesisStore", "run", "synthesize", "validate"]
