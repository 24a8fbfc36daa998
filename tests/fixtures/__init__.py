"""
Test Fixtures Package
"""

from .fakes import (
    FakeDeriver,
    FakeDownloader,
    FakeProvider,
    RecordingDispatcher,
)
from .sample_data import (
    SAMPLE_RAW_DATA,
    SAMPLE_STORYBOARD_JSON,
    SAMPLE_PDF_BYTES,
)

__all__ = [
    'FakeDeriver',
    'FakeDownloader',
    'FakeProvider',
    'RecordingDispatcher',
    'SAMPLE_RAW_DATA',
    'SAMPLE_STORYBOARD_JSON',
    'SAMPLE_PDF_BYTES',
]
