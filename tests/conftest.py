import pytest

from delivery_sheet.models.records import ExtractedDelivery, IdGenerator, ImagePayload
from delivery_sheet.store import RecordStore


class FrozenClock:
    """Clock that never advances unless told to."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


class FakeExtractionClient:
    """Returns canned rows (or raises) per image name."""

    def __init__(self, results: dict):
        self.results = results
        self.calls = []

    def extract(self, image: ImagePayload):
        self.calls.append(image.name)
        outcome = self.results[image.name]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def store(clock):
    return RecordStore(id_generator=IdGenerator(clock=clock))


@pytest.fixture
def make_image():
    def _make(name: str) -> ImagePayload:
        return ImagePayload(data=b"not-really-an-image", mime_type="image/jpeg", name=name)
    return _make


@pytest.fixture
def two_rows():
    return [
        ExtractedDelivery(date="12/03", collection="Rua A, 10", destination="Rua B, 20", total="35,50"),
        ExtractedDelivery(date="2024-03-13", collection="Rua C, 5", destination="Rua D, 7", total="20"),
    ]
