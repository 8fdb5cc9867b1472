import threading

import pytest

from delivery_sheet.extraction import BatchExtractor, process_images
from delivery_sheet.llm.errors import (
    ExtractionError,
    ExtractionInProgressError,
    MissingCredentialError,
    NoDataExtractedError,
)
from tests.conftest import FakeExtractionClient


def test_batch_appends_rows_from_every_image(store, make_image, two_rows):
    client = FakeExtractionClient({"a.jpg": two_rows, "b.jpg": []})
    extractor = BatchExtractor(client)

    result = process_images(store, extractor, [make_image("a.jpg"), make_image("b.jpg")])

    assert client.calls == ["a.jpg", "b.jpg"]
    assert len(store.deliveries) == 2
    assert result.records == list(store.deliveries)
    assert result.failures == []


def test_batch_with_no_rows_fails_and_appends_nothing(store, make_image):
    store.add_delivery("12/03", destination="existente")
    client = FakeExtractionClient({"a.jpg": [], "b.jpg": []})

    with pytest.raises(NoDataExtractedError) as excinfo:
        process_images(store, BatchExtractor(client), [make_image("a.jpg"), make_image("b.jpg")])

    assert "nenhuma imagem" in str(excinfo.value)
    assert [r.destination for r in store.deliveries] == ["existente"]


def test_failing_image_is_recorded_and_skipped(store, make_image, two_rows):
    client = FakeExtractionClient({
        "a.jpg": ExtractionError("Falha ao processar a imagem com a IA."),
        "b.jpg": two_rows[:1],
    })

    result = process_images(store, BatchExtractor(client), [make_image("a.jpg"), make_image("b.jpg")])

    assert len(store.deliveries) == 1
    assert [f.name for f in result.failures] == ["a.jpg"]


def test_every_image_failing_is_no_data(store, make_image):
    client = FakeExtractionClient({"a.jpg": ExtractionError("boom")})

    with pytest.raises(NoDataExtractedError):
        process_images(store, BatchExtractor(client), [make_image("a.jpg")])
    assert store.deliveries == ()


def test_missing_credential_aborts_the_batch(store, make_image, two_rows):
    client = FakeExtractionClient({
        "a.jpg": MissingCredentialError("sem chave"),
        "b.jpg": two_rows,
    })

    with pytest.raises(MissingCredentialError):
        process_images(store, BatchExtractor(client), [make_image("a.jpg"), make_image("b.jpg")])

    assert client.calls == ["a.jpg"]
    assert store.deliveries == ()


def test_empty_image_list_is_no_data(store):
    with pytest.raises(NoDataExtractedError):
        process_images(store, BatchExtractor(FakeExtractionClient({})), [])


def test_second_batch_is_rejected_while_one_runs(make_image, two_rows):
    started = threading.Event()
    release = threading.Event()

    class SlowClient:
        def extract(self, image):
            started.set()
            release.wait(timeout=5)
            return two_rows

    extractor = BatchExtractor(SlowClient())
    worker = threading.Thread(target=extractor.run, args=([make_image("a.jpg")],))
    worker.start()
    try:
        assert started.wait(timeout=5)
        assert extractor.is_busy
        with pytest.raises(ExtractionInProgressError):
            extractor.run([make_image("b.jpg")])
    finally:
        release.set()
        worker.join(timeout=5)

    assert not extractor.is_busy
    assert len(extractor.run([make_image("c.jpg")]).rows) == 2
