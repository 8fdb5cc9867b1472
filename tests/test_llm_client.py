import base64
import json
from io import BytesIO

import pytest
import requests
from PIL import Image

from delivery_sheet.config import AppConfig, ExtractionProvider, GeminiConfig, LMStudioConfig
from delivery_sheet.extraction import BatchExtractor, process_images
from delivery_sheet.llm.client import GeminiClient, LMStudioClient, create_client
from delivery_sheet.llm.errors import ExtractionError, MissingCredentialError, NoDataExtractedError
from delivery_sheet.models.records import ImagePayload

ROWS_JSON = json.dumps([
    {"date": "12/03", "collection": "Rua A", "destination": "Rua B", "total": "35,50", "observation": ""},
])


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


@pytest.fixture
def capture_post(monkeypatch):
    """Replace requests.post with a fake returning the given response."""
    calls = []

    def _install(response):
        def fake_post(url, **kwargs):
            calls.append((url, kwargs))
            if isinstance(response, Exception):
                raise response
            return response
        monkeypatch.setattr(requests, "post", fake_post)
        return calls

    return _install


def gemini_payload(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def png_bytes(size=(40, 20), mode="RGBA"):
    buffer = BytesIO()
    Image.new(mode, size).save(buffer, format="PNG")
    return buffer.getvalue()


def test_missing_key_fails_before_any_request(capture_post, make_image):
    calls = capture_post(FakeResponse(payload=gemini_payload(ROWS_JSON)))
    client = GeminiClient(GeminiConfig(api_key=""))

    with pytest.raises(MissingCredentialError) as excinfo:
        client.extract(make_image("a.jpg"))

    assert "Google Gemini" in str(excinfo.value)
    assert calls == []
    assert client.is_available() is False


def test_gemini_returns_rows(capture_post, make_image):
    calls = capture_post(FakeResponse(payload=gemini_payload(ROWS_JSON)))
    client = GeminiClient(GeminiConfig(api_key="secret", model="gemini-test"))

    rows = client.extract(make_image("a.jpg"))

    assert [(r.destination, r.total) for r in rows] == [("Rua B", "35,50")]
    url, kwargs = calls[0]
    assert url.endswith("/models/gemini-test:generateContent")
    assert kwargs["headers"]["x-goog-api-key"] == "secret"
    generation = kwargs["json"]["generationConfig"]
    assert generation["responseMimeType"] == "application/json"
    assert generation["responseSchema"]["type"] == "ARRAY"
    inline = kwargs["json"]["contents"][0]["parts"][1]["inline_data"]
    assert inline["mime_type"] == "image/jpeg"
    assert base64.b64decode(inline["data"]) == b"not-really-an-image"


def test_gemini_without_candidates_is_a_failure(capture_post, make_image):
    capture_post(FakeResponse(payload={"candidates": []}))
    client = GeminiClient(GeminiConfig(api_key="secret"))

    with pytest.raises(ExtractionError):
        client.extract(make_image("a.jpg"))


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(status_code=500, text="internal error"),
        FakeResponse(payload=None),
        FakeResponse(payload=gemini_payload("nada por aqui")),
        FakeResponse(payload=[]),
        FakeResponse(payload="ok"),
        FakeResponse(payload={"candidates": ["sem conteúdo"]}),
        requests.exceptions.ConnectionError("offline"),
    ],
)
def test_gemini_failures_become_extraction_errors(capture_post, make_image, response):
    capture_post(response)
    client = GeminiClient(GeminiConfig(api_key="secret"))

    with pytest.raises(ExtractionError) as excinfo:
        client.extract(make_image("a.jpg"))

    assert not isinstance(excinfo.value, MissingCredentialError)
    assert "Falha ao processar a imagem" in str(excinfo.value)


def test_odd_response_body_fails_the_batch_cleanly(capture_post, store, make_image):
    capture_post(FakeResponse(payload=[]))
    extractor = BatchExtractor(GeminiClient(GeminiConfig(api_key="secret")))

    with pytest.raises(NoDataExtractedError):
        process_images(store, extractor, [make_image("a.jpg")])
    assert store.deliveries == ()


def test_lm_studio_non_object_body_is_an_extraction_error(capture_post, make_image):
    capture_post(FakeResponse(payload=[{"choices": []}]))
    client = LMStudioClient(LMStudioConfig())

    with pytest.raises(ExtractionError):
        client.extract(make_image("a.jpg"))


def test_oversized_image_is_an_extraction_error(capture_post, monkeypatch):
    calls = capture_post(FakeResponse(payload=gemini_payload(ROWS_JSON)))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
    client = GeminiClient(GeminiConfig(api_key="secret"))
    image = ImagePayload(data=png_bytes((400, 200)), mime_type="image/png", name="enorme.png")

    with pytest.raises(ExtractionError):
        client.extract(image)
    assert calls == []


def test_lm_studio_reads_chat_completion(capture_post, make_image):
    payload = {"choices": [{"message": {"content": json.dumps({"deliveries": json.loads(ROWS_JSON)})}}]}
    calls = capture_post(FakeResponse(payload=payload))
    client = LMStudioClient(LMStudioConfig(base_url="http://localhost:9999/v1/"))

    rows = client.extract(make_image("a.jpg"))

    assert rows[0].collection == "Rua A"
    url, kwargs = calls[0]
    assert url == "http://localhost:9999/v1/chat/completions"
    assert kwargs["json"]["response_format"]["type"] == "json_schema"
    image_url = kwargs["json"]["messages"][0]["content"][1]["image_url"]["url"]
    assert image_url.startswith("data:image/jpeg;base64,")


def test_decodable_images_are_converted_and_resized():
    client = GeminiClient(GeminiConfig(api_key="secret"), max_image_side=100)
    image = ImagePayload(data=png_bytes((400, 200)), mime_type="image/png", name="big.png")

    encoded, mime_type = client._prepare_image(image)

    assert mime_type == "image/png"
    prepared = Image.open(BytesIO(base64.b64decode(encoded)))
    assert prepared.size == (100, 50)
    assert prepared.mode == "RGB"


def test_undecodable_images_are_sent_unchanged(make_image):
    client = GeminiClient(GeminiConfig(api_key="secret"))

    encoded, mime_type = client._prepare_image(make_image("a.heic"))

    assert mime_type == "image/jpeg"
    assert base64.b64decode(encoded) == b"not-really-an-image"


def test_create_client_follows_configured_provider():
    config = AppConfig(gemini=GeminiConfig(api_key="secret"))

    assert isinstance(create_client(config, ExtractionProvider.GEMINI), GeminiClient)
    assert isinstance(create_client(config, ExtractionProvider.LM_STUDIO), LMStudioClient)

    config.extraction_provider = ExtractionProvider.LM_STUDIO
    assert isinstance(create_client(config), LMStudioClient)
