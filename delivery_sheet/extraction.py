"""
Batch extraction of delivery rows from receipt images.

Images are sent one at a time. Rows from every image are accumulated and
only appended to the sheet once the whole batch is done, so a batch that
yields nothing leaves the sheet untouched.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable

from delivery_sheet.llm.client import BaseExtractionClient
from delivery_sheet.llm.errors import (
    ExtractionError,
    ExtractionInProgressError,
    MissingCredentialError,
    NoDataExtractedError,
)
from delivery_sheet.models.records import DeliveryRecord, ExtractedDelivery, ImagePayload
from delivery_sheet.store import RecordStore

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "A IA não conseguiu extrair dados válidos de nenhuma imagem."
BUSY_MESSAGE = "Já existe um processamento de imagens em andamento."


@dataclass(frozen=True)
class ImageFailure:
    """An image whose extraction failed inside an otherwise successful batch."""
    name: str
    message: str


@dataclass
class BatchResult:
    rows: list[ExtractedDelivery] = field(default_factory=list)
    failures: list[ImageFailure] = field(default_factory=list)
    records: list[DeliveryRecord] = field(default_factory=list)


class BatchExtractor:
    """
    Runs an extraction client over several images, one at a time.

    Only one batch may run at a time; a second call while one is in
    flight fails with ExtractionInProgressError. There is no retry and no
    cancellation.
    """

    def __init__(self, client: BaseExtractionClient):
        self.client = client
        self._lock = threading.Lock()

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    def run(self, images: Iterable[ImagePayload]) -> BatchResult:
        """
        Extract rows from every image.

        Failing images are recorded in ``failures`` and skipped. A missing
        credential aborts the batch at once.

        Raises:
            MissingCredentialError: If the service key is not configured
            NoDataExtractedError: If no image produced any row
            ExtractionInProgressError: If another batch is running
        """
        if not self._lock.acquire(blocking=False):
            raise ExtractionInProgressError(BUSY_MESSAGE)

        try:
            result = BatchResult()
            for index, image in enumerate(images, start=1):
                name = image.name or f"imagem {index}"
                try:
                    rows = self.client.extract(image)
                except MissingCredentialError:
                    raise
                except ExtractionError as e:
                    logger.warning(f"Extraction failed for {name}: {e}")
                    result.failures.append(ImageFailure(name=name, message=str(e)))
                    continue

                if not rows:
                    logger.info(f"No deliveries found in {name}")
                result.rows.extend(rows)

            if not result.rows:
                raise NoDataExtractedError(NO_DATA_MESSAGE)

            logger.info(
                f"Batch extracted {len(result.rows)} row(s), {len(result.failures)} image(s) failed"
            )
            return result
        finally:
            self._lock.release()


def process_images(
    store: RecordStore,
    extractor: BatchExtractor,
    images: Iterable[ImagePayload],
) -> BatchResult:
    """
    Extract rows from the images and append them to the delivery sheet.

    Nothing is appended when the batch fails.
    """
    result = extractor.run(images)
    result.records = store.add_extracted(result.rows)
    return result
