"""Client for the ticket image parsing service."""

import httpx
import structlog
from opentelemetry.trace import SpanKind
from pydantic import ValidationError

from ticketing.core.config import settings
from ticketing.core.exceptions import InvalidInput, OcrUnavailable
from ticketing.core.telemetry import service_span
from ticketing.schemas.inspection import ParsedTicket

logger = structlog.get_logger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024


class OcrService:
    """Sends ticket photos to the parsing service and returns the fields it read."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the OCR client.

        Args:
            base_url: Parsing service root (OCR_SERVICE_URL when omitted)
            timeout: Request timeout in seconds (OCR_TIMEOUT_SECONDS when omitted)
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        url = base_url if base_url is not None else settings.OCR_SERVICE_URL
        self.base_url = url.rstrip("/") if url else None
        self.timeout = timeout if timeout is not None else settings.OCR_TIMEOUT_SECONDS
        self._transport = transport

    async def parse_ticket_image(self, filename: str, content: bytes, content_type: str) -> ParsedTicket:
        """
        Parse a ticket photo.

        Args:
            filename: Original upload filename
            content: Image bytes
            content_type: MIME type of the upload

        Returns:
            ParsedTicket with whatever fields the service could read

        Raises:
            InvalidInput: If the upload is empty, too large or not an image
            OcrUnavailable: If the service is not configured, unreachable or answered garbage
        """
        if not content:
            raise InvalidInput("Uploaded file is empty.")
        if len(content) > MAX_IMAGE_BYTES:
            raise InvalidInput("Uploaded file is too large.")
        if not content_type.startswith("image/"):
            raise InvalidInput("Uploaded file must be an image.")
        if self.base_url is None:
            logger.warning("ocr_not_configured")
            raise OcrUnavailable("Ticket parsing service is not configured.")

        with service_span(
            "ocr.parse_ticket",
            "ocr",
            kind=SpanKind.CLIENT,
            **{"ocr.content_type": content_type, "ocr.size_bytes": len(content)},
        ):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.post(
                        f"{self.base_url}/parse-ticket",
                        files={"file": (filename, content, content_type)},
                    )
                response.raise_for_status()
                body = response.json()
            except httpx.TimeoutException as e:
                logger.warning("ocr_timeout", error=str(e))
                raise OcrUnavailable("Ticket parsing service timed out.") from e
            except httpx.HTTPStatusError as e:
                logger.warning("ocr_request_failed", status_code=e.response.status_code)
                raise OcrUnavailable(f"Ticket parsing failed (HTTP {e.response.status_code}).") from e
            except httpx.HTTPError as e:
                logger.warning("ocr_unreachable", error=str(e))
                raise OcrUnavailable from e
            except ValueError as e:
                raise OcrUnavailable("Ticket parsing service returned a malformed response.") from e

            try:
                parsed = ParsedTicket.model_validate(body)
            except ValidationError as e:
                logger.warning("ocr_response_invalid", errors=e.error_count())
                raise OcrUnavailable("Ticket parsing service returned unexpected fields.") from e

        logger.info(
            "ocr_ticket_parsed",
            has_route=bool(parsed.from_station and parsed.to_station),
            has_issue_time=parsed.issued_at is not None,
        )
        return parsed
