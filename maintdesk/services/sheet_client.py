"""
Spreadsheet Ticket Store Client

Talks to the Apps Script web app that fronts the ticket spreadsheet:
- Login
- Ticket listing, creation and partial updates
- Attachment upload (base64)

Every call is a POST of {"action": ..., "payload": ...}; the script answers
{"success": bool, "data": ..., "error": ...}.
"""
import asyncio
import base64
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from maintdesk.config import get_settings
from maintdesk.errors import AuthenticationError, StoreError, TransportError
from maintdesk.models.schemas import Attachment, Ticket, TicketDraft, TicketUpdate, User
from maintdesk.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


class SheetStoreClient:
    """
    Spreadsheet API integration with retry logic and error handling
    """

    def __init__(self, script_url: Optional[str] = None):
        self.script_url = script_url or settings.sheet_api_url
        # Apps Script rejects CORS preflight, so JSON goes out as text/plain
        self.headers = {
            "Content-Type": "text/plain;charset=utf-8"
        }
        self.timeout = settings.sheet_api_timeout
        self.max_retries = settings.sheet_api_max_retries

    async def _make_request(
        self,
        action: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Call a script action with retry logic

        Args:
            action: Script action name (getTickets, createTicket, ...)
            payload: Action payload

        Returns:
            The "data" member of a successful response

        Raises:
            StoreError: If the script reports success=false
            TransportError: On network or HTTP errors after retries
        """
        body = {"action": action, "payload": payload or {}}

        # At least one attempt even if max_retries was lowered below 1
        attempts = max(1, self.max_retries)
        for attempt in range(attempts):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await client.request(
                        method="POST",
                        url=self.script_url,
                        headers=self.headers,
                        json=body
                    )
                    response.raise_for_status()
                    result = response.json()
                break

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code in RETRYABLE_STATUS_CODES and attempt < attempts - 1:
                    # Retry on rate limit or server errors
                    wait_time = 2 ** attempt  # Exponential backoff
                    logger.warning(
                        f"{action} failed (attempt {attempt + 1}/{attempts}), "
                        f"retrying in {wait_time}s: {e}"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                logger.error(f"{action} failed with HTTP {status_code}: {e}")
                raise TransportError(f"HTTP error! status: {status_code}", status_code=status_code) from e
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"{action} request failed: {e}")
                raise TransportError(f"Ticket store unreachable: {e}") from e

        if not isinstance(result, dict) or not result.get("success"):
            error = result.get("error") if isinstance(result, dict) else None
            logger.error(f"{action} rejected by ticket store: {error}")
            raise StoreError(error or "An unknown error occurred with the API.")

        return result.get("data")

    @staticmethod
    def _decode_ticket(data: Any) -> Ticket:
        """Decode a single ticket returned by a write action"""
        try:
            return Ticket.model_validate(data)
        except PydanticValidationError as e:
            logger.error(f"Ticket store returned an undecodable ticket: {e}")
            raise StoreError("Ticket store returned an invalid ticket") from e

    async def login(self, username: str, password: str) -> User:
        """
        Authenticate against the spreadsheet user table

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        logger.info(f"Logging in {username}")
        try:
            data = await self._make_request(
                "login",
                {"username": username, "password": password}
            )
        except StoreError as e:
            raise AuthenticationError(str(e) or "Invalid username or password.") from e
        return User.model_validate(data["user"])

    async def list_tickets(self) -> List[Ticket]:
        """
        Fetch every ticket

        Records that cannot be decoded at all are skipped so the rest of the
        list still renders.

        Returns:
            List of tickets in spreadsheet order
        """
        logger.info("Fetching tickets")
        records = await self._make_request("getTickets") or []

        tickets = []
        for record in records:
            try:
                tickets.append(Ticket.model_validate(record))
            except PydanticValidationError as e:
                record_id = record.get("id") if isinstance(record, dict) else None
                logger.warning(f"Skipping undecodable ticket {record_id}: {e}")

        logger.info(f"Fetched {len(tickets)} tickets ({len(records) - len(tickets)} skipped)")
        return tickets

    async def create_ticket(self, draft: TicketDraft) -> Ticket:
        """
        Create a ticket; the store assigns id, status, createdAt and priority

        Args:
            draft: New ticket with attachments already uploaded

        Returns:
            Ticket as stored
        """
        logger.info(f"Creating ticket for unit {draft.unit}")
        data = await self._make_request("createTicket", draft.to_wire())
        return self._decode_ticket(data)

    async def update_ticket(self, ticket_id: str, update: TicketUpdate) -> Ticket:
        """
        Apply a partial update

        Args:
            ticket_id: Ticket ID
            update: Fields to change

        Returns:
            Updated ticket
        """
        updates = update.to_wire()
        logger.info(f"Updating ticket {ticket_id} with {len(updates)} fields")
        data = await self._make_request(
            "updateTicket",
            {"ticketId": ticket_id, "updates": updates}
        )
        return self._decode_ticket(data)

    async def upload_file(self, file_name: str, mime_type: str, data: bytes) -> Attachment:
        """
        Upload one attachment

        Args:
            file_name: Original file name
            mime_type: File MIME type
            data: Raw file bytes

        Returns:
            Attachment reference to pass to create_ticket
        """
        logger.info(f"Uploading {file_name} ({len(data)} bytes)")
        result = await self._make_request(
            "uploadFile",
            {
                "fileName": file_name,
                "mimeType": mime_type,
                "data": base64.b64encode(data).decode("ascii"),
            }
        )
        return Attachment.model_validate(result)
