"""Xero Accounting API client for report and reference data fetching.

This module provides the XeroClient class for talking to the Xero
Accounting API. It includes:
- HTTP client with bearer token and xero-tenant-id headers
- Custom connection (client credentials) token acquisition
- Page-based helpers for contacts and invoices
- Error handling with exponential backoff retry logic
"""

import asyncio
import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from xero_agent.core.config import settings
from xero_agent.core.errors import ErrorCode, ErrorResponse, create_error_response

logger = logging.getLogger(__name__)


# =============================================================================
# Data Models
# =============================================================================


class AgedInvoiceRow(BaseModel):
    """One overdue invoice in an aged receivables/payables report."""
    contact_name: str
    invoice_id: str
    invoice_number: Optional[str] = None
    overdue_amount: float
    due_date: str


class AgedReport(BaseModel):
    """Overdue invoices up to a report date, grouped by contact name."""
    report_name: str
    report_date: str
    rows: List[AgedInvoiceRow]


class TokenSet(BaseModel):
    """Access token obtained through a custom connection."""
    access_token: str
    expires_at: datetime
    token_type: str = "Bearer"


# =============================================================================
# Exceptions
# =============================================================================


class XeroError(Exception):
    """Base exception for Xero API errors."""
    error_code = ErrorCode.INTERNAL_ERROR

    def to_error_response(self) -> ErrorResponse:
        return create_error_response(
            self.error_code,
            message=str(self),
            retry_after=getattr(self, "retry_after", None),
        )


class XeroConnectionError(XeroError):
    """Raised when connection to Xero fails or times out."""
    error_code = ErrorCode.XERO_CONNECTION_ERROR


class XeroAuthenticationError(XeroError):
    """Raised when authentication fails (401) or is not configured."""
    error_code = ErrorCode.XERO_AUTH_ERROR


class XeroForbiddenError(XeroError):
    """Raised when access is forbidden (403)."""
    error_code = ErrorCode.XERO_FORBIDDEN


class XeroNotFoundError(XeroError):
    """Raised when resource is not found (404)."""
    error_code = ErrorCode.XERO_NOT_FOUND


class XeroRateLimitError(XeroError):
    """Raised when rate limited (429)."""
    error_code = ErrorCode.XERO_RATE_LIMITED

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


class XeroValidationError(XeroError):
    """Raised when Xero rejects the request (400/422)."""
    error_code = ErrorCode.XERO_VALIDATION_ERROR


class XeroServerError(XeroError):
    """Raised when server returns 5xx error."""
    error_code = ErrorCode.XERO_SERVER_ERROR


# =============================================================================
# Helpers
# =============================================================================


_MS_DATE = re.compile(r"/Date\((-?\d+)([+-]\d{4})?\)/")

# Budget summary timeframe codes expected by the reports endpoint
BUDGET_TIMEFRAME_CODES = {
    "MONTH": 1,
    "YEAR": 2,
}


def parse_xero_date(value: Any) -> Optional[date]:
    """Parse a Xero date.

    Handles the ``/Date(1518685950940+0000)/`` JSON format as well as ISO
    strings (``2024-02-15`` or ``2024-02-15T00:00:00``).
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    match = _MS_DATE.fullmatch(text)
    if match:
        millis = int(match.group(1))
        return (datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=millis)).date()
    try:
        return datetime.fromisoformat(text[:19]).date()
    except ValueError:
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None


def _records(data: Any, key: str) -> List[dict]:
    """Pull a record list out of a Xero envelope (``{"Invoices": [...]}``)."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        records = data.get(key, data.get(key[0].lower() + key[1:], []))
        return records if isinstance(records, list) else []
    return []


# =============================================================================
# Xero Client
# =============================================================================


class XeroClient:
    """Client for interacting with the Xero Accounting API.

    Provides methods for:
    - Fetching reports (Profit and Loss, Budget Summary)
    - Fetching reference data (accounts, contacts, budgets)
    - Building aged receivables/payables from overdue invoices

    Authentication is either a bearer token plus tenant id, or a custom
    connection (client id and secret) for which a token is requested from
    the Xero identity server and the tenant is taken from the first
    connection.

    Example:
        ```python
        async with XeroClient(bearer_token="...", tenant_id="...") as client:
            report = await client.get_profit_and_loss("2024-01-01", "2024-03-31")
        ```
    """

    # Default configuration
    DEFAULT_PAGE_SIZE = 100  # Xero page size, not configurable upstream
    MAX_RETRIES = 3
    INITIAL_RETRY_DELAY = 1.0  # seconds
    MAX_RETRY_DELAY = 30.0  # seconds
    REQUEST_TIMEOUT = 30.0  # seconds
    TOKEN_EXPIRY_MARGIN = 60  # seconds

    def __init__(
        self,
        bearer_token: Optional[str] = None,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize XeroClient.

        Args:
            bearer_token: Access token for bearer mode
            tenant_id: Xero tenant (organisation) id for bearer mode
            client_id: Custom connection client id
            client_secret: Custom connection client secret
            base_url: Accounting API base URL
            max_retries: Retry count for transient failures
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = (base_url or settings.xero_api_url).rstrip("/")
        self.bearer_token = bearer_token or None
        self.tenant_id = tenant_id or ""
        self.client_id = client_id or None
        self.client_secret = client_secret or None
        self.max_retries = max_retries if max_retries is not None else self.MAX_RETRIES
        self.timeout = timeout if timeout is not None else self.REQUEST_TIMEOUT
        self._transport = transport

        self._token: Optional[TokenSet] = None
        self._token_lock = asyncio.Lock()
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, **overrides: Any) -> "XeroClient":
        """Create a client from application settings."""
        options = dict(
            bearer_token=settings.xero_bearer_token,
            tenant_id=settings.xero_tenant_id,
            client_id=settings.xero_client_id,
            client_secret=settings.xero_client_secret,
            base_url=settings.xero_api_url,
            max_retries=settings.max_retries,
            timeout=settings.request_timeout,
        )
        options.update(overrides)
        return cls(**options)

    @property
    def is_configured(self) -> bool:
        """Whether credentials for either authentication mode are present."""
        if self.bearer_token:
            return True
        return bool(self.client_id and self.client_secret)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "XeroClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    # =========================================================================
    # Authentication
    # =========================================================================

    async def _request_token(self) -> TokenSet:
        """Request a client credentials token and resolve the tenant id.

        Raises:
            XeroAuthenticationError: If the identity server rejects the request
        """
        client = await self._get_client()
        response = await client.post(
            settings.xero_identity_url,
            data={"grant_type": "client_credentials", "scope": settings.xero_scopes},
            auth=(self.client_id or "", self.client_secret or ""),
        )
        if not response.is_success:
            raise XeroAuthenticationError(
                f"Failed to get Xero token: {response.text or response.status_code}"
            )
        payload = response.json()
        token = TokenSet(
            access_token=payload["access_token"],
            token_type=payload.get("token_type", "Bearer"),
            expires_at=datetime.now(timezone.utc)
            + timedelta(seconds=int(payload.get("expires_in", 1800))),
        )

        connections = await client.get(
            settings.xero_connections_url,
            headers={"Authorization": f"Bearer {token.access_token}"},
        )
        if connections.is_success:
            tenants = connections.json() or []
            if tenants and not self.tenant_id:
                self.tenant_id = tenants[0].get("tenantId", "")
        else:
            logger.warning(f"Could not list Xero connections: HTTP {connections.status_code}")

        logger.info("Obtained Xero client credentials token")
        return token

    async def _get_access_token(self) -> str:
        """Return a usable access token.

        Raises:
            XeroAuthenticationError: If no credentials are configured
        """
        if self.bearer_token:
            return self.bearer_token
        if not (self.client_id and self.client_secret):
            raise XeroAuthenticationError(
                "Xero credentials not configured. Set XERO_BEARER_TOKEN and "
                "XERO_TENANT_ID, or XERO_CLIENT_ID and XERO_CLIENT_SECRET."
            )
        margin = timedelta(seconds=self.TOKEN_EXPIRY_MARGIN)
        async with self._token_lock:
            if self._token is None or self._token.expires_at - margin <= datetime.now(timezone.utc):
                self._token = await self._request_token()
            return self._token.access_token

    async def _auth_headers(self) -> Dict[str, str]:
        token = await self._get_access_token()
        return {
            "Authorization": f"Bearer {token}",
            "xero-tenant-id": self.tenant_id,
        }

    # =========================================================================
    # HTTP Request Methods
    # =========================================================================

    def _handle_response_error(self, response: httpx.Response) -> None:
        """Handle HTTP error responses.

        Raises:
            XeroAuthenticationError: For 401 responses
            XeroForbiddenError: For 403 responses
            XeroNotFoundError: For 404 responses
            XeroValidationError: For 400 and 422 responses
            XeroRateLimitError: For 429 responses
            XeroServerError: For 5xx responses
            XeroError: For other error responses
        """
        if response.is_success:
            return

        status = response.status_code

        try:
            error_detail = response.json()
            message = (
                error_detail.get("Detail")
                or error_detail.get("Message")
                or error_detail.get("detail")
                or response.text
            )
        except Exception:
            message = response.text or f"HTTP {status}"

        if status == 401:
            raise XeroAuthenticationError(
                f"Authentication failed: {message}. Check the Xero token."
            )
        elif status == 403:
            raise XeroForbiddenError(
                f"Access forbidden: {message}. The connection may lack scopes."
            )
        elif status == 404:
            raise XeroNotFoundError(f"Resource not found: {message}")
        elif status in (400, 422):
            raise XeroValidationError(f"Validation error: {message}")
        elif status == 429:
            retry_after = response.headers.get("Retry-After")
            retry_seconds = int(retry_after) if retry_after and retry_after.isdigit() else None
            raise XeroRateLimitError(
                f"Rate limited: {message}",
                retry_after=retry_seconds,
            )
        elif status >= 500:
            raise XeroServerError(f"Server error ({status}): {message}")
        else:
            raise XeroError(f"API error ({status}): {message}")

    def _backoff(self, attempt: int) -> float:
        return min(self.INITIAL_RETRY_DELAY * (2 ** attempt), self.MAX_RETRY_DELAY)

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        """Make an HTTP request with exponential backoff retry.

        Args:
            method: HTTP method
            endpoint: API endpoint path (e.g. "/Reports/ProfitAndLoss")
            params: Optional query parameters; None values are dropped

        Returns:
            HTTP response

        Raises:
            XeroError: If the request fails or all retries are exhausted
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        query = {k: v for k, v in (params or {}).items() if v is not None}

        client = await self._get_client()
        headers = await self._auth_headers()
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await client.request(
                    method=method,
                    url=url,
                    params=query,
                    headers=headers,
                )
                self._handle_response_error(response)
                return response

            except (XeroAuthenticationError, XeroForbiddenError,
                    XeroNotFoundError, XeroValidationError):
                # Don't retry client errors
                raise
            except XeroRateLimitError as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = min(e.retry_after or self._backoff(attempt), self.MAX_RETRY_DELAY)
                    logger.warning(
                        f"Rate limited, waiting {delay}s before retry "
                        f"(attempt {attempt + 1}/{self.max_retries + 1})"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise
            except httpx.TimeoutException as e:
                last_exception = XeroConnectionError(f"Request to Xero timed out: {e}")
                if attempt < self.max_retries:
                    delay = self._backoff(attempt)
                    logger.warning(
                        f"Request timed out, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{self.max_retries + 1})"
                    )
                    await asyncio.sleep(delay)
                    continue
            except httpx.TransportError as e:
                last_exception = XeroConnectionError(
                    f"Cannot connect to Xero at {self.base_url}: {e}"
                )
                if attempt < self.max_retries:
                    delay = self._backoff(attempt)
                    logger.warning(
                        f"Connection failed, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{self.max_retries + 1}): {e}"
                    )
                    await asyncio.sleep(delay)
                    continue
            except XeroServerError as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = self._backoff(attempt)
                    logger.warning(
                        f"Server error, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{self.max_retries + 1}): {e}"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise

        # All retries exhausted
        if last_exception:
            raise last_exception
        raise XeroError("Request failed after all retries")

    async def _get(self, endpoint: str, params: Optional[dict] = None) -> Any:
        """Make a GET request and return the decoded JSON body."""
        response = await self._request_with_retry("GET", endpoint, params=params)
        return response.json()

    # =========================================================================
    # Reports
    # =========================================================================

    async def get_profit_and_loss(
        self,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
        periods: Optional[int] = None,
        timeframe: Optional[str] = None,
        standard_layout: Optional[bool] = None,
        payments_only: Optional[bool] = None,
    ) -> dict:
        """Fetch the Profit and Loss report.

        Args:
            from_date: Start date in YYYY-MM-DD format
            to_date: End date in YYYY-MM-DD format
            periods: Number of comparison periods
            timeframe: MONTH, QUARTER or YEAR
            standard_layout: Use the standard layout
            payments_only: Cash basis (payments only)

        Returns:
            The first report of the response as a dictionary

        Raises:
            XeroError: If the request fails or no report is returned
        """
        data = await self._get(
            "/Reports/ProfitAndLoss",
            params={
                "fromDate": from_date,
                "toDate": to_date,
                "periods": periods,
                "timeframe": timeframe,
                "standardLayout": _bool_param(standard_layout),
                "paymentsOnly": _bool_param(payments_only),
            },
        )
        reports = _records(data, "Reports")
        if not reports:
            raise XeroError("Failed to fetch profit and loss data from Xero.")
        return reports[0]

    async def get_budget_summary(
        self,
        date: str,
        periods: Optional[int] = None,
        timeframe: str = "MONTH",
    ) -> List[dict]:
        """Fetch the Budget Summary report.

        Args:
            date: Start date in YYYY-MM-DD format
            periods: Number of periods (defaults to 1)
            timeframe: MONTH or YEAR

        Returns:
            List of budget summary reports (usually one)
        """
        code = BUDGET_TIMEFRAME_CODES.get((timeframe or "MONTH").upper(), 1)
        data = await self._get(
            "/Reports/BudgetSummary",
            params={"date": date, "periods": periods or 1, "timeframe": code},
        )
        return _records(data, "Reports")

    async def get_budgets(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> List[dict]:
        """Fetch budgets, optionally limited to a date range."""
        data = await self._get(
            "/Budgets",
            params={"DateFrom": date_from, "DateTo": date_to},
        )
        return _records(data, "Budgets")

    # =========================================================================
    # Reference data
    # =========================================================================

    async def get_accounts(self) -> List[dict]:
        """Fetch the chart of accounts."""
        data = await self._get("/Accounts")
        return _records(data, "Accounts")

    async def get_contacts(
        self,
        page: Optional[int] = None,
        where: Optional[str] = None,
    ) -> List[dict]:
        """Fetch one page of contacts (summary only)."""
        data = await self._get(
            "/Contacts",
            params={"page": page, "where": where, "summaryOnly": "true"},
        )
        return _records(data, "Contacts")

    async def get_contacts_by_email(self, email: str) -> List[dict]:
        """Fetch every contact whose email address matches ``email``."""
        where = f'EmailAddress=="{email}"'
        contacts: List[dict] = []
        page = 1
        while True:
            batch = await self.get_contacts(page=page, where=where)
            contacts.extend(batch)
            if len(batch) < self.DEFAULT_PAGE_SIZE:
                break
            page += 1
        return contacts

    async def get_invoices(
        self,
        where: Optional[str] = None,
        order: Optional[str] = None,
        contact_ids: Optional[List[str]] = None,
        page: Optional[int] = None,
    ) -> List[dict]:
        """Fetch one page of invoices."""
        data = await self._get(
            "/Invoices",
            params={
                "where": where,
                "order": order,
                "ContactIDs": ",".join(contact_ids) if contact_ids else None,
                "page": page,
            },
        )
        return _records(data, "Invoices")

    async def _get_all_invoices(self, where: str, contact_id: Optional[str]) -> List[dict]:
        invoices: List[dict] = []
        page = 1
        while True:
            batch = await self.get_invoices(
                where=where,
                order="Contact.Name",
                contact_ids=[contact_id] if contact_id else None,
                page=page,
            )
            invoices.extend(batch)
            if len(batch) < self.DEFAULT_PAGE_SIZE:
                break
            page += 1
        return invoices

    async def _get_aged_report(
        self,
        invoice_type: str,
        report_name: str,
        contact_id: Optional[str],
        report_date: Optional[str],
        invoices_from_date: Optional[str],
        invoices_to_date: Optional[str],
    ) -> AgedReport:
        where = f'Status=="AUTHORISED" AND AmountDue>0 AND Type=="{invoice_type}"'
        invoices = await self._get_all_invoices(where, contact_id)

        as_of = parse_xero_date(report_date) or date.today()
        from_date = parse_xero_date(invoices_from_date)
        to_date = parse_xero_date(invoices_to_date)

        overdue = []
        for invoice in invoices:
            due = parse_xero_date(invoice.get("DueDateString") or invoice.get("DueDate"))
            if due is None or due >= as_of:
                continue
            issued = parse_xero_date(invoice.get("DateString") or invoice.get("Date"))
            if from_date and (issued is None or issued < from_date):
                continue
            if to_date and (issued is None or issued > to_date):
                continue
            overdue.append((due, invoice))

        overdue.sort(key=lambda item: ((item[1].get("Contact") or {}).get("Name") or "").lower())

        rows = [
            AgedInvoiceRow(
                contact_name=(invoice.get("Contact") or {}).get("Name") or "Unknown",
                invoice_id=invoice.get("InvoiceID") or "Unknown",
                invoice_number=invoice.get("InvoiceNumber"),
                overdue_amount=float(invoice.get("AmountDue") or 0),
                due_date=due.isoformat(),
            )
            for due, invoice in overdue
        ]

        return AgedReport(
            report_name=report_name,
            report_date=as_of.isoformat(),
            rows=rows,
        )

    async def get_aged_receivables(
        self,
        contact_id: Optional[str] = None,
        report_date: Optional[str] = None,
        invoices_from_date: Optional[str] = None,
        invoices_to_date: Optional[str] = None,
    ) -> AgedReport:
        """Overdue sales invoices up to ``report_date`` (default today)."""
        return await self._get_aged_report(
            "ACCREC",
            "Aged Debtors - Overdue Invoices",
            contact_id,
            report_date,
            invoices_from_date,
            invoices_to_date,
        )

    async def get_aged_payables(
        self,
        contact_id: Optional[str] = None,
        report_date: Optional[str] = None,
        invoices_from_date: Optional[str] = None,
        invoices_to_date: Optional[str] = None,
    ) -> AgedReport:
        """Overdue purchase bills up to ``report_date`` (default today)."""
        return await self._get_aged_report(
            "ACCPAY",
            "Aged Creditors - Overdue Bills",
            contact_id,
            report_date,
            invoices_from_date,
            invoices_to_date,
        )

    async def health_check(self) -> bool:
        """Check that the Xero organisation endpoint answers."""
        try:
            await self._get("/Organisation")
            return True
        except XeroError as e:
            logger.warning(f"Xero health check failed: {e}")
            return False


def _bool_param(value: Optional[bool]) -> Optional[str]:
    if value is None:
        return None
    return "true" if value else "false"
