"""
DKB Banking API client.

Talks to the endpoints behind the DKB web banking app using the session
cookie and XSRF token copied from a logged-in browser session.

Base URL: https://banking.dkb.de/api
"""
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from finsync.adapters.base import BankCredentials
from finsync.adapters.exceptions import (
    AuthError,
    BankApiError,
    MalformedResponseError,
    NetworkError,
    PaginationLimitError,
)
from finsync.common.logging_config import get_logger

logger = get_logger(__name__)

DKB_BASE_URL = "https://banking.dkb.de/api"
INSTITUTION_ID = "dkb"
PAGE_SIZE = 25
MAX_PAGES = 1000
DEFAULT_TIMEOUT = 30.0


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class DkbModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='allow')


class DkbAmount(DkbModel):
    currency_code: str
    value: Decimal


class DkbProduct(DkbModel):
    id: str
    type: str
    display_name: str


class DkbAccountAttributes(DkbModel):
    holder_name: str
    iban: str
    currency_code: str
    balance: DkbAmount
    product: DkbProduct
    available_balance: Optional[DkbAmount] = None
    state: Optional[str] = None
    updated_at: Optional[str] = None


class DkbAccount(DkbModel):
    type: Literal['account']
    id: str
    attributes: DkbAccountAttributes


class DkbAccountsResponse(DkbModel):
    data: List[DkbAccount]


class DkbAccountResponse(DkbModel):
    data: DkbAccount


class DkbParty(DkbModel):
    name: Optional[str] = None


class DkbTransactionAttributes(DkbModel):
    status: str
    booking_date: str
    value_date: str
    amount: DkbAmount
    description: Optional[str] = None
    transaction_type: Optional[str] = None
    creditor: Optional[DkbParty] = None
    debtor: Optional[DkbParty] = None


class DkbTransaction(DkbModel):
    type: Literal['accountTransaction']
    id: str
    attributes: DkbTransactionAttributes


class DkbPageMeta(DkbModel):
    next: Optional[str] = None


class DkbMeta(DkbModel):
    page: Optional[DkbPageMeta] = None


class DkbTransactionsResponse(DkbModel):
    data: List[DkbTransaction]
    meta: Optional[DkbMeta] = None

    @property
    def next_cursor(self) -> Optional[str]:
        if self.meta and self.meta.page:
            return self.meta.page.next
        return None


# =============================================================================
# CLIENT
# =============================================================================

class DkbApiClient:
    """
    Thin synchronous client over httpx.

    A custom transport can be injected (httpx.MockTransport in tests).
    """

    def __init__(self, base_url: str = DKB_BASE_URL, transport: Optional[httpx.BaseTransport] = None,
                 timeout: float = DEFAULT_TIMEOUT, max_pages: int = MAX_PAGES):
        self.base_url = base_url.rstrip('/')
        self.transport = transport
        self.timeout = timeout
        self.max_pages = max_pages

    @staticmethod
    def _headers(credentials: BankCredentials) -> Dict[str, str]:
        headers = {
            "Cookie": credentials.cookie,
            "Accept": "application/json, text/plain, */*",
        }
        if credentials.xsrf_token:
            headers["x-xsrf-token"] = credentials.xsrf_token
        return headers

    @staticmethod
    def validate_credentials(credentials: Optional[BankCredentials]) -> None:
        if credentials is None or not (credentials.cookie or "").strip():
            raise AuthError(
                "Missing DKB session cookie - copy it from a logged-in banking.dkb.de session",
                institution_id=INSTITUTION_ID,
            )

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, transport=self.transport, timeout=self.timeout)

    def _get(self, client: httpx.Client, path: str, credentials: BankCredentials,
             params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = client.get(path, params=params, headers=self._headers(credentials))
        except httpx.HTTPError as e:
            raise NetworkError(
                f"Network request failed: {e}",
                original_error=e,
                institution_id=INSTITUTION_ID,
            ) from e

        status = response.status_code
        if status in (401, 403):
            raise AuthError(
                f"Authentication failed (HTTP {status}) - please refresh your DKB session credentials",
                institution_id=INSTITUTION_ID,
                status_code=status,
            )

        if status >= 500 or status == 429:
            raise NetworkError(
                f"DKB API temporarily unavailable: HTTP {status} {response.reason_phrase}",
                institution_id=INSTITUTION_ID,
                status_code=status,
                response=_error_body(response),
            )

        if not response.is_success:
            raise BankApiError(
                f"DKB API request failed: HTTP {status} {response.reason_phrase}",
                institution_id=INSTITUTION_ID,
                status_code=status,
                response=_error_body(response),
            )

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Failed to parse JSON response: {e}",
                institution_id=INSTITUTION_ID,
                status_code=status,
            ) from e

    def fetch_accounts(self, credentials: BankCredentials) -> List[DkbAccount]:
        """All accounts except loans."""
        self.validate_credentials(credentials)
        with self._client() as client:
            data = self._get(client, "/accounts/accounts", credentials,
                             params={"filter[product.type][NEQ]": "loan"})

        try:
            parsed = DkbAccountsResponse.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(
                f"Invalid accounts response format: {e}",
                institution_id=INSTITUTION_ID,
            ) from e

        logger.info("DKB accounts fetched.", accounts=len(parsed.data))
        return parsed.data

    def fetch_account(self, external_id: str, credentials: BankCredentials) -> DkbAccount:
        self.validate_credentials(credentials)
        with self._client() as client:
            data = self._get(client, f"/accounts/accounts/{external_id}", credentials)

        try:
            return DkbAccountResponse.model_validate(data).data
        except ValidationError as e:
            raise MalformedResponseError(
                f"Invalid account response format: {e}",
                institution_id=INSTITUTION_ID,
            ) from e

    def fetch_transactions(self, external_id: str, credentials: BankCredentials) -> List[DkbTransaction]:
        """
        Follow meta.page.next until it is absent.

        Raises PaginationLimitError if a cursor is still present after
        max_pages pages instead of returning a truncated list.
        """
        self.validate_credentials(credentials)
        transactions: List[DkbTransaction] = []
        cursor: Optional[str] = None
        page = 0

        with self._client() as client:
            while True:
                page += 1
                params = {"expand": "Merchant", "page[size]": str(PAGE_SIZE)}
                if cursor:
                    params["page[after]"] = cursor

                data = self._get(client, f"/accounts/accounts/{external_id}/transactions", credentials, params=params)
                try:
                    parsed = DkbTransactionsResponse.model_validate(data)
                except ValidationError as e:
                    raise MalformedResponseError(
                        f"Invalid transactions response format (page {page}): {e}",
                        institution_id=INSTITUTION_ID,
                    ) from e

                transactions.extend(parsed.data)
                cursor = parsed.next_cursor
                logger.debug("DKB transactions page fetched.", page=page, items=len(parsed.data), has_next=bool(cursor))

                if not cursor:
                    break
                if page >= self.max_pages:
                    raise PaginationLimitError(
                        f"Pagination limit exceeded ({self.max_pages} pages) - possible infinite loop",
                        pages=page,
                        institution_id=INSTITUTION_ID,
                    )

        logger.info("DKB transactions fetched.", pages=page, transactions=len(transactions))
        return transactions


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
