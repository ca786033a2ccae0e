"""
QRZ Logbook API client for inserting, fetching, deleting and summarizing QSOs.
"""

import logging
from typing import Dict, Iterable, Mapping, Optional, Protocol

import httpx

from adif_codec import to_adif
from config import _require_env, config
from fetch_filter import FetchFilter
from logbook_results import DeleteResult, FetchResult, InsertResult, PagedResult, StatusResult
from pagination import CursorPaginator
from qrz_errors import (
    FieldProblem,
    InvalidKeyError,
    InvalidParamsError,
    InvalidUserAgentError,
    QRZAPIError,
    QRZAuthError,
    QRZHTTPError,
)
from qso_record import QsoRecord
from response_envelope import ResponseEnvelope, parse_qrz_response

logger = logging.getLogger(__name__)

QRZ_API_URL = config.QRZ_API_URL
USER_AGENT = config.QRZ_USER_AGENT or "QRZLogbookClient/0.1.0 (N0CALL)"

MIN_API_KEY_LENGTH = 10
MAX_USER_AGENT_LENGTH = 128

# Library defaults that don't identify the application
GENERIC_USER_AGENT_MARKERS = ("python-requests", "python-httpx", "python-urllib", "node-fetch", "axios/", "okhttp")
GENERIC_USER_AGENT_PREFIXES = ("curl", "wget")


def validate_api_key(api_key: str) -> str:
    """
    Check the key's shape locally. Raises InvalidKeyError.
    """
    if not isinstance(api_key, str):
        raise InvalidKeyError()
    key = api_key.strip()
    if len(key) < MIN_API_KEY_LENGTH or any(c.isspace() for c in key):
        raise InvalidKeyError()
    return key


def validate_user_agent(user_agent: str) -> str:
    """
    QRZ rejects anonymous clients, so require something identifiable.
    Raises InvalidUserAgentError.
    """
    if not isinstance(user_agent, str):
        raise InvalidUserAgentError()
    agent = user_agent.strip()
    if not agent or len(agent) > MAX_USER_AGENT_LENGTH:
        raise InvalidUserAgentError()
    lower = agent.lower()
    if any(marker in lower for marker in GENERIC_USER_AGENT_MARKERS):
        raise InvalidUserAgentError()
    product = lower.split("/", 1)[0].split()[0]
    if product in GENERIC_USER_AGENT_PREFIXES:
        raise InvalidUserAgentError()
    return agent


class Transport(Protocol):
    """Anything that can POST form parameters and return the body text."""

    async def submit(self, params: Mapping[str, str]) -> str:
        ...


class HttpxTransport:
    """
    Form-encoded POST transport on httpx. Timeouts, connection failures and
    non-2xx statuses are raised as QRZHTTPError.
    """

    def __init__(
        self,
        api_url: str = QRZ_API_URL,
        user_agent: str = USER_AGENT,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url
        self.user_agent = user_agent
        self.timeout = config.HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self._client = client

    async def _post(self, client: httpx.AsyncClient, params: Mapping[str, str]) -> httpx.Response:
        return await client.post(
            self.api_url,
            data=dict(params),
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
        )

    async def submit(self, params: Mapping[str, str]) -> str:
        try:
            if self._client is not None:
                response = await self._post(self._client, params)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise QRZHTTPError(f"{status} from {self.api_url}", status_code=status) from e
        except httpx.HTTPError as e:
            raise QRZHTTPError(str(e) or type(e).__name__) from e
        return response.text


class QRZLogbookClient:
    """
    Client for one QRZ logbook, identified by its API key.

    The key and user agent are checked when the client is created, before
    any request is made.
    """

    def __init__(
        self,
        api_key: str,
        user_agent: str = USER_AGENT,
        transport: Optional[Transport] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = validate_api_key(api_key)
        self.user_agent = validate_user_agent(user_agent)
        self.transport = transport or HttpxTransport(
            api_url=api_url or QRZ_API_URL,
            user_agent=self.user_agent,
            timeout=timeout,
        )

    @classmethod
    def from_env(cls, transport: Optional[Transport] = None) -> "QRZLogbookClient":
        """
        Build a client from QRZ_API_KEY and QRZ_USER_AGENT.
        """
        api_key = _require_env("QRZ_API_KEY", "test-api-key-12345")
        return cls(api_key, config.QRZ_USER_AGENT or USER_AGENT, transport=transport)

    async def _call(self, action: str, params: Optional[Dict[str, str]] = None) -> ResponseEnvelope:
        data = {"KEY": self.api_key, "ACTION": action}
        data.update(params or {})
        shown = ", ".join(f"{k}={v[:60]}" for k, v in data.items() if k not in ("KEY", "ADIF"))
        logger.debug(f"POST {shown}")

        body = await self.transport.submit(data)
        return parse_qrz_response(body)

    async def insert_qso(self, qso: QsoRecord, replace: bool = False) -> InsertResult:
        """
        Insert a single QSO into the logbook.

        Args:
            qso: The record to insert
            replace: Replace an existing duplicate instead of failing

        Returns:
            InsertResult with the new logid

        Raises:
            InvalidParamsError: If qso is not a QsoRecord
            QRZAPIError: If the service rejected the record (e.g. duplicate)
        """
        if not isinstance(qso, QsoRecord):
            raise InvalidParamsError([FieldProblem("qso", "expected a built QsoRecord")])

        params = {"ADIF": to_adif(qso)}
        if replace:
            params["OPTION"] = "REPLACE"

        envelope = await self._call("INSERT", params)
        logid = envelope.logid
        if logid is None and envelope.logids:
            logid = envelope.logids[0]
        if logid is None:
            raise QRZAPIError("missing LOGID in INSERT response")

        logger.info(f"Inserted QSO with {qso.call} as logid {logid}")
        return InsertResult(logid=logid, count=envelope.count if envelope.count is not None else 1)

    async def delete_qsos(self, logids: Iterable[int]) -> DeleteResult:
        """
        Delete QSOs by logid.

        Returns:
            DeleteResult; ids the service couldn't find are in not_found_logids

        Raises:
            InvalidParamsError: If no ids (or a non-integer id) are given
        """
        ids = list(logids)
        if not ids:
            raise InvalidParamsError([FieldProblem("logids", "no logids provided")])
        bad = [i for i in ids if isinstance(i, bool) or not isinstance(i, int) or i < 0]
        if bad:
            raise InvalidParamsError([FieldProblem("logids", f"not a valid logid: {bad[0]!r}")])

        envelope = await self._call("DELETE", {"LOGIDS": ":".join(str(i) for i in ids)})
        result = DeleteResult(
            deleted_count=envelope.count or 0,
            not_found_logids=list(envelope.logids),
        )
        logger.info(f"Deleted {result.deleted_count} of {len(ids)} QSOs")
        return result

    async def get_status(self) -> StatusResult:
        """
        Summary information about the logbook (owner, QSO counts, ...).
        """
        envelope = await self._call("STATUS")
        return StatusResult(data=envelope.status_data())

    async def fetch_qsos(self, fetch_filter: Optional[FetchFilter] = None) -> FetchResult:
        """
        Run a single FETCH.

        Args:
            fetch_filter: Criteria; with none the service returns its default page

        Raises:
            InvalidParamsError: If the filter is invalid (before any request)
            ADIFParseError: If the returned ADIF can't be decoded
        """
        params = (fetch_filter or FetchFilter()).to_params()
        envelope = await self._call("FETCH", params)
        return FetchResult(
            count=envelope.count,
            logids=list(envelope.logids),
            qsos=envelope.records(),
        )

    async def fetch_all_qsos(
        self,
        fetch_filter: Optional[FetchFilter] = None,
        page_size: Optional[int] = None,
    ) -> PagedResult:
        """
        Fetch every matching QSO, paging with AFTER_LOGID until exhausted.

        Args:
            fetch_filter: Criteria to page through (defaults to FetchFilter.all())
            page_size: Records per page when the filter sets no MAX
        """
        paginator = CursorPaginator(self.fetch_qsos, page_size=page_size)
        return await paginator.collect(fetch_filter)


def _base_callsign(callsign: str) -> str:
    """
    Strip portable/mobile affixes: W1ABC/P -> W1ABC, VE3/W1ABC -> W1ABC
    """
    parts = [p for p in callsign.strip().upper().split("/") if p]
    if not parts:
        return ""
    return max(parts, key=len)


async def verify_api_key(
    api_key: str,
    expected_callsign: Optional[str] = None,
    transport: Optional[Transport] = None,
) -> bool:
    """
    Verify a QRZ Logbook API key with a STATUS call.

    Args:
        api_key: User's QRZ Logbook API key
        expected_callsign: If provided, verify the logbook belongs to this callsign

    Returns:
        True if the key works (and the owner matches when the service reports one)

    Raises:
        QRZHTTPError: If the service could not be reached
    """
    try:
        client = QRZLogbookClient(api_key, transport=transport)
        status = await client.get_status()
    except (InvalidKeyError, QRZAuthError, QRZAPIError) as e:
        logger.info(f"API key rejected: {e}")
        return False

    if expected_callsign:
        owner = status.owner
        if owner is None:
            # Key works but the service didn't say whose it is
            return True
        return _base_callsign(owner) == _base_callsign(expected_callsign)

    return True
