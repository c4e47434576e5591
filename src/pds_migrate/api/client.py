"""PDS XRPC client implementation."""

import asyncio
import json
import time
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urljoin

import aiohttp
import requests
from loguru import logger
from pydantic import BaseModel

from ..config.config import PDSInstanceConfig
from ..models.blob import DEFAULT_MIME_TYPE, BlobData, BlobPage
from ..models.identity import DidCredentials
from ..models.session import AccountCreate, PDSSession, ServerDescription
from .exceptions import (
    PDSAPIError,
    PDSAuthenticationError,
    PDSNotFoundError,
    PDSRateLimitError,
    PDSValidationError,
)
from .interface import RemotePDS
from .rate_limiter import RateLimiter

USER_AGENT = 'pds-migrate/0.1.0'
CAR_MIME_TYPE = 'application/vnd.ipld.car'


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


class PDSClient(RemotePDS):
    """XRPC client for one PDS, holding at most one authenticated session."""

    def __init__(self, config: PDSInstanceConfig):
        """Initialize PDS client.

        Args:
            config: PDS instance configuration
        """
        self.config = config
        self.base_url = config.url.rstrip('/') + '/xrpc'
        self.rate_limiter = RateLimiter(config.rate_limit_per_second)
        self.session_data: Optional[PDSSession] = None

        self.http = requests.Session()
        self.http.headers.update({'User-Agent': USER_AGENT})

        logger.info(f'Initialized PDS client for {config.url}')

    @property
    def did(self) -> Optional[str]:
        """DID of the logged-in account, if any."""
        return self.session_data.did if self.session_data else None

    def _build_url(self, nsid: str) -> str:
        """Build full XRPC URL from a method NSID.

        Args:
            nsid: XRPC method, e.g. ``com.atproto.server.describeServer``

        Returns:
            Full XRPC URL
        """
        return urljoin(self.base_url + '/', nsid.lstrip('/'))

    def _auth_headers(self) -> Dict[str, str]:
        if self.session_data:
            return {'Authorization': f'Bearer {self.session_data.access_jwt}'}
        return {}

    @staticmethod
    def _clean_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
        if not params:
            return None
        return {key: str(value) for key, value in params.items() if value is not None}

    def _parse_response(
        self,
        status: int,
        headers: Dict[str, str],
        body: bytes,
        raw: bool = False,
    ) -> APIResponse:
        """Convert a raw XRPC response to the standard format.

        Args:
            status: HTTP status code
            headers: Response headers
            body: Raw response body
            raw: Return successful bodies as bytes without decoding

        Returns:
            Standardized API response

        Raises:
            PDSAPIError: For various API errors
        """
        content_type = ''
        for key, value in headers.items():
            if key.lower() == 'content-type':
                content_type = value
                break

        if status >= 400:
            error_data = None
            try:
                error_data = json.loads(body) if body else None
            except ValueError:
                pass

            error_code = None
            message = f'HTTP {status}'
            if isinstance(error_data, dict):
                error_code = error_data.get('error')
                message = error_data.get('message') or error_code or message
            elif body:
                message = f'HTTP {status}: {body.decode("utf-8", "replace")}'

            kwargs = dict(
                status_code=status, error=error_code, response_data=error_data
            )

            if status == 429:
                raise PDSRateLimitError(
                    f'Rate limit exceeded: {message}',
                    retry_after=self._retry_after(headers),
                    **kwargs,
                )
            if status == 401:
                raise PDSAuthenticationError(message, **kwargs)
            if status == 404:
                raise PDSNotFoundError(message, **kwargs)
            if status == 400 and error_code == 'InvalidRequest':
                raise PDSValidationError(message, **kwargs)
            raise PDSAPIError(message, **kwargs)

        data: Union[bytes, Any, None]
        if not body:
            data = None
        elif raw:
            data = body
        elif 'json' in content_type:
            try:
                data = json.loads(body)
            except ValueError:
                data = body.decode('utf-8', 'replace')
        else:
            data = body

        return APIResponse(
            status_code=status,
            data=data,
            headers=headers,
            success=200 <= status < 300,
        )

    @staticmethod
    def _retry_after(headers: Dict[str, str]) -> int:
        """Seconds until a rate limit resets.

        PDSes send 'RateLimit-Reset' as a unix timestamp; plain proxies
        send 'Retry-After' in seconds.
        """
        for key, value in headers.items():
            if key.lower() not in ('retry-after', 'ratelimit-reset'):
                continue
            try:
                seconds = int(value)
            except ValueError:
                continue
            if seconds > 1_000_000_000:
                seconds = int(seconds - time.time())
            return max(seconds, 0)
        return 60

    def _handle_response(self, response: requests.Response) -> APIResponse:
        """Handle a synchronous response."""
        return self._parse_response(
            response.status_code, dict(response.headers), response.content or b''
        )

    async def _make_request_async(
        self,
        method: str,
        nsid: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
        content_type: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        raw: bool = False,
    ) -> APIResponse:
        """Make asynchronous XRPC request.

        Args:
            method: HTTP method
            nsid: XRPC method NSID
            params: Query parameters
            data: JSON request body
            content: Raw request body, sent with ``content_type``
            content_type: Content type of ``content``
            headers: Extra headers, overriding the session authorization
            raw: Return the response body as bytes

        Returns:
            API response
        """
        await self.rate_limiter.acquire()
        url = self._build_url(nsid)

        request_headers = {'User-Agent': USER_AGENT}
        request_headers.update(self._auth_headers())
        if headers:
            request_headers.update(headers)

        body: Dict[str, Any] = {}
        if content is not None:
            request_headers['Content-Type'] = content_type or DEFAULT_MIME_TYPE
            body['data'] = content
        elif data is not None:
            body['json'] = data

        # CAR exports and blobs can stream for minutes; only stalls time out
        timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=self.config.timeout,
            sock_read=self.config.timeout,
        )
        async with aiohttp.ClientSession(
            headers=request_headers, timeout=timeout
        ) as session:
            try:
                async with session.request(
                    method=method,
                    url=url,
                    params=self._clean_params(params),
                    **body,
                ) as response:
                    response_body = await response.read()
                    return self._parse_response(
                        response.status,
                        dict(response.headers),
                        response_body,
                        raw=raw,
                    )
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.error(f'Network error during {nsid}: {type(e).__name__}: {e}')
                raise PDSAPIError(f'Network error: {type(e).__name__}: {e}') from e

    async def _xrpc(self, method: str, nsid: str, **kwargs) -> APIResponse:
        """Call an XRPC method, refreshing an expired session once."""
        try:
            return await self._make_request_async(method, nsid, **kwargs)
        except PDSAPIError as e:
            if (
                e.error != 'ExpiredToken'
                or self.session_data is None
                or kwargs.get('headers')
            ):
                raise
            logger.info(f'Session on {self.config.url} expired, refreshing')
            await self.refresh_session()
            return await self._make_request_async(method, nsid, **kwargs)

    async def query(
        self, nsid: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Call an XRPC query (HTTP GET)."""
        return await self._xrpc('GET', nsid, params=params, **kwargs)

    async def procedure(
        self, nsid: str, data: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Call an XRPC procedure (HTTP POST)."""
        return await self._xrpc('POST', nsid, data=data, **kwargs)

    def get(
        self, nsid: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make a synchronous XRPC query.

        Args:
            nsid: XRPC method NSID
            params: Query parameters
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        url = self._build_url(nsid)
        self.rate_limiter.acquire_sync()

        try:
            response = self.http.get(
                url,
                params=self._clean_params(params),
                headers=self._auth_headers(),
                timeout=self.config.timeout,
                **kwargs,
            )
            return self._handle_response(response)
        except requests.RequestException as e:
            logger.error(f'Network error during GET {nsid}: {e}')
            raise PDSAPIError(f'Network error: {type(e).__name__}: {e}') from e

    def test_connection(self) -> bool:
        """Test connection to the PDS.

        Returns:
            True if the server describes itself, False otherwise
        """
        try:
            response = self.get('com.atproto.server.describeServer')
            return response.success
        except PDSAPIError as e:
            logger.error(f'Connection test failed for {self.config.url}: {e}')
            return False

    # Session

    async def login(
        self,
        identifier: str,
        password: str,
        auth_factor_token: Optional[str] = None,
    ) -> PDSSession:
        body = {'identifier': identifier, 'password': password}
        if auth_factor_token:
            body['authFactorToken'] = auth_factor_token

        self.session_data = None
        response = await self.procedure('com.atproto.server.createSession', body)
        self.session_data = PDSSession(**response.data)
        logger.info(f'Logged into {self.config.url} as {self.session_data.did}')
        return self.session_data

    async def refresh_session(self) -> PDSSession:
        """Exchange the refresh token for a new session."""
        if self.session_data is None:
            raise PDSAuthenticationError('No session to refresh')

        response = await self._make_request_async(
            'POST',
            'com.atproto.server.refreshSession',
            headers={'Authorization': f'Bearer {self.session_data.refresh_jwt}'},
        )
        self.session_data = PDSSession(**response.data)
        return self.session_data

    # Identity and server

    async def resolve_handle(self, handle: str) -> str:
        response = await self.query(
            'com.atproto.identity.resolveHandle', {'handle': handle}
        )
        return response.data['did']

    async def describe_server(self) -> ServerDescription:
        response = await self.query('com.atproto.server.describeServer')
        return ServerDescription(**response.data)

    async def get_service_auth(self, aud: str, lxm: str) -> str:
        response = await self.query(
            'com.atproto.server.getServiceAuth', {'aud': aud, 'lxm': lxm}
        )
        return response.data['token']

    async def create_account(
        self, account: AccountCreate, service_token: str
    ) -> Dict[str, Any]:
        response = await self.procedure(
            'com.atproto.server.createAccount',
            account.to_body(),
            headers={'Authorization': f'Bearer {service_token}'},
        )
        return response.data or {}

    # Repository and blobs

    async def get_repo(self, did: str) -> bytes:
        response = await self.query(
            'com.atproto.sync.getRepo', {'did': did}, raw=True
        )
        return response.data or b''

    async def import_repo(self, car: bytes) -> None:
        await self._xrpc(
            'POST',
            'com.atproto.repo.importRepo',
            content=car,
            content_type=CAR_MIME_TYPE,
        )

    async def list_blobs(
        self, did: str, cursor: Optional[str] = None, limit: int = 100
    ) -> BlobPage:
        response = await self.query(
            'com.atproto.sync.listBlobs',
            {'did': did, 'cursor': cursor, 'limit': limit},
        )
        return BlobPage(**(response.data or {}))

    async def get_blob(self, did: str, cid: str) -> BlobData:
        response = await self.query(
            'com.atproto.sync.getBlob', {'did': did, 'cid': cid}, raw=True
        )
        mime_type = DEFAULT_MIME_TYPE
        for key, value in response.headers.items():
            if key.lower() == 'content-type':
                mime_type = value
                break

        return BlobData(cid=cid, data=response.data or b'', mime_type=mime_type)

    async def upload_blob(self, data: bytes, mime_type: str) -> Dict[str, Any]:
        response = await self._xrpc(
            'POST',
            'com.atproto.repo.uploadBlob',
            content=data,
            content_type=mime_type,
        )
        return response.data or {}

    # Preferences

    async def get_preferences(self) -> List[Dict[str, Any]]:
        response = await self.query('app.bsky.actor.getPreferences')
        return (response.data or {}).get('preferences', [])

    async def put_preferences(self, preferences: List[Dict[str, Any]]) -> None:
        await self.procedure(
            'app.bsky.actor.putPreferences', {'preferences': preferences}
        )

    # PLC identity

    async def request_plc_operation_signature(self) -> None:
        await self.procedure('com.atproto.identity.requestPlcOperationSignature')

    async def get_recommended_did_credentials(self) -> DidCredentials:
        response = await self.query(
            'com.atproto.identity.getRecommendedDidCredentials'
        )
        return DidCredentials(**(response.data or {}))

    async def sign_plc_operation(
        self, token: str, credentials: DidCredentials
    ) -> Dict[str, Any]:
        body = {'token': token}
        body.update(credentials.to_body())
        response = await self.procedure('com.atproto.identity.signPlcOperation', body)
        return response.data['operation']

    async def submit_plc_operation(self, operation: Dict[str, Any]) -> None:
        await self.procedure(
            'com.atproto.identity.submitPlcOperation', {'operation': operation}
        )

    # Account lifecycle

    async def activate_account(self) -> None:
        await self.procedure('com.atproto.server.activateAccount')

    async def deactivate_account(self) -> None:
        await self.procedure('com.atproto.server.deactivateAccount', {})

    def close(self):
        """Close the client session."""
        self.http.close()
        logger.info(f'PDS client session closed for {self.config.url}')


class PDSClientFactory:
    """Factory for creating PDS clients."""

    @staticmethod
    def create_client(config: PDSInstanceConfig) -> PDSClient:
        """Create PDS client from configuration.

        Args:
            config: PDS instance configuration

        Returns:
            Configured PDS client
        """
        return PDSClient(config)
