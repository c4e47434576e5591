"""Remote PDS contract.

The orchestrator talks to both servers only through these operations.
``PDSClient`` implements them over XRPC; tests substitute in-memory fakes.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models.blob import BlobData, BlobPage
from ..models.identity import DidCredentials
from ..models.session import AccountCreate, PDSSession, ServerDescription


class RemotePDS(ABC):
    """Abstract handle to one Personal Data Server."""

    @abstractmethod
    async def login(
        self,
        identifier: str,
        password: str,
        auth_factor_token: Optional[str] = None,
    ) -> PDSSession:
        """Create a session. May raise a second-factor challenge."""

    @abstractmethod
    async def resolve_handle(self, handle: str) -> str:
        """Resolve a handle to its DID."""

    @abstractmethod
    async def describe_server(self) -> ServerDescription:
        """Describe the server, including its own service DID."""

    @abstractmethod
    async def get_service_auth(self, aud: str, lxm: str) -> str:
        """Get a short-lived service JWT for method ``lxm`` on service ``aud``."""

    @abstractmethod
    async def create_account(
        self, account: AccountCreate, service_token: str
    ) -> Dict[str, Any]:
        """Create an account for an existing DID, authorized by a service JWT."""

    @abstractmethod
    async def get_repo(self, did: str) -> bytes:
        """Export the full repository as a CAR archive."""

    @abstractmethod
    async def import_repo(self, car: bytes) -> None:
        """Import a CAR archive into the session's repository."""

    @abstractmethod
    async def list_blobs(
        self, did: str, cursor: Optional[str] = None, limit: int = 100
    ) -> BlobPage:
        """List one page of blob CIDs."""

    @abstractmethod
    async def get_blob(self, did: str, cid: str) -> BlobData:
        """Fetch one blob."""

    @abstractmethod
    async def upload_blob(self, data: bytes, mime_type: str) -> Dict[str, Any]:
        """Upload one blob."""

    @abstractmethod
    async def get_preferences(self) -> List[Dict[str, Any]]:
        """Read the account preferences."""

    @abstractmethod
    async def put_preferences(self, preferences: List[Dict[str, Any]]) -> None:
        """Replace the account preferences."""

    @abstractmethod
    async def request_plc_operation_signature(self) -> None:
        """Email the session's account a token for signing a PLC operation."""

    @abstractmethod
    async def get_recommended_did_credentials(self) -> DidCredentials:
        """Get the DID credentials this server wants in the DID document."""

    @abstractmethod
    async def sign_plc_operation(
        self, token: str, credentials: DidCredentials
    ) -> Dict[str, Any]:
        """Sign a PLC operation updating the DID document."""

    @abstractmethod
    async def submit_plc_operation(self, operation: Dict[str, Any]) -> None:
        """Submit a signed PLC operation to the directory."""

    @abstractmethod
    async def activate_account(self) -> None:
        """Activate the session's account."""

    @abstractmethod
    async def deactivate_account(self) -> None:
        """Deactivate the session's account."""

    def close(self) -> None:
        """Release client resources."""
