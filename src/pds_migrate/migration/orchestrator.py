"""Migration orchestrator for moving an account between two PDSes.

The workflow is split in two entry points because the last stage needs a
token the source PDS emails to the user:

* ``migrate`` logs into the source, creates and logs into the destination
  account, copies the repository, blobs and preferences, then asks the
  source PDS to email a PLC token.
* ``finalize_identity`` uses that token to move the DID to the destination,
  activates the destination account and deactivates the source one.

Stages run strictly one after another. Any remote failure stops the
workflow and propagates unchanged, except a second-factor challenge on the
source login (raised as ``AuthFactorTokenRequiredError``) and single blob
failures, which are logged and counted.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..api.exceptions import (
    AuthFactorTokenRequiredError,
    MigrationStateError,
    MigrationValidationError,
    is_auth_factor_required,
)
from ..api.interface import RemotePDS
from ..models.request import MigrationRequest
from ..models.session import AccountCreate, PDSSession
from ..utils.logging import get_logger

CREATE_ACCOUNT_METHOD = 'com.atproto.server.createAccount'
DEFAULT_BLOB_PAGE_SIZE = 100

StatusCallback = Callable[[str], None]


class MigrationStage(str, Enum):
    """Stages of ``migrate`` in execution order."""

    SOURCE_LOGIN = 'source_login'
    CREATE_ACCOUNT = 'create_account'
    REPO = 'repo'
    BLOBS = 'blobs'
    PREFERENCES = 'preferences'
    PLC_TOKEN = 'plc_token'

    @property
    def message(self) -> str:
        """Progress message reported when the stage begins."""
        return STAGE_MESSAGES[self]


STAGE_MESSAGES = {
    MigrationStage.SOURCE_LOGIN: 'Logging into source PDS...',
    MigrationStage.CREATE_ACCOUNT: 'Creating account on destination PDS...',
    MigrationStage.REPO: 'Migrating repo...',
    MigrationStage.BLOBS: 'Migrating blobs...',
    MigrationStage.PREFERENCES: 'Migrating preferences...',
    MigrationStage.PLC_TOKEN: 'Requesting PLC token via email...',
}

SIGNING_MESSAGE = 'Signing PLC operation...'
SUBMITTING_MESSAGE = 'Submitting PLC operation...'
ACTIVATING_MESSAGE = 'Activating account on destination PDS...'
DEACTIVATING_MESSAGE = 'Deactivating account on source PDS...'
COMPLETE_MESSAGE = 'Migration complete!'


class MigrationState(BaseModel):
    """Mutable record of one migration attempt."""

    did: Optional[str] = Field(default=None, description='Account DID')
    source_session: Optional[PDSSession] = Field(
        default=None, description='Session on the source PDS'
    )
    destination_session: Optional[PDSSession] = Field(
        default=None, description='Session on the destination PDS'
    )
    account_created: bool = Field(
        default=False, description='Destination account was created'
    )
    completed_stages: List[MigrationStage] = Field(
        default_factory=list, description='Stages finished in the last run'
    )
    migrated: bool = Field(default=False, description='migrate finished')
    finalized: bool = Field(default=False, description='finalize_identity finished')


class MigrationSummary(BaseModel):
    """Summary of a completed ``migrate`` run."""

    did: str = Field(..., description='Migrated DID')
    started_at: datetime = Field(..., description='Migration start time')
    completed_at: Optional[datetime] = Field(
        default=None, description='Migration completion time'
    )
    account_created: bool = Field(
        default=True, description='Destination account was created in this run'
    )
    blobs_transferred: int = Field(default=0, description='Blobs uploaded')
    failed_blobs: List[str] = Field(
        default_factory=list, description='CIDs of blobs that failed to transfer'
    )

    class Config:
        """Pydantic configuration."""

        json_encoders = {datetime: lambda v: v.isoformat() if v else None}


class MigrationOrchestrator:
    """Moves one account from a source PDS to a destination PDS.

    One instance belongs to one migration attempt. Retrying after a
    second-factor challenge must reuse the same instance.
    """

    def __init__(
        self,
        source_client: RemotePDS,
        destination_client: RemotePDS,
        blob_page_size: int = DEFAULT_BLOB_PAGE_SIZE,
    ):
        """Initialize migration orchestrator.

        Args:
            source_client: Client for the PDS the account lives on
            destination_client: Client for the PDS the account moves to
            blob_page_size: CIDs requested per listBlobs page
        """
        self.source = source_client
        self.destination = destination_client
        self.blob_page_size = blob_page_size
        self.state = MigrationState()
        self.logger = get_logger('MigrationOrchestrator')

    async def migrate(
        self,
        request: Union[MigrationRequest, Dict[str, Any]],
        status_callback: Optional[StatusCallback] = None,
        use_auth_factor: bool = False,
    ) -> MigrationSummary:
        """Run stages 1 to 6 of the migration.

        Args:
            request: Migration input
            status_callback: Receives a message before each stage
            use_auth_factor: Send ``request.auth_factor_token`` with the
                source login; set when retrying after a challenge

        Returns:
            Migration summary

        Raises:
            MigrationValidationError: If the input is incomplete
            AuthFactorTokenRequiredError: If the source asks for a 2FA code
            PDSAPIError: If any other remote call fails
        """
        request = self._validate_request(request, use_auth_factor)
        started_at = datetime.now()
        self.state.completed_stages = []
        self.state.migrated = False

        self._begin(MigrationStage.SOURCE_LOGIN, status_callback)
        await self._login_source(request, use_auth_factor)

        self._begin(MigrationStage.CREATE_ACCOUNT, status_callback)
        created = await self._create_destination_account(request)

        self._begin(MigrationStage.REPO, status_callback)
        await self._migrate_repo()

        self._begin(MigrationStage.BLOBS, status_callback)
        transferred, failed = await self._migrate_blobs()

        self._begin(MigrationStage.PREFERENCES, status_callback)
        await self._migrate_preferences()

        self._begin(MigrationStage.PLC_TOKEN, status_callback)
        await self.source.request_plc_operation_signature()
        self._complete(MigrationStage.PLC_TOKEN)

        self.state.migrated = True
        summary = MigrationSummary(
            did=self.state.did,
            started_at=started_at,
            completed_at=datetime.now(),
            account_created=created,
            blobs_transferred=transferred,
            failed_blobs=failed,
        )

        self.logger.info(
            f'Migration of {self.state.did} finished: '
            f'{transferred} blobs transferred, {len(failed)} failed. '
            'Waiting for PLC token.'
        )
        return summary

    async def finalize_identity(
        self, token: str, status_callback: Optional[StatusCallback] = None
    ) -> None:
        """Move the DID to the destination PDS and switch accounts over.

        Args:
            token: PLC token emailed by the source PDS
            status_callback: Receives progress messages

        Raises:
            MigrationStateError: If ``migrate`` has not completed
            MigrationValidationError: If the token is blank
            PDSAPIError: If any remote call fails
        """
        if not (
            self.state.migrated
            and self.state.source_session
            and self.state.destination_session
        ):
            raise MigrationStateError(
                'migrate must complete before the identity can be finalized'
            )
        token = (token or '').strip()
        if not token:
            raise MigrationValidationError('PLC token is required')

        self._report(status_callback, SIGNING_MESSAGE)
        credentials = await self.destination.get_recommended_did_credentials()
        operation = await self.source.sign_plc_operation(token, credentials)

        self._report(status_callback, SUBMITTING_MESSAGE)
        await self.destination.submit_plc_operation(operation)
        self.logger.info(f'PLC operation for {self.state.did} submitted')

        # Activate before deactivating so the DID always has a live host
        self._report(status_callback, ACTIVATING_MESSAGE)
        await self.destination.activate_account()

        self._report(status_callback, DEACTIVATING_MESSAGE)
        await self.source.deactivate_account()

        self.state.finalized = True
        self._report(status_callback, COMPLETE_MESSAGE)
        self.logger.info(f'Migration of {self.state.did} complete')

    def _validate_request(
        self,
        request: Union[MigrationRequest, Dict[str, Any]],
        use_auth_factor: bool,
    ) -> MigrationRequest:
        if not isinstance(request, MigrationRequest):
            try:
                request = MigrationRequest(**request)
            except ValidationError as e:
                raise MigrationValidationError(str(e)) from e

        missing = [
            name for name in ('email', 'handle') if not getattr(request, name)
        ]
        if missing:
            raise MigrationValidationError(
                f'Missing required fields: {", ".join(missing)}'
            )
        if use_auth_factor and not request.auth_factor_token:
            raise MigrationValidationError('Two-factor code is required')

        return request

    def _begin(
        self, stage: MigrationStage, status_callback: Optional[StatusCallback]
    ) -> None:
        self.logger.info(f'Starting stage {stage.value}')
        self._report(status_callback, stage.message)

    def _complete(self, stage: MigrationStage) -> None:
        self.state.completed_stages.append(stage)

    def _report(self, status_callback: Optional[StatusCallback], message: str) -> None:
        if status_callback is None:
            return
        try:
            status_callback(message)
        except Exception as e:
            self.logger.warning(f'Status callback failed: {e}')

    async def _login_source(
        self, request: MigrationRequest, use_auth_factor: bool
    ) -> None:
        auth_factor_token = request.auth_factor_token if use_auth_factor else None

        try:
            session = await self.source.login(
                request.old_handle, request.password, auth_factor_token
            )
        except AuthFactorTokenRequiredError:
            raise
        except Exception as e:
            if is_auth_factor_required(e):
                self.logger.info('Source PDS requires a two-factor code')
                raise AuthFactorTokenRequiredError(
                    str(e),
                    status_code=getattr(e, 'status_code', None),
                    response_data=getattr(e, 'response_data', None),
                ) from e
            raise

        self.state.source_session = session
        self.state.did = await self.source.resolve_handle(request.old_handle)
        self.logger.info(f'Resolved {request.old_handle} to {self.state.did}')
        self._complete(MigrationStage.SOURCE_LOGIN)

    async def _create_destination_account(self, request: MigrationRequest) -> bool:
        did = self.state.did
        created = False

        if self.state.account_created:
            self.logger.warning(
                f'Account for {did} already created on destination, skipping'
            )
        else:
            description = await self.destination.describe_server()
            service_token = await self.source.get_service_auth(
                aud=description.did, lxm=CREATE_ACCOUNT_METHOD
            )
            account = AccountCreate(
                did=did,
                handle=request.handle,
                email=request.email,
                password=request.password,
                invite_code=request.invite_code,
            )
            await self.destination.create_account(account, service_token)
            self.state.account_created = True
            created = True
            self.logger.info(f'Created account {request.handle} on {description.did}')

        self.state.destination_session = await self.destination.login(
            did, request.password
        )
        self._complete(MigrationStage.CREATE_ACCOUNT)
        return created

    async def _migrate_repo(self) -> None:
        car = await self.source.get_repo(self.state.did)
        self.logger.info(f'Exported repo of {len(car)} bytes')
        await self.destination.import_repo(car)
        self._complete(MigrationStage.REPO)

    async def _migrate_blobs(self):
        did = self.state.did
        transferred = 0
        failed: List[str] = []
        cursor: Optional[str] = None

        while True:
            page = await self.source.list_blobs(
                did, cursor=cursor, limit=self.blob_page_size
            )
            for cid in page.cids:
                try:
                    blob = await self.source.get_blob(did, cid)
                    await self.destination.upload_blob(blob.data, blob.mime_type)
                    transferred += 1
                except Exception as e:
                    self.logger.error(f'Blob migration error for {cid}: {e}')
                    failed.append(cid)

            cursor = page.cursor
            if not cursor:
                break

        self.logger.info(f'Blobs: {transferred} transferred, {len(failed)} failed')
        self._complete(MigrationStage.BLOBS)
        return transferred, failed

    async def _migrate_preferences(self) -> None:
        preferences = await self.source.get_preferences()
        await self.destination.put_preferences(preferences)
        self._complete(MigrationStage.PREFERENCES)
