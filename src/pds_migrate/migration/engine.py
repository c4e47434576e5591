"""Migration engine - main entry point for migration operations."""

from typing import Any, Dict, Optional, Union

from ..api.client import PDSClientFactory
from ..config.config import Config
from ..models.request import MigrationRequest
from ..utils.logging import get_logger
from .orchestrator import MigrationOrchestrator, MigrationSummary, StatusCallback


class MigrationEngine:
    """Builds the PDS clients from configuration and drives one migration."""

    def __init__(self, config: Config):
        """Initialize migration engine.

        Args:
            config: Migration configuration
        """
        self.config = config
        self.logger = get_logger('MigrationEngine')

        self.source_client = PDSClientFactory.create_client(config.source)
        self.destination_client = PDSClientFactory.create_client(config.destination)

        self.orchestrator = MigrationOrchestrator(
            self.source_client,
            self.destination_client,
            blob_page_size=config.migration.blob_page_size,
        )

    async def migrate(
        self,
        request: Union[MigrationRequest, Dict[str, Any]],
        status_callback: Optional[StatusCallback] = None,
        use_auth_factor: bool = False,
    ) -> MigrationSummary:
        """Run the migration up to the PLC token request.

        Args:
            request: Migration input
            status_callback: Receives a message before each stage
            use_auth_factor: Send the two-factor code with the source login

        Returns:
            Migration summary
        """
        self.logger.info(
            f'Starting migration from {self.config.source.url} '
            f'to {self.config.destination.url}'
        )

        try:
            return await self.orchestrator.migrate(
                request, status_callback, use_auth_factor=use_auth_factor
            )
        except Exception as e:
            self.logger.error(f'Migration failed: {e}')
            raise

    async def finalize_identity(
        self, token: str, status_callback: Optional[StatusCallback] = None
    ) -> None:
        """Finish the migration with the emailed PLC token.

        Args:
            token: PLC token
            status_callback: Receives progress messages
        """
        try:
            await self.orchestrator.finalize_identity(token, status_callback)
        except Exception as e:
            self.logger.error(f'Identity update failed: {e}')
            raise

    async def test_connectivity(self) -> None:
        """Test connectivity to both PDS instances.

        Raises:
            ConnectionError: If connectivity test fails
        """
        self.logger.info('Testing connectivity to PDS instances')

        if not self.source_client.test_connection():
            raise ConnectionError('Cannot connect to source PDS')

        if not self.destination_client.test_connection():
            raise ConnectionError('Cannot connect to destination PDS')

        self.logger.info('Connectivity tests passed')

    def close(self) -> None:
        """Close both clients."""
        self.source_client.close()
        self.destination_client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
