"""Core orchestrator - coordinates ticket, upload, checksum and registration."""
import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import httpx

from ..errors import BatchUploadError, DirectUploadError
from ..identifier import Identifier
from ..models import ApiResponse, DirectUploadBody, TransferOutcome, UploadConfig
from ..services.api_client import HTTPAPIClient
from ..services.repository import RegistrationRepository
from ..services.storage import StorageService
from ..services.tickets import TicketBroker
from ..use_cases.direct_upload import DirectUploadFileUseCase
from ..utils.progress import ProgressCallback, ProgressSink
from .models import UploadTask
from .parallel import get_parallel_count

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Destination = Union[str, Identifier]
Callback = Union[ProgressSink, ProgressCallback, None]


def _as_identifier(destination: Destination) -> Identifier:
    if isinstance(destination, Identifier):
        return destination
    return Identifier.parse(destination)


def _file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError:
        # reported by the pipeline itself
        return 0


class UploadOrchestrator:
    """
    Orchestrates direct uploads using injected services.

    Usage:
        async with UploadOrchestrator(base_url, api_token) as uploader:
            result = await uploader.upload(path, "doi:10.5072/FK2/ABC", body)

            result = await uploader.transfer(
                [path_a, path_b], "doi:10.5072/FK2/ABC", [body_a, body_b]
            )
    """

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        config: Optional[UploadConfig] = None,
        api_transport: Optional[httpx.AsyncBaseTransport] = None,
        storage_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            base_url: Origin service URL
            api_token: API token sent to the origin service only
            config: Upload configuration
            api_transport: Optional httpx transport for origin calls
            storage_transport: Optional httpx transport for object storage calls
        """
        self._base_url = base_url
        self._api_token = api_token
        self._config = config or UploadConfig()
        self._api_transport = api_transport
        self._storage_transport = storage_transport

        # Initialized in __aenter__
        self._api_client: Optional[HTTPAPIClient] = None
        self._storage_client: Optional[HTTPAPIClient] = None
        self._registrar: Optional[RegistrationRepository] = None
        self._pipeline: Optional[DirectUploadFileUseCase] = None

    async def __aenter__(self):
        """Open HTTP clients and wire services."""
        self._api_client = HTTPAPIClient(
            self._base_url,
            api_token=self._api_token,
            timeout=self._config.timeout,
            transport=self._api_transport,
        )
        await self._api_client.__aenter__()
        self._storage_client = HTTPAPIClient(
            timeout=self._config.timeout,
            transport=self._storage_transport,
        )
        await self._storage_client.__aenter__()

        self._registrar = RegistrationRepository(self._api_client)
        self._pipeline = DirectUploadFileUseCase(
            TicketBroker(self._api_client),
            StorageService(self._storage_client, self._config),
            self._config,
        )
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._storage_client:
            await self._storage_client.__aexit__(*args)
        if self._api_client:
            await self._api_client.__aexit__(*args)

    async def upload(
        self,
        path: PathLike,
        destination: Destination,
        body: DirectUploadBody,
        progress_callback: Callback = None,
    ) -> ApiResponse:
        """
        Upload one file and register it.

        Raises the pipeline's own exception (OSError, DirectUploadError) when
        the file could not be stored; registration is then not attempted.
        """
        assert self._pipeline is not None and self._registrar is not None
        destination = _as_identifier(destination)

        outcome = await self._pipeline.execute(
            destination, path, body, ProgressSink.wrap(progress_callback)
        )
        if not outcome.success:
            if outcome.storage_identifier:
                logger.warning(
                    "Object %s for %s stays unregistered", outcome.storage_identifier, outcome.filename
                )
            if outcome.cause is not None:
                raise outcome.cause
            raise DirectUploadError(outcome.error)

        return await self._registrar.register_one(destination, outcome.body)

    async def transfer(
        self,
        paths: Sequence[PathLike],
        destination: Destination,
        bodies: Sequence[DirectUploadBody],
        progress_callbacks: Optional[Sequence[Callback]] = None,
    ) -> ApiResponse:
        """
        Upload several files concurrently and register them in one call.

        Registration happens only if every file succeeded; otherwise
        BatchUploadError carries the outcome of every file. An empty batch is
        rejected with ValueError.
        """
        assert self._registrar is not None
        if len(bodies) != len(paths):
            raise ValueError(f"expected {len(paths)} bodies, got {len(bodies)}")
        if progress_callbacks is not None and len(progress_callbacks) != len(paths):
            raise ValueError(
                f"expected {len(paths)} progress callbacks, got {len(progress_callbacks)}"
            )
        if not paths:
            raise ValueError("no files to transfer")
        destination = _as_identifier(destination)

        # one sink, and one lock, per distinct callable
        sinks: Dict[int, Optional[ProgressSink]] = {}
        tasks = []
        for idx, (path, body) in enumerate(zip(paths, bodies)):
            callback = progress_callbacks[idx] if progress_callbacks is not None else None
            if id(callback) not in sinks:
                sinks[id(callback)] = ProgressSink.wrap(callback)
            file_path = Path(path)
            tasks.append(
                UploadTask(
                    file_path=file_path,
                    body=body,
                    progress_sink=sinks[id(callback)],
                    file_size=_file_size(file_path),
                )
            )

        outcomes = await self.upload_all(destination, tasks)

        failed = [o for o in outcomes if not o.success]
        if failed:
            error = BatchUploadError(outcomes)
            for storage_identifier in error.orphaned:
                logger.warning("Object %s stays unregistered after batch failure", storage_identifier)
            logger.error("Batch upload to %s aborted: %s", destination, error)
            raise error

        logger.info(f"All {len(outcomes)} files stored, registering batch with {destination}")
        return await self._registrar.register_many(destination, [o.body for o in outcomes])

    async def upload_all(
        self, destination: Identifier, tasks: Sequence[UploadTask]
    ) -> List[TransferOutcome]:
        """Run every task's pipeline and return outcomes in task order."""
        assert self._pipeline is not None
        if not tasks:
            return []

        max_parallel = self._config.max_parallel or get_parallel_count(
            [task.file_size for task in tasks]
        )
        semaphore = asyncio.Semaphore(max_parallel)
        logger.info(f"Starting direct upload: {len(tasks)} files, up to {max_parallel} at a time")

        async def _run(task: UploadTask) -> TransferOutcome:
            async with semaphore:
                return await self._pipeline.execute(
                    destination, task.file_path, task.body, task.progress_sink
                )

        outcomes = await asyncio.gather(*(_run(task) for task in tasks))

        uploaded = sum(1 for o in outcomes if o.success)
        logger.info(f"Direct uploads complete: {uploaded} successful, {len(outcomes) - uploaded} failed")
        return list(outcomes)
