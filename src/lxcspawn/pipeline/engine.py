"""Deployment pipeline engine."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple

from lxcspawn.errors import ExecutionError, LxcSpawnError
from lxcspawn.models.config import AppConfig
from lxcspawn.models.deployment import DeploymentConfig
from lxcspawn.models.installer import PatchReport
from lxcspawn.models.resources import StorageTarget, TemplateDescriptor
from lxcspawn.models.service import ServiceRegistration
from lxcspawn.models.unit import ProvisionedUnit
from lxcspawn.pipeline.checkpoints import Checkpoint, CheckpointRecord, CheckpointStore
from lxcspawn.providers import ProviderRegistry, ProviderStatus


logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Pipeline states, in execution order."""
    COLLECTING = "collecting"
    RESOLVING = "resolving"
    PROVISIONING = "provisioning"
    FETCHING = "fetching"
    PATCHING = "patching"
    BOOTSTRAPPING = "bootstrapping"
    REGISTERING = "registering"
    SKIPPED = "skipped"
    DONE = "done"
    ABORTED = "aborted"


TERMINAL_STAGES = (Stage.DONE, Stage.ABORTED)


@dataclass
class DeploymentResult:
    """Outcome of a completed pipeline run."""
    deployment: DeploymentConfig
    unit: ProvisionedUnit
    registration: Optional[ServiceRegistration] = None
    report: Optional[PatchReport] = None
    resumed: List[Checkpoint] = field(default_factory=list)
    stage: Stage = Stage.DONE


class DeploymentEngine:
    """Runs collect, resolve, provision, fetch, patch, bootstrap and register in order.

    Any ``LxcSpawnError`` moves the engine to ``ABORTED`` and propagates.
    Nothing created before the failure is removed; completed side effects
    are recorded in the checkpoint store so a re-run against the same
    container ID resumes after them.
    """

    def __init__(
        self,
        config: AppConfig,
        registry: ProviderRegistry,
        checkpoints: CheckpointStore,
        on_stage: Optional[Callable[[Stage], None]] = None,
        resume: bool = False,
    ):
        """Initialize deployment engine.

        With ``resume`` a checkpoint whose container is gone is an error;
        otherwise such a checkpoint is discarded as stale.
        """
        self.config = config
        self.registry = registry
        self.checkpoints = checkpoints
        self.on_stage = on_stage
        self.resume = resume
        self.stage: Optional[Stage] = None
        self.history: List[Stage] = []
        self.started_at: Optional[datetime] = None

    def _enter(self, stage: Stage) -> None:
        if self.stage in TERMINAL_STAGES:
            raise RuntimeError(f"Pipeline already finished in state {self.stage.value}")
        logger.debug(f"Pipeline stage: {stage.value}")
        self.stage = stage
        self.history.append(stage)
        if self.on_stage:
            self.on_stage(stage)

    async def run(self, collect: Callable[[], Awaitable[DeploymentConfig]]) -> DeploymentResult:
        """Run the full pipeline.

        ``collect`` gathers and confirms the deployment parameters; it runs
        after the host precondition check and before any side effect.
        """
        self.started_at = datetime.now()
        try:
            self.registry.host.check_environment()

            self._enter(Stage.COLLECTING)
            deployment = await collect()

            record = await self.checkpoints.load(deployment.ctid)
            record = await self._drop_stale(deployment, record)
            resumed = list(record.completed) if record else []
            if resumed:
                logger.info(
                    f"Resuming container {deployment.ctid} after: "
                    f"{', '.join(c.value for c in resumed)}"
                )

            self._enter(Stage.RESOLVING)
            storage, template = await self.resolve(deployment, record)

            self._enter(Stage.PROVISIONING)
            unit = await self.provision(deployment, storage, template, record)

            result = DeploymentResult(deployment=deployment, unit=unit, resumed=resumed)

            if record and record.has(Checkpoint.BOOTSTRAPPED):
                logger.info("Installer already ran in this container, skipping bootstrap")
            else:
                result.report = await self.bootstrap(deployment, unit)

            if record and record.has(Checkpoint.REGISTERED):
                logger.info("Service already registered, skipping registration")
            else:
                result.registration = await self.register(deployment, unit)

            address = await self.container.address(unit, deployment)
            result.unit = unit.model_copy(update={"address": address})

            self._enter(Stage.DONE)
            duration = (datetime.now() - self.started_at).total_seconds()
            logger.info(f"Deployment of container {deployment.ctid} completed in {duration:.1f}s")
            return result

        except LxcSpawnError as e:
            logger.error(f"Deployment aborted during {self.stage.value if self.stage else 'startup'}: {e}")
            self._enter(Stage.ABORTED)
            raise

    @property
    def container(self):
        return self.registry.get_provider("container")

    async def _drop_stale(
        self,
        deployment: DeploymentConfig,
        record: Optional[CheckpointRecord],
    ) -> Optional[CheckpointRecord]:
        """Discard a checkpoint whose container no longer exists.

        Container IDs are reused by the host once a container is destroyed,
        so a record for a missing container describes an earlier deployment.
        """
        if not record or not record.has(Checkpoint.CREATED):
            return record
        if await self.container.status(deployment.ctid) != ProviderStatus.ABSENT:
            return record

        path = self.checkpoints.path_for(deployment.ctid)
        if self.resume:
            raise ExecutionError(
                f"Checkpoint says container {deployment.ctid} was created, but it no "
                f"longer exists; remove {path} to start over"
            )

        logger.warning(
            f"Discarding stale checkpoint {path}: container {deployment.ctid} no longer exists"
        )
        await self.checkpoints.discard(deployment.ctid)
        return None

    async def resolve(
        self,
        deployment: DeploymentConfig,
        record: Optional[CheckpointRecord] = None,
    ) -> Tuple[StorageTarget, TemplateDescriptor]:
        """Resolve the rootdir storage and the latest template."""
        storage_resolver = self.registry.get_provider("storage")
        storage = await storage_resolver.resolve(deployment.storage, content="rootdir")

        if record and record.has(Checkpoint.CREATED):
            # Template is only needed to create the container
            return storage, TemplateDescriptor(name="", storage=deployment.template_storage)

        template_storage = await storage_resolver.resolve(
            deployment.template_storage, content="vztmpl"
        )
        template = await self.registry.get_provider("template").resolve(template_storage.name)
        return storage, template

    async def provision(
        self,
        deployment: DeploymentConfig,
        storage: StorageTarget,
        template: TemplateDescriptor,
        record: Optional[CheckpointRecord] = None,
    ) -> ProvisionedUnit:
        """Create (unless already created) and start the container."""
        status = await self.container.status(deployment.ctid)

        if record and record.has(Checkpoint.CREATED) and status == ProviderStatus.PRESENT:
            logger.info(f"Container {deployment.ctid} already created")
            unit = ProvisionedUnit(ctid=deployment.ctid, hostname=deployment.hostname)
        elif status == ProviderStatus.PRESENT:
            raise ExecutionError(
                f"Container {deployment.ctid} already exists and was not created by lxcspawn"
            )
        elif status == ProviderStatus.ERROR:
            raise ExecutionError(f"Could not determine the state of container {deployment.ctid}")
        else:
            await self.registry.get_provider("template").present(template)
            unit = await self.container.create(deployment, storage, template)
            await self.checkpoints.mark(
                deployment.ctid, Checkpoint.CREATED, config=deployment.public_dict()
            )

        unit = await self.container.start(unit)
        await self.checkpoints.mark(deployment.ctid, Checkpoint.STARTED)
        return unit

    async def bootstrap(self, deployment: DeploymentConfig, unit: ProvisionedUnit) -> PatchReport:
        """Fetch, sanitize and run the installer."""
        installer = self.registry.get_provider("installer")
        service = self.registry.get_provider("service")

        self._enter(Stage.FETCHING)
        artifact = await installer.fetch()
        installer.verify(artifact)

        self._enter(Stage.PATCHING)
        artifact = installer.patch(artifact)

        self._enter(Stage.BOOTSTRAPPING)
        await service.prepare_guest(unit)
        await service.bootstrap(unit, artifact)
        await self.checkpoints.mark(deployment.ctid, Checkpoint.BOOTSTRAPPED)
        return artifact.report

    async def register(
        self,
        deployment: DeploymentConfig,
        unit: ProvisionedUnit,
    ) -> Optional[ServiceRegistration]:
        """Register the application service, or skip when it does not apply."""
        service = self.registry.get_provider("service")

        reason = await service.skip_reason(unit)
        if reason:
            self._enter(Stage.SKIPPED)
            logger.info(reason)
            return None

        self._enter(Stage.REGISTERING)
        registration = await service.activate(unit)
        await self.checkpoints.mark(deployment.ctid, Checkpoint.REGISTERED)
        return registration
