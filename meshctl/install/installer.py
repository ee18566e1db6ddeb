"""Runs install stages in order and tears them down again."""
import logging
from typing import Callable, Dict, List, Optional, Sequence

from .base import InstallArgs, InstallPhase, Stage, StageContext, StageState
from .kube import ClusterClient
from .stages import default_stages

logger = logging.getLogger(__name__)


class Installer:
    """Drives a sequence of stages against one cluster.

    Stages run one at a time: each is pre-checked, applied and polled before
    the next one starts. The first failure stops the install. ``states``
    tracks where every stage is in its lifecycle.
    """

    def __init__(self, client: ClusterClient, args: InstallArgs,
                 stages: Optional[Sequence[Stage]] = None,
                 echo: Callable[[str], None] = print):
        self.client = client
        self.args = args
        self.stages: List[Stage] = list(stages) if stages is not None else default_stages()
        self.echo = echo
        self.states: Dict[str, StageState] = {stage.name: StageState.NOT_STARTED for stage in self.stages}

    def _context(self) -> StageContext:
        return StageContext(args=self.args, client=self.client)

    def _enter(self, stage: Stage, state: StageState) -> None:
        logger.debug(f"Stage {stage.name}: {self.states[stage.name].value} -> {state.value}")
        self.states[stage.name] = state

    def install(self) -> None:
        logger.info(f"🚀 Installing {len(self.stages)} stage(s) into namespace {self.args.namespace}")
        self.client.ensure_namespace(self.args.namespace)

        for stage in self.stages:
            context = self._context()
            self.echo(stage.describe(context, InstallPhase.BEGIN))
            try:
                self._enter(stage, StageState.PRE_CHECKING)
                stage.pre_check(context)
                self._enter(stage, StageState.DEPLOYING)
                stage.apply(context)
                self._enter(stage, StageState.POLLING)
                stage.wait_ready(context)
            except Exception as e:
                self._enter(stage, StageState.FAILED)
                logger.error(f"❌ Stage {stage.name} failed: {e}")
                self.echo(stage.describe(context, InstallPhase.ERROR, e))
                if self.args.clean_when_failed:
                    logger.info("🧹 Cleaning up installed resources")
                    self.reset()
                    self._enter(stage, StageState.FAILED)
                raise
            self._enter(stage, StageState.READY)
            self.echo(stage.describe(self._context(), InstallPhase.END))

        logger.info("🎉 Mesh installed successfully.")

    def reset(self) -> None:
        """Clear every stage in reverse install order. Never raises for missing objects."""
        for stage in reversed(self.stages):
            logger.info(f"🧹 Clearing {stage.title}")
            self._enter(stage, StageState.CLEARING)
            stage.clear(self._context())
            self._enter(stage, StageState.NOT_STARTED)
