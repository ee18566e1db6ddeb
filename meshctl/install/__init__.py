from .base import InstallArgs, InstallPhase, Stage, StageContext, StageState, batch_deploy_resources
from .installer import Installer
from .kube import ClusterClient
from .poller import PollPolicy, wait_until_ready

__all__ = [
    'InstallArgs', 'InstallPhase', 'Stage', 'StageContext', 'StageState',
    'batch_deploy_resources', 'Installer', 'ClusterClient', 'PollPolicy',
    'wait_until_ready',
]
