import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from kubernetes import config

logger = logging.getLogger(__name__)


def load_kubeconfig(path: Optional[str] = None) -> str:
    """
    Load the kubeconfig from a given path, the KUBECONFIG_CONTENT env var,
    the default kubeconfig location or the in-cluster service account.
    Returns a description of the configuration source that was used.
    """
    # CI/CD secret-based loading
    if "KUBECONFIG_CONTENT" in os.environ:
        fd, temp_path = tempfile.mkstemp(prefix="meshctl-kubeconfig-", suffix=".yaml")
        with os.fdopen(fd, "w") as f:
            f.write(os.environ["KUBECONFIG_CONTENT"])
        config.load_kube_config(config_file=temp_path)
        return temp_path

    # Local path loading
    if path:
        resolved = Path(os.path.expanduser(path)).resolve()
        if not resolved.exists():
            raise FileNotFoundError(f"❌ Kubeconfig not found: {resolved}")
        config.load_kube_config(config_file=str(resolved))
        return str(resolved)

    try:
        config.load_kube_config()
        return os.environ.get("KUBECONFIG", "~/.kube/config")
    except config.config_exception.ConfigException as e:
        logger.debug(f"No kubeconfig found ({e}), trying in-cluster configuration")
        config.load_incluster_config()
        return "in-cluster"
