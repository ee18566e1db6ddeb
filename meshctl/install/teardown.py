"""Best-effort removal of the objects a stage created."""
import logging
from dataclasses import dataclass
from typing import Iterable, List

from .kube import ClusterClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeardownItem:
    category: str
    kind: str
    name: str


def clear_resources(cluster: ClusterClient, items: Iterable[TeardownItem], namespace: str) -> List[str]:
    """Delete every item in order, logging failures instead of raising them.

    Returns:
        list: Messages for the deletions that failed
    """
    failures = []
    for item in items:
        try:
            if cluster.delete_resource(item.category, item.kind, item.name, namespace):
                logger.info(f"🗑️  Deleted {item.kind} {item.name}")
            else:
                logger.debug(f"{item.kind} {item.name} not found, skipping")
        except Exception as e:
            msg = f"Failed to delete {item.kind} {item.name}: {e}"
            logger.warning(f"⚠️  {msg}")
            failures.append(msg)
    return failures
