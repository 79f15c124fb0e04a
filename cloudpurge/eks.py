"""EKS clusters."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Sequence

from cloudpurge.session import Resource, Session

logger = logging.getLogger("cloudpurge")

# Regions in which EKS is offered.
EKS_REGIONS = (
    "us-east-1",
    "us-east-2",
    "us-west-2",
    "eu-central-1",
    "eu-west-1",
    "eu-west-2",
    "eu-west-3",
    "eu-north-1",
    "ap-southeast-1",
    "ap-southeast-2",
    "ap-northeast-1",
    "ap-northeast-2",
    "ap-south-1",
)


def eks_supported_region(region: str) -> bool:
    """Tell whether EKS is offered in ``region``."""
    return region in EKS_REGIONS


def _filter_out_recent_eks_clusters(
    client: Any, cluster_names: Sequence[str], exclude_after: datetime
) -> list[str]:
    filtered: list[str] = []
    for name in cluster_names:
        cluster = client.describe_cluster(name=name)["cluster"]
        if exclude_after > cluster["createdAt"]:
            filtered.append(cluster["name"])
    return filtered


def get_all_eks_clusters(session: Session, exclude_after: datetime) -> list[str]:
    """Return names of EKS clusters created before ``exclude_after``."""
    client = session.client("eks")
    output = client.list_clusters()
    return _filter_out_recent_eks_clusters(client, output.get("clusters", []), exclude_after)


def _delete_eks_clusters(client: Any, cluster_names: Sequence[str]) -> list[str]:
    requested: list[str] = []
    for name in cluster_names:
        try:
            client.delete_cluster(name=name)
        except Exception as err:
            logger.error("[Failed] Failed deleting EKS cluster %s: %s", name, err)
        else:
            requested.append(name)
    return requested


def _wait_until_eks_clusters_deleted(client: Any, cluster_names: Sequence[str]) -> list[str]:
    deleted: list[str] = []
    for name in cluster_names:
        try:
            client.get_waiter("cluster_deleted").wait(name=name)
        except Exception as err:
            logger.error(
                "[Failed] Failed waiting for EKS cluster to be deleted %s: %s", name, err
            )
        else:
            logger.info("Deleted EKS cluster: %s", name)
            deleted.append(name)
    return deleted


def nuke_all_eks_clusters(session: Session, cluster_names: Sequence[str]) -> None:
    """Delete the clusters and wait for each to be gone; failures are logged."""
    if not cluster_names:
        logger.info("No EKS clusters to nuke in region %s", session.region)
        return

    client = session.client("eks")
    count = len(cluster_names)
    logger.info("Deleting %d EKS clusters in region %s", count, session.region)

    requested = _delete_eks_clusters(client, cluster_names)
    deleted = _wait_until_eks_clusters_deleted(client, requested)

    logger.info(
        "[OK] %d of %d EKS cluster(s) deleted in %s", len(deleted), count, session.region
    )


@dataclass
class EKSClusters(Resource):
    """All EKS clusters found in a region."""

    resource_name: ClassVar[str] = "ekscluster"
    max_batch_size: ClassVar[int] = 200

    clusters: list[str] = field(default_factory=list)

    @property
    def identifiers(self) -> list[str]:
        return self.clusters

    def nuke(self, session: Session, identifiers: list[str]) -> None:
        nuke_all_eks_clusters(session, list(identifiers))