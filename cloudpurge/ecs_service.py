"""ECS services, found by way of the clusters that run them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, ClassVar, Mapping, Sequence

from cloudpurge.regions import split
from cloudpurge.session import Resource, Session

logger = logging.getLogger("cloudpurge")

# The most services a single describe-services call accepts.
_DESCRIBE_SERVICES_BATCH_SIZE = 10


def get_all_ecs_clusters(session: Session) -> list[str]:
    """Return the ARNs of every ECS cluster in the region, across all pages."""
    client = session.client("ecs")
    output = client.list_clusters()
    cluster_arns = list(output.get("clusterArns", []))
    while output.get("nextToken"):
        output = client.list_clusters(nextToken=output["nextToken"])
        cluster_arns.extend(output.get("clusterArns", []))
    return cluster_arns


def _filter_out_recent_services(
    client: Any, cluster_arn: str, service_arns: Sequence[str], exclude_after: datetime
) -> list[str]:
    filtered: list[str] = []
    for batch in split(service_arns, _DESCRIBE_SERVICES_BATCH_SIZE):
        output = client.describe_services(cluster=cluster_arn, services=batch)
        filtered.extend(
            service["serviceArn"]
            for service in output.get("services", [])
            if exclude_after > service["createdAt"]
        )
    return filtered


def get_all_ecs_services(
    session: Session, cluster_arns: Sequence[str], exclude_after: datetime
) -> tuple[list[str], dict[str, str]]:
    """Return ARNs of services created before ``exclude_after`` in the given clusters.

    Also returns a mapping from each of those service ARNs to its cluster ARN,
    since every service-level call needs the cluster.
    """
    client = session.client("ecs")
    service_arns: list[str] = []
    service_cluster_map: dict[str, str] = {}
    for cluster_arn in cluster_arns:
        output = client.list_services(cluster=cluster_arn)
        filtered = _filter_out_recent_services(
            client, cluster_arn, output.get("serviceArns", []), exclude_after
        )
        for service_arn in filtered:
            service_cluster_map[service_arn] = cluster_arn
        service_arns.extend(filtered)
    return service_arns, service_cluster_map


def _succeeding(
    service_arns: Sequence[str],
    action: Callable[[str], None],
    failure: str,
    success: str | None = None,
) -> list[str]:
    """Run ``action`` on each service, returning those for which it succeeded."""
    done: list[str] = []
    for service_arn in service_arns:
        try:
            action(service_arn)
        except Exception as err:
            logger.error("[Failed] %s %s: %s", failure, service_arn, err)
        else:
            if success:
                logger.info("%s: %s", success, service_arn)
            done.append(service_arn)
    return done


def nuke_all_ecs_services(
    session: Session, service_cluster_map: Mapping[str, str], service_arns: Sequence[str]
) -> None:
    """Drain every service to zero tasks, then delete the drained ones.

    Failures at any step are logged and the service is left behind; nothing
    is raised.
    """
    if not service_arns:
        logger.info("No ECS services to nuke in region %s", session.region)
        return

    client = session.client("ecs")
    count = len(service_arns)
    logger.info("Deleting %d ECS services in region %s", count, session.region)

    def cluster(arn: str) -> str:
        return service_cluster_map.get(arn, "")

    def drain(arn: str) -> None:
        client.update_service(cluster=cluster(arn), service=arn, desiredCount=0)

    def wait_stable(arn: str) -> None:
        client.get_waiter("services_stable").wait(cluster=cluster(arn), services=[arn])

    def delete(arn: str) -> None:
        client.delete_service(cluster=cluster(arn), service=arn)

    def wait_inactive(arn: str) -> None:
        client.get_waiter("services_inactive").wait(cluster=cluster(arn), services=[arn])

    # All drains are requested first, since draining takes a while.
    requested_drains = _succeeding(service_arns, drain, "Failed to drain service")
    drained = _succeeding(
        requested_drains,
        wait_stable,
        "Failed waiting for service to be stable",
        "Drained service",
    )
    requested_deletes = _succeeding(drained, delete, "Failed deleting service")
    deleted = _succeeding(
        requested_deletes,
        wait_inactive,
        "Failed waiting for service to be deleted",
        "Deleted service",
    )

    logger.info(
        "[OK] %d of %d ECS service(s) deleted in %s", len(deleted), count, session.region
    )


@dataclass
class ECSServices(Resource):
    """All ECS services found in a region, with the cluster of each."""

    resource_name: ClassVar[str] = "ecsserv"
    max_batch_size: ClassVar[int] = 200

    services: list[str] = field(default_factory=list)
    service_cluster_map: dict[str, str] = field(default_factory=dict)

    @property
    def identifiers(self) -> list[str]:
        return self.services

    def nuke(self, session: Session, identifiers: list[str]) -> None:
        nuke_all_ecs_services(session, self.service_cluster_map, list(identifiers))