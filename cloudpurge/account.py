"""Collecting every nukeable resource of an account and nuking them in batches."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence

from cloudpurge.ami import AMIs, get_all_amis
from cloudpurge.asg import ASGroups, get_all_auto_scaling_groups
from cloudpurge.ebs import EBSVolumes, get_all_ebs_volumes
from cloudpurge.ec2 import EC2Instances, get_all_ec2_instances
from cloudpurge.ecs_cluster import ECSClusters, get_all_ecs_clusters_older_than
from cloudpurge.ecs_service import ECSServices, get_all_ecs_clusters, get_all_ecs_services
from cloudpurge.eip import EIPAddresses, get_all_eip_addresses
from cloudpurge.eks import EKSClusters, eks_supported_region, get_all_eks_clusters
from cloudpurge.elb import LoadBalancers, get_all_elb_instances
from cloudpurge.elbv2 import LoadBalancersV2, get_all_elbv2_instances
from cloudpurge.regions import is_nukeable, split
from cloudpurge.session import ClientFactory, Resource, Session, new_session

logger = logging.getLogger("cloudpurge")

_RESOURCE_CLASSES: tuple[type[Resource], ...] = (
    ASGroups,
    LoadBalancers,
    LoadBalancersV2,
    EC2Instances,
    EBSVolumes,
    EIPAddresses,
    AMIs,
    ECSClusters,
    ECSServices,
    EKSClusters,
)

_RATE_LIMIT_PAUSE = 60.0
_BATCH_PAUSE = 10.0


@dataclass
class RegionResources:
    """The resources found in one region, in the order they must be nuked."""

    resources: list[Resource] = field(default_factory=list)


@dataclass
class AccountResources:
    """The resources found in an account, by region."""

    resources: dict[str, RegionResources] = field(default_factory=dict)


def _collect_region(
    session: Session, exclude_after: datetime, resource_types: Sequence[str]
) -> RegionResources:
    found = RegionResources()
    region = session.region

    # The order matters because of dependencies between resources.
    simple = (
        (ASGroups, "group_names", get_all_auto_scaling_groups),
        (LoadBalancers, "names", get_all_elb_instances),
        (LoadBalancersV2, "arns", get_all_elbv2_instances),
        (EC2Instances, "instance_ids", get_all_ec2_instances),
        (EBSVolumes, "volume_ids", get_all_ebs_volumes),
        (EIPAddresses, "allocation_ids", get_all_eip_addresses),
        (AMIs, "image_ids", get_all_amis),
    )
    for cls, attribute, lister in simple:
        if is_nukeable(cls.resource_name, resource_types):
            identifiers = lister(session, exclude_after)
            if identifiers:
                found.resources.append(cls(**{attribute: list(identifiers)}))

    if is_nukeable(ECSServices.resource_name, resource_types):
        cluster_arns = get_all_ecs_clusters(session)
        if cluster_arns:
            services, service_cluster_map = get_all_ecs_services(
                session, cluster_arns, exclude_after
            )
            found.resources.append(
                ECSServices(services=services, service_cluster_map=service_cluster_map)
            )

    if is_nukeable(ECSClusters.resource_name, resource_types):
        cluster_arns = get_all_ecs_clusters_older_than(session, exclude_after)
        if cluster_arns:
            found.resources.append(ECSClusters(cluster_arns=cluster_arns))

    if is_nukeable(EKSClusters.resource_name, resource_types) and eks_supported_region(
        region
    ):
        names = get_all_eks_clusters(session, exclude_after)
        if names:
            found.resources.append(EKSClusters(clusters=names))

    return found


def get_all_resources(
    target_regions: Sequence[str],
    exclude_after: datetime,
    resource_types: Sequence[str],
    client_factory: ClientFactory,
) -> AccountResources:
    """List the nukeable resources created before ``exclude_after`` in every region.

    Regions in which nothing was found are left out of the result.
    """
    account = AccountResources()
    total = len(target_regions)
    for count, region in enumerate(target_regions, start=1):
        logger.info("Checking region [%d/%d]: %s", count, total, region)
        session = new_session(region, client_factory)
        found = _collect_region(session, exclude_after, resource_types)
        if found.resources:
            account.resources[region] = found
    return account


def list_resource_types() -> list[str]:
    """Return the sorted names of the resource types that can be selected."""
    return sorted(cls.resource_name for cls in _RESOURCE_CLASSES)


def nuke_all_resources(
    account: AccountResources,
    regions: Sequence[str],
    client_factory: ClientFactory,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Nuke every resource of ``account`` in ``regions``, batch by batch.

    A batch hitting the request limit is skipped after a one-minute pause;
    any other failure is raised.
    """
    for region in regions:
        session = new_session(region, client_factory)
        found = account.resources.get(region, RegionResources())
        for resources in found.resources:
            identifiers = resources.identifiers
            logger.info("Terminating %d resources in batches", len(identifiers))
            batches = split(identifiers, resources.max_batch_size)
            last = len(batches) - 1
            for index, batch in enumerate(batches):
                try:
                    resources.nuke(session, batch)
                except Exception as err:
                    if "RequestLimitExceeded" in str(err):
                        logger.info(
                            "Request limit reached. Waiting 1 minute before making new requests"
                        )
                        sleep(_RATE_LIMIT_PAUSE)
                        continue
                    raise
                if index != last:
                    logger.info("Sleeping for 10 seconds before processing next batch...")
                    sleep(_BATCH_PAUSE)