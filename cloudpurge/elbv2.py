"""Application and network load balancers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar

from cloudpurge.session import Resource, Session

logger = logging.getLogger("cloudpurge")


def get_all_elbv2_instances(session: Session, exclude_after: datetime) -> list[str]:
    """Return ARNs of load balancers created before ``exclude_after``."""
    output = session.client("elbv2").describe_load_balancers()
    return [
        balancer["LoadBalancerArn"]
        for balancer in output.get("LoadBalancers", [])
        if exclude_after > balancer["CreatedTime"]
    ]


def nuke_all_elbv2_instances(session: Session, arns: list[str]) -> None:
    """Delete the load balancers and wait until the deleted ones are gone.

    Failed deletions are logged; a failed wait is logged and raised.
    """
    if not arns:
        logger.info("No V2 Elastic Load Balancers to nuke in region %s", session.region)
        return

    client = session.client("elbv2")
    logger.info("Deleting all V2 Elastic Load Balancers in region %s", session.region)
    deleted: list[str] = []
    for arn in arns:
        try:
            client.delete_load_balancer(LoadBalancerArn=arn)
        except Exception as err:
            logger.error("[Failed] %s", err)
        else:
            deleted.append(arn)
            logger.info("Deleted ELBv2: %s", arn)

    if deleted:
        try:
            client.get_waiter("load_balancers_deleted").wait(LoadBalancerArns=deleted)
        except Exception as err:
            logger.error("[Failed] %s", err)
            raise

    logger.info(
        "[OK] %d V2 Elastic Load Balancer(s) deleted in %s", len(deleted), session.region
    )


@dataclass
class LoadBalancersV2(Resource):
    """All v2 load balancers found in a region."""

    resource_name: ClassVar[str] = "elbv2"
    max_batch_size: ClassVar[int] = 200

    arns: list[str] = field(default_factory=list)

    @property
    def identifiers(self) -> list[str]:
        return self.arns

    def nuke(self, session: Session, identifiers: list[str]) -> None:
        nuke_all_elbv2_instances(session, list(identifiers))