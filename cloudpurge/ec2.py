"""EC2 instances that are not protected against termination."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from cloudpurge.session import ClientFactory, Resource, Session

logger = logging.getLogger("cloudpurge")

_LISTED_STATES = ["running", "pending", "stopped", "stopping"]


def _is_protected(client: Any, instance_id: str) -> bool:
    attribute = client.describe_instance_attribute(
        Attribute="disableApiTermination", InstanceId=instance_id
    )
    return bool(attribute["DisableApiTermination"]["Value"])


def _unprotected_instance_ids(
    client: Any, output: dict, exclude_after: datetime
) -> list[str]:
    return [
        instance["InstanceId"]
        for reservation in output.get("Reservations", [])
        for instance in reservation.get("Instances", [])
        if not _is_protected(client, instance["InstanceId"])
        and exclude_after > instance["LaunchTime"]
    ]


def get_all_ec2_instances(session: Session, exclude_after: datetime) -> list[str]:
    """Return ids of unprotected live instances launched before ``exclude_after``."""
    client = session.client("ec2")
    output = client.describe_instances(
        Filters=[{"Name": "instance-state-name", "Values": list(_LISTED_STATES)}]
    )
    return _unprotected_instance_ids(client, output, exclude_after)


def nuke_all_ec2_instances(session: Session, instance_ids: list[str]) -> None:
    """Terminate the instances and wait until they are terminated.

    A failed termination request or a failed wait is logged and raised.
    """
    if not instance_ids:
        logger.info("No EC2 instances to nuke in region %s", session.region)
        return

    client = session.client("ec2")
    logger.info("Terminating all EC2 instances in region %s", session.region)

    try:
        client.terminate_instances(InstanceIds=list(instance_ids))
    except Exception as err:
        logger.error("[Failed] %s", err)
        raise

    wait_error: Exception | None = None
    try:
        client.get_waiter("instance_terminated").wait(
            Filters=[{"Name": "instance-id", "Values": list(instance_ids)}]
        )
    except Exception as err:
        wait_error = err

    for instance_id in instance_ids:
        logger.info("Terminated EC2 Instance: %s", instance_id)

    if wait_error is not None:
        logger.error("[Failed] %s", wait_error)
        raise wait_error

    logger.info("[OK] %d instance(s) terminated in %s", len(instance_ids), session.region)


def get_ec2_service_client(region: str, client_factory: ClientFactory) -> Any:
    """Return an EC2 client for ``region``."""
    return client_factory("ec2", region)


@dataclass
class EC2Instances(Resource):
    """All unprotected EC2 instances found in a region."""

    resource_name: ClassVar[str] = "ec2"
    max_batch_size: ClassVar[int] = 200

    instance_ids: list[str] = field(default_factory=list)

    @property
    def identifiers(self) -> list[str]:
        return self.instance_ids

    def nuke(self, session: Session, identifiers: list[str]) -> None:
        nuke_all_ec2_instances(session, list(identifiers))