"""Classic Elastic Load Balancers."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from cloudpurge.session import Resource, Session, error_code

logger = logging.getLogger("cloudpurge")


class ElbDeleteError(Exception):
    """A load balancer was still present after all wait attempts."""

    def __init__(self) -> None:
        super().__init__("ELB was not deleted")


def wait_until_elb_deleted(
    client: Any, names: list[str], attempts: int = 30, delay: float = 1.0
) -> None:
    """Poll until the named load balancers are reported as not found.

    Raises :class:`ElbDeleteError` when they are still there after ``attempts``
    polls; other errors from the API are raised as they are.
    """
    for _ in range(attempts):
        try:
            client.describe_load_balancers(LoadBalancerNames=list(names))
        except Exception as err:
            if error_code(err) == "LoadBalancerNotFound":
                return
            raise
        time.sleep(delay)
        logger.debug("Waiting for ELB to be deleted")
    raise ElbDeleteError()


def get_all_elb_instances(session: Session, exclude_after: datetime) -> list[str]:
    """Return names of load balancers created before ``exclude_after``."""
    output = session.client("elb").describe_load_balancers()
    return [
        balancer["LoadBalancerName"]
        for balancer in output.get("LoadBalancerDescriptions", [])
        if exclude_after > balancer["CreatedTime"]
    ]


def nuke_all_elb_instances(session: Session, names: list[str]) -> None:
    """Delete the load balancers and wait until the deleted ones are gone.

    Failed deletions are logged; a failed wait is logged and raised.
    """
    if not names:
        logger.info("No Elastic Load Balancers to nuke in region %s", session.region)
        return

    client = session.client("elb")
    logger.info("Deleting all Elastic Load Balancers in region %s", session.region)
    deleted: list[str] = []
    for name in names:
        try:
            client.delete_load_balancer(LoadBalancerName=name)
        except Exception as err:
            logger.error("[Failed] %s", err)
        else:
            deleted.append(name)
            logger.info("Deleted ELB: %s", name)

    if deleted:
        try:
            wait_until_elb_deleted(client, deleted)
        except Exception as err:
            logger.error("[Failed] %s", err)
            raise

    logger.info("[OK] %d Elastic Load Balancer(s) deleted in %s", len(deleted), session.region)


@dataclass
class LoadBalancers(Resource):
    """All classic load balancers found in a region."""

    resource_name: ClassVar[str] = "elb"
    max_batch_size: ClassVar[int] = 200

    names: list[str] = field(default_factory=list)

    @property
    def identifiers(self) -> list[str]:
        return self.names

    def nuke(self, session: Session, identifiers: list[str]) -> None:
        nuke_all_elb_instances(session, list(identifiers))