"""Auto Scaling Groups."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar

from cloudpurge.session import Resource, Session

logger = logging.getLogger("cloudpurge")


def get_all_auto_scaling_groups(session: Session, exclude_after: datetime) -> list[str]:
    """Return names of auto scaling groups created before ``exclude_after``."""
    output = session.client("autoscaling").describe_auto_scaling_groups()
    return [
        group["AutoScalingGroupName"]
        for group in output.get("AutoScalingGroups", [])
        if exclude_after > group["CreatedTime"]
    ]


def nuke_all_auto_scaling_groups(session: Session, group_names: list[str]) -> None:
    """Force-delete the named groups and wait until they are gone.

    Failed deletions are logged; a failed wait is raised.
    """
    if not group_names:
        logger.info("No Auto Scaling Groups to nuke in region %s", session.region)
        return

    client = session.client("autoscaling")
    logger.info("Deleting all Auto Scaling Groups in region %s", session.region)
    deleted: list[str] = []
    for name in group_names:
        try:
            client.delete_auto_scaling_group(AutoScalingGroupName=name, ForceDelete=True)
        except Exception as err:
            logger.error("[Failed] %s", err)
        else:
            deleted.append(name)
            logger.info("Deleted Auto Scaling Group: %s", name)

    if deleted:
        try:
            client.get_waiter("group_not_exists").wait(AutoScalingGroupNames=deleted)
        except Exception as err:
            logger.error("[Failed] %s", err)
            raise

    logger.info("[OK] %d Auto Scaling Group(s) deleted in %s", len(deleted), session.region)


@dataclass
class ASGroups(Resource):
    """All auto scaling groups found in a region."""

    resource_name: ClassVar[str] = "asg"
    max_batch_size: ClassVar[int] = 200

    group_names: list[str] = field(default_factory=list)

    @property
    def identifiers(self) -> list[str]:
        return self.group_names

    def nuke(self, session: Session, identifiers: list[str]) -> None:
        nuke_all_auto_scaling_groups(session, list(identifiers))