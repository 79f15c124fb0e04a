"""EBS volumes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar

from cloudpurge.session import Resource, Session, error_code

logger = logging.getLogger("cloudpurge")


def get_all_ebs_volumes(session: Session, exclude_after: datetime) -> list[str]:
    """Return ids of volumes created before ``exclude_after``."""
    output = session.client("ec2").describe_volumes()
    return [
        volume["VolumeId"]
        for volume in output.get("Volumes", [])
        if exclude_after > volume["CreateTime"]
    ]


def nuke_all_ebs_volumes(session: Session, volume_ids: list[str]) -> None:
    """Delete the volumes and wait until the deleted ones are gone.

    Volumes still in use or already gone are logged and skipped; other
    deletion failures are logged. A failed wait is logged and raised.
    """
    if not volume_ids:
        logger.info("No EBS volumes to nuke in region %s", session.region)
        return

    client = session.client("ec2")
    logger.info("Deleting all EBS volumes in region %s", session.region)
    deleted: list[str] = []
    for volume_id in volume_ids:
        try:
            client.delete_volume(VolumeId=volume_id)
        except Exception as err:
            code = error_code(err)
            if code == "VolumeInUse":
                logger.warning(
                    "EBS volume %s can't be deleted, it is still attached to an active resource",
                    volume_id,
                )
            elif code == "InvalidVolume.NotFound":
                logger.info("EBS volume %s has already been deleted", volume_id)
            else:
                logger.error("[Failed] %s", err)
        else:
            deleted.append(volume_id)
            logger.info("Deleted EBS Volume: %s", volume_id)

    if deleted:
        try:
            client.get_waiter("volume_deleted").wait(VolumeIds=deleted)
        except Exception as err:
            logger.error("[Failed] %s", err)
            raise

    logger.info("[OK] %d EBS volumes(s) terminated in %s", len(deleted), session.region)


@dataclass
class EBSVolumes(Resource):
    """All EBS volumes found in a region."""

    resource_name: ClassVar[str] = "ebs"
    max_batch_size: ClassVar[int] = 200

    volume_ids: list[str] = field(default_factory=list)

    @property
    def identifiers(self) -> list[str]:
        return self.volume_ids

    def nuke(self, session: Session, identifiers: list[str]) -> None:
        nuke_all_ebs_volumes(session, list(identifiers))