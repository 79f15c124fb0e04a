"""Amazon Machine Images owned by the account."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import ClassVar

from cloudpurge.session import Resource, Session

logger = logging.getLogger("cloudpurge")

_CREATION_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class ImageAvailableError(Exception):
    """An image did not become available in the allowed number of attempts."""

    def __init__(self) -> None:
        super().__init__("Image didn't become available within wait attempts")


def _parse_creation_date(value: str) -> datetime:
    return datetime.strptime(value, _CREATION_DATE_FORMAT).replace(tzinfo=timezone.utc)


def get_all_amis(session: Session, exclude_after: datetime) -> list[str]:
    """Return ids of self-owned images created before ``exclude_after``."""
    output = session.client("ec2").describe_images(Owners=["self"])
    return [
        image["ImageId"]
        for image in output.get("Images", [])
        if exclude_after > _parse_creation_date(image["CreationDate"])
    ]


def nuke_all_amis(session: Session, image_ids: list[str]) -> None:
    """Deregister every image in ``image_ids``; failures are logged, not raised."""
    if not image_ids:
        logger.info("No AMIs to nuke in region %s", session.region)
        return

    client = session.client("ec2")
    logger.info("Deleting all AMIs in region %s", session.region)
    for image_id in image_ids:
        try:
            client.deregister_image(ImageId=image_id)
        except Exception as err:
            logger.error("[Failed] %s", err)
        else:
            logger.info("Deleted AMI: %s", image_id)

    logger.info("[OK] %d AMI(s) terminated in %s", len(image_ids), session.region)


@dataclass
class AMIs(Resource):
    """All user-owned AMIs found in a region."""

    resource_name: ClassVar[str] = "ami"
    max_batch_size: ClassVar[int] = 200

    image_ids: list[str] = field(default_factory=list)

    @property
    def identifiers(self) -> list[str]:
        return self.image_ids

    def nuke(self, session: Session, identifiers: list[str]) -> None:
        nuke_all_amis(session, list(identifiers))