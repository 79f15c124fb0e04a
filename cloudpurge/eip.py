"""Elastic IP addresses."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

from cloudpurge.session import Resource, Session, error_code

logger = logging.getLogger("cloudpurge")

FIRST_SEEN_TAG_KEY = "cloud-nuke-first-seen"
FIRST_SEEN_LAYOUT = "%Y-%m-%d %H:%M:%S"


def set_first_seen_tag(
    client: Any, address: dict, key: str, value: datetime, layout: str = FIRST_SEEN_LAYOUT
) -> None:
    """Tag ``address`` with ``value`` formatted by ``layout``.

    Elastic IPs carry no creation time, so the first sighting is recorded instead.
    """
    client.create_tags(
        Resources=[address["AllocationId"]],
        Tags=[{"Key": key, "Value": value.strftime(layout)}],
    )


def get_first_seen_tag(
    address: dict, key: str, layout: str = FIRST_SEEN_LAYOUT
) -> datetime | None:
    """Return the time stored under ``key`` on ``address``, or None if untagged."""
    for tag in address.get("Tags") or []:
        if tag["Key"] == key:
            return datetime.strptime(tag["Value"], layout).replace(tzinfo=timezone.utc)
    return None


def get_all_eip_addresses(session: Session, exclude_after: datetime) -> list[str]:
    """Return allocation ids of addresses first seen before ``exclude_after``.

    Addresses seen for the first time are tagged with the current time.
    """
    client = session.client("ec2")
    output = client.describe_addresses()
    allocation_ids = []
    for address in output.get("Addresses", []):
        first_seen = get_first_seen_tag(address, FIRST_SEEN_TAG_KEY)
        if first_seen is None:
            first_seen = datetime.now(timezone.utc)
            set_first_seen_tag(client, address, FIRST_SEEN_TAG_KEY, first_seen)
        if exclude_after > first_seen:
            allocation_ids.append(address["AllocationId"])
    return allocation_ids


def nuke_all_eip_addresses(session: Session, allocation_ids: list[str]) -> None:
    """Release every address; failures are logged, not raised."""
    if not allocation_ids:
        logger.info("No Elastic IPs to nuke in region %s", session.region)
        return

    client = session.client("ec2")
    logger.info("Deleting all Elastic IPs in region %s", session.region)
    deleted = 0
    for allocation_id in allocation_ids:
        try:
            client.release_address(AllocationId=allocation_id)
        except Exception as err:
            if error_code(err) == "AuthFailure":
                logger.warning(
                    "EIP %s can't be deleted, it is still attached to an active resource",
                    allocation_id,
                )
            else:
                logger.error("[Failed] %s", err)
        else:
            deleted += 1
            logger.info("Deleted Elastic IP: %s", allocation_id)

    logger.info("[OK] %d Elastic IP(s) deleted in %s", deleted, session.region)


@dataclass
class EIPAddresses(Resource):
    """All Elastic IP addresses found in a region."""

    resource_name: ClassVar[str] = "eip"
    max_batch_size: ClassVar[int] = 200

    allocation_ids: list[str] = field(default_factory=list)

    @property
    def identifiers(self) -> list[str]:
        return self.allocation_ids

    def nuke(self, session: Session, identifiers: list[str]) -> None:
        nuke_all_eip_addresses(session, list(identifiers))