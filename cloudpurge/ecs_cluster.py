"""ECS clusters, aged by a tag recording when each was first seen."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import ClassVar, Sequence

from cloudpurge.ecs_service import get_all_ecs_clusters
from cloudpurge.eip import FIRST_SEEN_TAG_KEY
from cloudpurge.regions import split
from cloudpurge.session import Resource, Session

logger = logging.getLogger("cloudpurge")

# Only clusters in this state can be tagged, so only they are considered.
ACTIVE_ECS_CLUSTER_STATUS = "ACTIVE"

# The most clusters a single describe-clusters call accepts.
_DESCRIBE_CLUSTERS_BATCH_SIZE = 100

_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))$"
)


def parse_timestamp_tag(timestamp: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware datetime.

    Raises ValueError when the text is not in that format.
    """
    match = _RFC3339.match(timestamp)
    if match is None:
        logger.error("Error parsing the timestamp into a `RFC3339` Time format")
        raise ValueError(f"not an RFC 3339 timestamp: {timestamp!r}")
    year, month, day, hour, minute, second, fraction, zulu, sign, off_h, off_m = (
        match.groups()
    )
    if zulu:
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(off_h), minutes=int(off_m))
        tz = timezone(-offset if sign == "-" else offset)
    microsecond = int((fraction or "").ljust(6, "0")[:6])
    try:
        return datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second),
            microsecond, tzinfo=tz,
        )
    except ValueError:
        logger.error("Error parsing the timestamp into a `RFC3339` Time format")
        raise


def format_timestamp_tag(timestamp: datetime) -> str:
    """Format ``timestamp`` as RFC 3339 at whole seconds; naive times count as UTC."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    offset = timestamp.utcoffset() or timedelta(0)
    text = timestamp.strftime("%Y-%m-%dT%H:%M:%S")
    if offset == timedelta(0):
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = int(abs(offset).total_seconds()) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def get_all_active_ecs_cluster_arns(session: Session) -> list[str]:
    """Return the ARNs of all clusters in the region whose status is ACTIVE."""
    client = session.client("ecs")
    try:
        all_clusters = get_all_ecs_clusters(session)
    except Exception:
        logger.error("Error getting all ECS clusters")
        raise

    active: list[str] = []
    for batch in split(all_clusters, _DESCRIBE_CLUSTERS_BATCH_SIZE):
        try:
            output = client.describe_clusters(clusters=batch)
        except Exception:
            logger.error("Error describing ECS clusters from input %s: ", batch)
            raise
        for cluster in output.get("clusters", []):
            arn = cluster.get("clusterArn", "")
            status = cluster.get("status", "")
            logger.debug("Status for ECS Cluster %s is %s", arn, status)
            if status == ACTIVE_ECS_CLUSTER_STATUS:
                active.append(arn)
    return active


def tag_ecs_cluster_when_first_seen(
    session: Session, cluster_arn: str, timestamp: datetime
) -> None:
    """Record ``timestamp`` as the time the cluster was first seen."""
    session.client("ecs").tag_resource(
        resourceArn=cluster_arn,
        tags=[{"key": FIRST_SEEN_TAG_KEY, "value": format_timestamp_tag(timestamp)}],
    )


def get_first_seen_ecs_cluster_tag(session: Session, cluster_arn: str) -> datetime | None:
    """Return the first-seen time tagged on the cluster, or None if it has none."""
    try:
        output = session.client("ecs").list_tags_for_resource(resourceArn=cluster_arn)
    except Exception:
        logger.error("Error getting the tags for ECS cluster with ARN %s", cluster_arn)
        raise
    for tag in output.get("tags", []):
        if tag.get("key") == FIRST_SEEN_TAG_KEY:
            try:
                return parse_timestamp_tag(tag.get("value", ""))
            except ValueError:
                logger.error(
                    "Error parsing the `%s` tag for ECS cluster with ARN %s",
                    FIRST_SEEN_TAG_KEY,
                    cluster_arn,
                )
                raise
    return None


def get_all_ecs_clusters_older_than(session: Session, exclude_after: datetime) -> list[str]:
    """Return ARNs of active clusters first seen before ``exclude_after``.

    Clusters seen for the first time are tagged with the current time and
    are not returned.
    """
    try:
        cluster_arns = get_all_active_ecs_cluster_arns(session)
    except Exception:
        logger.error("Error getting all ECS clusters with `ACTIVE` status")
        raise

    older: list[str] = []
    for arn in cluster_arns:
        first_seen = get_first_seen_ecs_cluster_tag(session, arn)
        if first_seen is None:
            try:
                tag_ecs_cluster_when_first_seen(session, arn, datetime.now(timezone.utc))
            except Exception:
                logger.error("Error tagging the ECS cluster with ARN %s", arn)
                raise
        elif exclude_after > first_seen:
            older.append(arn)
    return older


def nuke_ecs_clusters(session: Session, cluster_arns: Sequence[str]) -> None:
    """Delete each cluster, stopping at and raising the first failure."""
    count = len(cluster_arns)
    if count == 0:
        logger.info("No ECS clusters to nuke in region %s", session.region)
        return

    client = session.client("ecs")
    logger.info("Deleting %d ECS clusters in region %s", count, session.region)
    nuked = 0
    for arn in cluster_arns:
        try:
            client.delete_cluster(cluster=arn)
        except Exception:
            logger.error("Error, failed to delete cluster with ARN %s", arn)
            raise
        logger.info("Success, deleted cluster: %s", arn)
        nuked += 1

    logger.info("[OK] %d of %d ECS cluster(s) deleted in %s", nuked, count, session.region)


@dataclass
class ECSClusters(Resource):
    """All ECS clusters found in a region."""

    resource_name: ClassVar[str] = "ecscluster"
    # No documented limit applies here, so a safe maximum is used.
    max_batch_size: ClassVar[int] = 100

    cluster_arns: list[str] = field(default_factory=list)

    @property
    def identifiers(self) -> list[str]:
        return self.cluster_arns

    def nuke(self, session: Session, identifiers: list[str]) -> None:
        nuke_ecs_clusters(session, list(identifiers))