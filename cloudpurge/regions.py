"""Region discovery and selection, batching and resource-type filters."""

from __future__ import annotations

import logging
import random
from typing import Sequence

from cloudpurge.session import ClientFactory

logger = logging.getLogger("cloudpurge")

# Regions enabled by default on every account; newer regions must be opted into.
OPT_IN_NOT_REQUIRED_REGIONS = (
    "eu-north-1",
    "ap-south-1",
    "eu-west-3",
    "eu-west-2",
    "eu-west-1",
    "ap-northeast-2",
    "ap-northeast-1",
    "sa-east-1",
    "ca-central-1",
    "ap-southeast-1",
    "ap-southeast-2",
    "eu-central-1",
    "us-east-1",
    "us-east-2",
    "us-west-1",
    "us-west-2",
)


class NoEnabledRegionsError(RuntimeError):
    """No default region answered a request to describe regions."""


def _describe_regions(client_factory: ClientFactory) -> dict:
    # A default region may have been disabled by the user, so try a few.
    for _ in OPT_IN_NOT_REQUIRED_REGIONS:
        region = random.choice(OPT_IN_NOT_REQUIRED_REGIONS)
        try:
            return client_factory("ec2", region).describe_regions()
        except Exception:
            continue
    raise NoEnabledRegionsError("could not find any enabled regions")


def get_enabled_regions(client_factory: ClientFactory) -> list[str]:
    """Return the names of all regions enabled for the account."""
    output = _describe_regions(client_factory)
    return [region.get("RegionName", "") for region in output.get("Regions", [])]


def get_random_region(client_factory: ClientFactory) -> str:
    """Return one enabled region chosen at random."""
    regions = get_enabled_regions(client_factory)
    if not regions:
        raise NoEnabledRegionsError("could not find any enabled regions")
    region = random.choice(regions)
    logger.info("Random region chosen: %s", region)
    return region


def split(identifiers: Sequence[str], limit: int) -> list[list[str]]:
    """Cut ``identifiers`` into chunks of at most ``abs(limit)`` items.

    A limit of zero yields the whole sequence as one chunk.
    """
    items = list(identifiers)
    if limit == 0:
        return [items]
    size = abs(limit)
    return [items[start:start + size] for start in range(0, len(items), size)]


def get_target_regions(
    enabled_regions: Sequence[str],
    selected_regions: Sequence[str],
    excluded_regions: Sequence[str],
) -> list[str]:
    """Combine enabled, selected and excluded regions into the regions to act on."""
    if not enabled_regions:
        raise ValueError("Cannot have empty enabled regions")
    if not selected_regions and not excluded_regions:
        return list(enabled_regions)
    if selected_regions and excluded_regions:
        raise ValueError("Cannot specify both selected and excluded regions")

    if selected_regions:
        invalid = [r for r in selected_regions if r not in enabled_regions]
        if invalid:
            raise ValueError(f"Invalid values for region: [{' '.join(invalid)}]")
        return list(selected_regions)

    invalid = [r for r in excluded_regions if r not in enabled_regions]
    if invalid:
        raise ValueError(f"Invalid values for exclude-region: [{' '.join(invalid)}]")

    targets = [r for r in enabled_regions if r not in excluded_regions]
    if not targets:
        raise ValueError(f"Cannot exclude all regions: {' '.join(excluded_regions)}")
    return targets


def is_valid_resource_type(resource_type: str, all_resource_types: Sequence[str]) -> bool:
    """Tell whether ``resource_type`` is one of ``all_resource_types``."""
    return resource_type in all_resource_types


def is_nukeable(resource_type: str, resource_types: Sequence[str]) -> bool:
    """Tell whether resources of ``resource_type`` were asked to be nuked."""
    return not resource_types or "all" in resource_types or resource_type in resource_types