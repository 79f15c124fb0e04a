"""Default VPCs and the default rules of default security groups."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from cloudpurge.ec2 import get_ec2_service_client
from cloudpurge.session import ClientFactory, error_code

logger = logging.getLogger("cloudpurge")


class DefaultVpcError(RuntimeError):
    """A region reported more than one default VPC."""


def _vpc_filter(vpc_id: str) -> dict:
    return {"Name": "vpc-id", "Values": [vpc_id]}


@dataclass
class Vpc:
    """A VPC in a region, together with the EC2 client used to manage it."""

    region: str
    client: Any = field(repr=False, compare=False)
    vpc_id: str = ""

    def _nuke_internet_gateway(self) -> None:
        output = self.client.describe_internet_gateways(
            Filters=[{"Name": "attachment.vpc-id", "Values": [self.vpc_id]}]
        )
        gateways = output.get("InternetGateways", [])
        if len(gateways) != 1:
            logger.info("...no Internet Gateway found")
            return
        gateway_id = gateways[0]["InternetGatewayId"]
        logger.info("...detaching Internet Gateway %s", gateway_id)
        self.client.detach_internet_gateway(InternetGatewayId=gateway_id, VpcId=self.vpc_id)
        logger.info("...deleting Internet Gateway %s", gateway_id)
        self.client.delete_internet_gateway(InternetGatewayId=gateway_id)

    def _nuke_subnets(self) -> None:
        subnets = self.client.describe_subnets(Filters=[_vpc_filter(self.vpc_id)]).get(
            "Subnets", []
        )
        if not subnets:
            logger.info("...no subnets found")
            return
        for subnet in subnets:
            logger.info("...deleting subnet %s", subnet["SubnetId"])
            self.client.delete_subnet(SubnetId=subnet["SubnetId"])

    def _nuke_route_tables(self) -> None:
        output = self.client.describe_route_tables(Filters=[_vpc_filter(self.vpc_id)])
        for table in output.get("RouteTables", []):
            associations = table.get("Associations") or []
            if associations and associations[0].get("Main"):
                continue
            logger.info("...deleting route table %s", table["RouteTableId"])
            self.client.delete_route_table(RouteTableId=table["RouteTableId"])

    def _nuke_nacls(self) -> None:
        output = self.client.describe_network_acls(
            Filters=[
                {"Name": "default", "Values": ["false"]},
                _vpc_filter(self.vpc_id),
            ]
        )
        for acl in output.get("NetworkAcls", []):
            logger.info("...deleting Network ACL %s", acl["NetworkAclId"])
            self.client.delete_network_acl(NetworkAclId=acl["NetworkAclId"])

    def _nuke_security_groups(self) -> None:
        output = self.client.describe_security_groups(Filters=[_vpc_filter(self.vpc_id)])
        for group in output.get("SecurityGroups", []):
            logger.info("...deleting Security Group %s", group["GroupId"])
            if group["GroupName"] != "default":
                self.client.delete_security_group(GroupId=group["GroupId"])

    def _nuke_vpc(self) -> None:
        logger.info("...deleting VPC %s", self.vpc_id)
        self.client.delete_vpc(VpcId=self.vpc_id)

    def nuke(self) -> None:
        """Delete the VPC after removing everything that depends on it."""
        logger.info("Nuking VPC %s in region %s", self.vpc_id, self.region)
        steps = (
            ("Internet Gateway", self._nuke_internet_gateway),
            ("Subnets", self._nuke_subnets),
            ("Route Tables", self._nuke_route_tables),
            ("Network ACLs", self._nuke_nacls),
            ("Security Groups", self._nuke_security_groups),
        )
        for label, step in steps:
            try:
                step()
            except Exception as err:
                logger.error("Error cleaning up %s for VPC %s: %s", label, self.vpc_id, err)
                raise
        try:
            self._nuke_vpc()
        except Exception as err:
            logger.info("Error deleting VPC %s: %s ", self.vpc_id, err)
            raise


def new_vpc_per_region(regions: Sequence[str], client_factory: ClientFactory) -> list[Vpc]:
    """Create one VPC record per region, each with its own EC2 client."""
    return [
        Vpc(region=region, client=get_ec2_service_client(region, client_factory))
        for region in regions
    ]


def get_default_vpc_id(vpc: Vpc) -> str:
    """Return the id of the default VPC in ``vpc``'s region, or "" if there is none."""
    try:
        output = vpc.client.describe_vpcs(Filters=[{"Name": "isDefault", "Values": ["true"]}])
    except Exception as err:
        logger.error("[Failed] %s", err)
        raise
    vpcs = output.get("Vpcs", [])
    if len(vpcs) > 1:
        raise DefaultVpcError(
            f"Impossible - more than one default VPC found in region {vpc.region}"
        )
    return vpcs[0].get("VpcId", "") if vpcs else ""


def get_default_vpcs(vpcs: Sequence[Vpc]) -> list[Vpc]:
    """Return copies of ``vpcs`` filled in with their default VPC ids.

    Regions without a default VPC are left out.
    """
    found = []
    for vpc in vpcs:
        vpc_id = get_default_vpc_id(vpc)
        if vpc_id:
            found.append(dataclasses.replace(vpc, vpc_id=vpc_id))
    return found


def nuke_vpcs(vpcs: Sequence[Vpc]) -> None:
    """Nuke each VPC, logging and skipping those that fail."""
    for vpc in vpcs:
        try:
            vpc.nuke()
        except Exception:
            logger.error("Skipping to the next default VPC")
    logger.info("Finished nuking default VPCs in all regions")


@dataclass
class DefaultSecurityGroup:
    """A default security group, together with the EC2 client of its region."""

    group_id: str
    region: str
    client: Any = field(repr=False, compare=False)
    group_name: str = "default"

    def ingress_rule(self) -> dict:
        """The parameters revoking the default ingress rule."""
        return {
            "GroupId": self.group_id,
            "IpPermissions": [
                {
                    "IpProtocol": "-1",
                    "FromPort": 0,
                    "ToPort": 0,
                    "UserIdGroupPairs": [{"GroupId": self.group_id}],
                }
            ],
        }

    def egress_rule(self) -> dict:
        """The parameters revoking the default egress rule."""
        return {
            "GroupId": self.group_id,
            "IpPermissions": [
                {
                    "IpProtocol": "-1",
                    "FromPort": 0,
                    "ToPort": 0,
                    "IpRanges": [{"CidrIp": "0.0.0.0/0"}],
                }
            ],
        }

    def nuke(self) -> None:
        """Revoke the default ingress and egress rules; missing rules are fine."""
        logger.info("...revoking default rules from Security Group %s", self.group_id)
        if self.group_name != "default":
            return
        try:
            self.client.revoke_security_group_ingress(**self.ingress_rule())
        except Exception as err:
            if error_code(err) != "InvalidPermission.NotFound":
                raise RuntimeError(f"error deleting ingress rule: {err}") from err
            logger.info("Ingress rule not present (ok)")
        try:
            self.client.revoke_security_group_egress(**self.egress_rule())
        except Exception as err:
            if error_code(err) != "InvalidPermission.NotFound":
                raise RuntimeError(f"error deleting egress rule: {err}") from err
            logger.info("Egress rule not present (ok)")


def describe_default_security_groups(client: Any) -> list[str]:
    """Return the ids of all security groups named "default"."""
    output = client.describe_security_groups()
    return [
        group["GroupId"]
        for group in output.get("SecurityGroups", [])
        if group["GroupName"] == "default"
    ]


def get_default_security_groups(
    regions: Sequence[str], client_factory: ClientFactory
) -> list[DefaultSecurityGroup]:
    """Return the default security groups of every region."""
    groups = []
    for region in regions:
        client = get_ec2_service_client(region, client_factory)
        groups.extend(
            DefaultSecurityGroup(group_id=group_id, region=region, client=client)
            for group_id in describe_default_security_groups(client)
        )
    return groups


def nuke_default_security_group_rules(security_groups: Sequence[DefaultSecurityGroup]) -> None:
    """Revoke default rules from each group, logging and skipping failures."""
    for group in security_groups:
        try:
            group.nuke()
        except Exception as err:
            logger.error("Error: %s", err)
            logger.error("Skipping to the next default Security Group")
    logger.info("Finished nuking default Security Groups in all regions")