import pytest

from cloudpurge.session import ApiError
from cloudpurge.vpc import (
    DefaultSecurityGroup,
    DefaultVpcError,
    Vpc,
    describe_default_security_groups,
    get_default_security_groups,
    get_default_vpc_id,
    get_default_vpcs,
    new_vpc_per_region,
    nuke_default_security_group_rules,
    nuke_vpcs,
)

ExampleId = "a1b2c3d4e5f601345"
ExampleIdTwo = "a1b2c3d4e5f654321"
ExampleIdThree = "a1b2c3d4e5f632154"
ExampleVpcId = "vpc-" + ExampleId
ExampleVpcIdTwo = "vpc-" + ExampleIdTwo
ExampleSubnetId = "subnet-" + ExampleId
ExampleSubnetIdTwo = "subnet-" + ExampleIdTwo
ExampleRouteTableId = "rtb-" + ExampleId
ExampleNetworkAclId = "acl-" + ExampleId
ExampleSecurityGroupId = "sg-" + ExampleId
ExampleSecurityGroupIdTwo = "sg-" + ExampleIdTwo
ExampleSecurityGroupIdThree = "sg-" + ExampleIdThree
ExampleInternetGatewayId = "igw-" + ExampleId


class FakeClient:
    def __init__(self, responses=None, errors=None):
        self.responses = responses or {}
        self.errors = errors or {}
        self.calls = []

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        def call(**kwargs):
            self.calls.append((name, kwargs))
            if name in self.errors:
                raise self.errors[name]
            return self.responses.get(name, {})

        return call

    def names(self):
        return [name for name, _ in self.calls]


def full_vpc_client():
    return FakeClient(
        responses={
            "describe_internet_gateways": {
                "InternetGateways": [{"InternetGatewayId": ExampleInternetGatewayId}]
            },
            "describe_subnets": {
                "Subnets": [{"SubnetId": ExampleSubnetId}, {"SubnetId": ExampleSubnetIdTwo}]
            },
            "describe_route_tables": {
                "RouteTables": [
                    {"RouteTableId": "rtb-main", "Associations": [{"Main": True}]},
                    {"RouteTableId": ExampleRouteTableId, "Associations": []},
                ]
            },
            "describe_network_acls": {"NetworkAcls": [{"NetworkAclId": ExampleNetworkAclId}]},
            "describe_security_groups": {
                "SecurityGroups": [
                    {"GroupId": ExampleSecurityGroupId, "GroupName": "default"},
                    {"GroupId": ExampleSecurityGroupIdTwo, "GroupName": "web"},
                ]
            },
        }
    )


def test_default_vpc_id_found():
    client = FakeClient(responses={"describe_vpcs": {"Vpcs": [{"VpcId": ExampleVpcId}]}})
    assert get_default_vpc_id(Vpc(region="us-east-1", client=client)) == ExampleVpcId
    assert client.calls[0][1]["Filters"] == [{"Name": "isDefault", "Values": ["true"]}]


def test_default_vpc_id_absent():
    client = FakeClient(responses={"describe_vpcs": {"Vpcs": []}})
    assert get_default_vpc_id(Vpc(region="us-east-1", client=client)) == ""


def test_more_than_one_default_vpc_is_an_error():
    client = FakeClient(
        responses={"describe_vpcs": {"Vpcs": [{"VpcId": ExampleVpcId}, {"VpcId": ExampleVpcIdTwo}]}}
    )
    with pytest.raises(DefaultVpcError):
        get_default_vpc_id(Vpc(region="us-east-1", client=client))


def test_default_vpc_id_api_error_propagates():
    client = FakeClient(errors={"describe_vpcs": ApiError("AuthFailure")})
    with pytest.raises(ApiError):
        get_default_vpc_id(Vpc(region="us-east-1", client=client))


def test_get_default_vpcs_skips_regions_without_one():
    with_default = FakeClient(responses={"describe_vpcs": {"Vpcs": [{"VpcId": ExampleVpcId}]}})
    without_default = FakeClient(responses={"describe_vpcs": {"Vpcs": []}})
    vpcs = [
        Vpc(region="us-east-1", client=with_default),
        Vpc(region="us-west-1", client=without_default),
    ]
    result = get_default_vpcs(vpcs)
    assert [(vpc.region, vpc.vpc_id) for vpc in result] == [("us-east-1", ExampleVpcId)]
    assert result[0].client is with_default


def test_new_vpc_per_region_builds_ec2_clients():
    seen = []
    vpcs = new_vpc_per_region(
        ["us-east-1", "us-west-2"], lambda service, region: seen.append((service, region)) or region
    )
    assert [vpc.region for vpc in vpcs] == ["us-east-1", "us-west-2"]
    assert seen == [("ec2", "us-east-1"), ("ec2", "us-west-2")]
    assert all(vpc.vpc_id == "" for vpc in vpcs)


def test_vpc_nuke_removes_dependencies_then_vpc():
    client = full_vpc_client()
    Vpc(region="us-east-1", client=client, vpc_id=ExampleVpcId).nuke()
    calls = client.calls
    assert ("detach_internet_gateway", {"InternetGatewayId": ExampleInternetGatewayId, "VpcId": ExampleVpcId}) in calls
    assert ("delete_internet_gateway", {"InternetGatewayId": ExampleInternetGatewayId}) in calls
    assert ("delete_subnet", {"SubnetId": ExampleSubnetId}) in calls
    assert ("delete_subnet", {"SubnetId": ExampleSubnetIdTwo}) in calls
    assert [kw for name, kw in calls if name == "delete_route_table"] == [{"RouteTableId": ExampleRouteTableId}]
    assert ("delete_network_acl", {"NetworkAclId": ExampleNetworkAclId}) in calls
    assert [kw for name, kw in calls if name == "delete_security_group"] == [{"GroupId": ExampleSecurityGroupIdTwo}]
    assert calls[-1] == ("delete_vpc", {"VpcId": ExampleVpcId})


def test_vpc_nuke_without_gateway_or_subnets():
    client = FakeClient()
    Vpc(region="us-east-1", client=client, vpc_id=ExampleVpcId).nuke()
    names = client.names()
    assert "detach_internet_gateway" not in names
    assert "delete_subnet" not in names
    assert names[-1] == "delete_vpc"


def test_vpc_nuke_stops_on_failure():
    client = full_vpc_client()
    client.errors["delete_subnet"] = ApiError("DependencyViolation")
    with pytest.raises(ApiError):
        Vpc(region="us-east-1", client=client, vpc_id=ExampleVpcId).nuke()
    assert "delete_vpc" not in client.names()


def test_nuke_vpcs_continues_after_failure():
    failing = full_vpc_client()
    failing.errors["delete_vpc"] = ApiError("DependencyViolation")
    working = FakeClient()
    nuke_vpcs([
        Vpc(region="us-east-1", client=failing, vpc_id=ExampleVpcId),
        Vpc(region="us-west-1", client=working, vpc_id=ExampleVpcIdTwo),
    ])
    assert working.calls[-1] == ("delete_vpc", {"VpcId": ExampleVpcIdTwo})


def test_describe_default_security_groups():
    client = FakeClient(
        responses={
            "describe_security_groups": {
                "SecurityGroups": [
                    {"GroupId": ExampleSecurityGroupId, "GroupName": "default"},
                    {"GroupId": ExampleSecurityGroupIdTwo, "GroupName": "web"},
                    {"GroupId": ExampleSecurityGroupIdThree, "GroupName": "default"},
                ]
            }
        }
    )
    assert describe_default_security_groups(client) == [
        ExampleSecurityGroupId,
        ExampleSecurityGroupIdThree,
    ]


def test_get_default_security_groups_per_region():
    clients = {
        "us-east-1": FakeClient(
            responses={"describe_security_groups": {"SecurityGroups": [
                {"GroupId": ExampleSecurityGroupId, "GroupName": "default"}]}}
        ),
        "us-west-1": FakeClient(
            responses={"describe_security_groups": {"SecurityGroups": [
                {"GroupId": ExampleSecurityGroupIdTwo, "GroupName": "default"}]}}
        ),
    }
    groups = get_default_security_groups(["us-east-1", "us-west-1"], lambda service, region: clients[region])
    assert [(g.group_id, g.region, g.group_name) for g in groups] == [
        (ExampleSecurityGroupId, "us-east-1", "default"),
        (ExampleSecurityGroupIdTwo, "us-west-1", "default"),
    ]
    assert groups[1].client is clients["us-west-1"]


def test_get_default_security_groups_raises_on_api_error():
    client = FakeClient(errors={"describe_security_groups": ApiError("AuthFailure")})
    with pytest.raises(ApiError):
        get_default_security_groups(["us-east-1"], lambda service, region: client)


def test_rules_match_default_rules():
    group = DefaultSecurityGroup(group_id=ExampleSecurityGroupId, region="us-east-1", client=None)
    ingress = group.ingress_rule()["IpPermissions"][0]
    egress = group.egress_rule()["IpPermissions"][0]
    assert group.ingress_rule()["GroupId"] == ExampleSecurityGroupId
    assert ingress["IpProtocol"] == "-1"
    assert ingress["UserIdGroupPairs"] == [{"GroupId": ExampleSecurityGroupId}]
    assert egress["IpRanges"] == [{"CidrIp": "0.0.0.0/0"}]
    assert (egress["FromPort"], egress["ToPort"]) == (0, 0)


def test_security_group_nuke_revokes_both_rules():
    client = FakeClient()
    group = DefaultSecurityGroup(group_id=ExampleSecurityGroupId, region="us-east-1", client=client)
    group.nuke()
    assert client.calls == [
        ("revoke_security_group_ingress", group.ingress_rule()),
        ("revoke_security_group_egress", group.egress_rule()),
    ]


def test_security_group_nuke_ignores_missing_rules():
    client = FakeClient(errors={
        "revoke_security_group_ingress": ApiError("InvalidPermission.NotFound"),
        "revoke_security_group_egress": ApiError("InvalidPermission.NotFound"),
    })
    group = DefaultSecurityGroup(group_id=ExampleSecurityGroupId, region="us-east-1", client=client)
    group.nuke()
    assert client.names() == ["revoke_security_group_ingress", "revoke_security_group_egress"]


def test_security_group_nuke_raises_other_errors():
    client = FakeClient(errors={"revoke_security_group_ingress": ApiError("AuthFailure")})
    group = DefaultSecurityGroup(group_id=ExampleSecurityGroupId, region="us-east-1", client=client)
    with pytest.raises(RuntimeError, match="error deleting ingress rule"):
        group.nuke()


def test_non_default_group_is_left_alone():
    client = FakeClient()
    DefaultSecurityGroup(
        group_id=ExampleSecurityGroupId, region="us-east-1", client=client, group_name="web"
    ).nuke()
    assert client.calls == []


def test_nuke_default_rules_continues_after_failure():
    failing = FakeClient(errors={"revoke_security_group_ingress": ApiError("AuthFailure")})
    working = FakeClient()
    nuke_default_security_group_rules([
        DefaultSecurityGroup(group_id=ExampleSecurityGroupId, region="us-east-1", client=failing),
        DefaultSecurityGroup(group_id=ExampleSecurityGroupIdTwo, region="us-west-1", client=working),
    ])
    assert working.names() == ["revoke_security_group_ingress", "revoke_security_group_egress"]