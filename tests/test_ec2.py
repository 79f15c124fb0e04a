from datetime import datetime, timedelta, timezone

import pytest

from cloudpurge.ec2 import (
    EC2Instances,
    get_all_ec2_instances,
    get_ec2_service_client,
    nuke_all_ec2_instances,
)
from cloudpurge.session import ApiError, Session

NOW = datetime(2020, 1, 1, 12, 0, tzinfo=timezone.utc)
ExampleId = "a1b2c3d4e5f601345"
ExampleIdTwo = "a1b2c3d4e5f654321"
INSTANCE = "i-" + ExampleId
PROTECTED = "i-" + ExampleIdTwo


class FakeWaiter:
    def __init__(self, client, name):
        self.client = client
        self.name = name

    def wait(self, **kwargs):
        self.client.waits.append((self.name, kwargs))
        if self.client.wait_error is not None:
            raise self.client.wait_error


class FakeClient:
    def __init__(self, responses=None, errors=None, wait_error=None):
        self.responses = responses or {}
        self.errors = errors or {}
        self.wait_error = wait_error
        self.calls = []
        self.waits = []

    def get_waiter(self, name):
        return FakeWaiter(self, name)

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        def call(**kwargs):
            self.calls.append((name, kwargs))
            if name in self.errors:
                raise self.errors[name]
            response = self.responses.get(name, {})
            return response(**kwargs) if callable(response) else response

        return call


def make_session(client):
    return Session(region="us-east-1", client_factory=lambda service, region: client)


def listing_client():
    def attribute(Attribute, InstanceId):
        return {"DisableApiTermination": {"Value": InstanceId == PROTECTED}}

    return FakeClient(
        responses={
            "describe_instances": {
                "Reservations": [
                    {
                        "Instances": [
                            {"InstanceId": INSTANCE, "LaunchTime": NOW},
                            {"InstanceId": PROTECTED, "LaunchTime": NOW},
                        ]
                    }
                ]
            },
            "describe_instance_attribute": attribute,
        }
    )


def test_list_instances_excludes_recent_and_protected():
    client = listing_client()
    session = make_session(client)
    assert get_all_ec2_instances(session, NOW - timedelta(hours=1)) == []
    later = get_all_ec2_instances(session, NOW + timedelta(hours=1))
    assert INSTANCE in later
    assert PROTECTED not in later


def test_list_instances_filters_on_live_states():
    client = listing_client()
    get_all_ec2_instances(make_session(client), NOW + timedelta(hours=1))
    name, kwargs = client.calls[0]
    assert name == "describe_instances"
    assert kwargs["Filters"] == [
        {"Name": "instance-state-name", "Values": ["running", "pending", "stopped", "stopping"]}
    ]


def test_list_instances_raises_when_attribute_lookup_fails():
    client = listing_client()
    client.errors["describe_instance_attribute"] = ApiError("UnauthorizedOperation")
    with pytest.raises(ApiError):
        get_all_ec2_instances(make_session(client), NOW)


def test_nuke_instances_terminates_and_waits():
    client = FakeClient()
    nuke_all_ec2_instances(make_session(client), [INSTANCE])
    assert client.calls == [("terminate_instances", {"InstanceIds": [INSTANCE]})]
    assert client.waits == [
        ("instance_terminated", {"Filters": [{"Name": "instance-id", "Values": [INSTANCE]}]})
    ]


def test_nuke_nothing_makes_no_calls():
    client = FakeClient()
    nuke_all_ec2_instances(make_session(client), [])
    assert client.calls == []
    assert client.waits == []


def test_nuke_raises_when_terminate_fails():
    client = FakeClient(errors={"terminate_instances": ApiError("OperationNotPermitted")})
    with pytest.raises(ApiError) as info:
        nuke_all_ec2_instances(make_session(client), [INSTANCE])
    assert info.value.code == "OperationNotPermitted"
    assert client.waits == []


def test_nuke_raises_when_wait_fails():
    client = FakeClient(wait_error=ApiError("WaiterError"))
    with pytest.raises(ApiError):
        nuke_all_ec2_instances(make_session(client), [INSTANCE])


def test_resource_nukes_given_identifiers():
    client = FakeClient()
    resource = EC2Instances(instance_ids=[INSTANCE, PROTECTED])
    assert resource.resource_name == "ec2"
    assert resource.max_batch_size == 200
    assert resource.identifiers == [INSTANCE, PROTECTED]
    resource.nuke(make_session(client), [INSTANCE])
    assert client.calls[0][1]["InstanceIds"] == [INSTANCE]


def test_service_client_uses_ec2_and_region():
    seen = []
    result = get_ec2_service_client("us-west-2", lambda service, region: seen.append((service, region)) or "client")
    assert result == "client"
    assert seen == [("ec2", "us-west-2")]