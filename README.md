# cloudpurge

`cloudpurge` finds AWS resources created before a cut-off time and deletes
them, region by region. It is meant for sandbox and test accounts, where
leftover resources pile up and cost money.

It is a library: it has no runtime dependencies and does all its AWS access
through a client factory that you supply.

## What it covers

| Resource type | Class | Name used in filters |
|---------------|-------|----------------------|
| Auto Scaling Groups | `cloudpurge.asg.ASGroups` | `asg` |
| Classic Elastic Load Balancers | `cloudpurge.elb.LoadBalancers` | `elb` |
| Application/Network Load Balancers | `cloudpurge.elbv2.LoadBalancersV2` | `elbv2` |
| EC2 instances not protected from termination | `cloudpurge.ec2.EC2Instances` | `ec2` |
| EBS volumes | `cloudpurge.ebs.EBSVolumes` | `ebs` |
| Elastic IP addresses | `cloudpurge.eip.EIPAddresses` | `eip` |
| AMIs owned by the account | `cloudpurge.ami.AMIs` | `ami` |
| ECS services | `cloudpurge.ecs_service.ECSServices` | `ecsserv` |
| ECS clusters | `cloudpurge.ecs_cluster.ECSClusters` | `ecscluster` |
| EKS clusters (only in the regions listed in `cloudpurge.eks.EKS_REGIONS`) | `cloudpurge.eks.EKSClusters` | `ekscluster` |

`cloudpurge.account.list_resource_types()` returns these names, sorted.

Default VPCs and the default rules of default security groups can be removed
as well, through `cloudpurge.vpc`.

## The client factory

Every function that talks to AWS receives either a `client_factory` or a
`cloudpurge.session.Session` built from one with `new_session(region,
client_factory)`.

The factory is called as `client_factory(service, region)` with a service name
such as `"ec2"`, `"autoscaling"`, `"elb"`, `"elbv2"`, `"ecs"` or `"eks"`. It
must return an object that offers the service's API calls as methods taking
keyword arguments and returning dictionaries (for example
`describe_volumes()`, `delete_volume(VolumeId=...)`), and
`get_waiter(name).wait(**params)` for waiters such as `"volume_deleted"` or
`"instance_terminated"`.

Errors raised by the client may be `cloudpurge.session.ApiError(code,
message)`, or any exception with a `response` mapping of the form
`{"Error": {"Code": ...}}`; `cloudpurge.session.error_code()` reads the code
from either, and it decides how some failures are handled (for instance a
volume in use is skipped with a warning).

## How it works

`get_all_resources(target_regions, exclude_after, resource_types,
client_factory)` gathers, for each region, the resources of the requested
types created before `exclude_after`, and returns an `AccountResources` whose
`resources` maps region names to `RegionResources`. Regions where nothing was
found are left out. Within a region the resources are kept in the order they
must be deleted: Auto Scaling Groups, load balancers, EC2 instances, EBS
volumes, Elastic IPs, AMIs, ECS services, ECS clusters, EKS clusters.

`exclude_after` should be a timezone-aware `datetime`; it is compared with the
creation times the API returns, and with aware UTC times where the package
computes or parses them itself.

Elastic IPs and ECS clusters carry no creation time. The first time one is
seen it is tagged with the current time under the key
`cloudpurge.eip.FIRST_SEEN_TAG_KEY` and is not selected; on later runs that
tag serves as its age.

`nuke_all_resources(account, regions, client_factory, sleep=time.sleep)`
deletes what was found, in batches of each resource type's
`max_batch_size` (100 for ECS clusters, 200 otherwise). It pauses 10 seconds
between batches. A batch that fails with `RequestLimitExceeded` is skipped
after a 60-second pause; any other error is raised. Pass your own `sleep` to
change how the pauses are taken.

Most deletion functions log individual failures and carry on; a failed wait
for deletion is raised. ECS cluster deletion stops at, and raises, the first
failure.

## Using it

```python
from datetime import datetime, timedelta, timezone

from cloudpurge.account import get_all_resources, nuke_all_resources
from cloudpurge.regions import get_enabled_regions, get_target_regions

enabled = get_enabled_regions(client_factory)
regions = get_target_regions(enabled, ["us-east-1", "eu-west-1"], [])

cutoff = datetime.now(timezone.utc) - timedelta(hours=24)
account = get_all_resources(regions, cutoff, ["ec2", "ebs"], client_factory)

nuke_all_resources(account, regions, client_factory)
```

`get_enabled_regions` asks a randomly chosen default region for the list of
enabled regions, trying again with others if the call fails, and raises
`NoEnabledRegionsError` if none answers. `get_random_region` picks one
enabled region at random.

`get_target_regions(enabled, selected, excluded)` accepts either selected
regions or excluded regions, never both, and raises `ValueError` when
`enabled` is empty, a region is unknown, or every region would be excluded.

An empty resource-type list, or one that contains `"all"`, selects every
type (`is_nukeable`). `is_valid_resource_type` checks a name against a list
of names, such as the one from `list_resource_types()`.

`split(identifiers, limit)` cuts a list into chunks of at most `abs(limit)`
items; a limit of 0 gives the whole list as one chunk.

### Default VPCs

```python
from cloudpurge.vpc import get_default_vpcs, new_vpc_per_region, nuke_vpcs

vpcs = get_default_vpcs(new_vpc_per_region(regions, client_factory))
nuke_vpcs(vpcs)
```

Regions without a default VPC are left out; a region reporting more than one
raises `DefaultVpcError`. Each VPC is stripped of its internet gateway,
subnets, non-main route tables, non-default network ACLs and non-default
security groups, then deleted. A failure in one VPC is logged and the next
one is tried.

### Default security group rules

```python
from cloudpurge.vpc import get_default_security_groups, nuke_default_security_group_rules

groups = get_default_security_groups(regions, client_factory)
nuke_default_security_group_rules(groups)
```

This revokes the default "allow all from the group itself" ingress rule and
the "allow all to 0.0.0.0/0" egress rule (`DefaultSecurityGroup.ingress_rule()`
and `egress_rule()` give the exact parameters). Rules that are already gone
are not an error; other failures are logged and the next group is tried.

## What it does not do

- There is no command-line program; everything is called from Python.
- No AWS client is included. Credentials, endpoints and retries are whatever
  the client factory you pass in provides.
- There is no configuration file or filtering by name or tag; selection is by
  region, resource type and age only.
- Resource types other than those in the table above are not looked at.

## Logging

Progress goes to the standard `logging` module under the logger named
`"cloudpurge"`; configure a handler to see what was found and deleted.