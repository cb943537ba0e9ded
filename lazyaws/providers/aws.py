"""boto3-backed resource provider for EC2, SSM, S3 and EKS.

Every botocore failure leaves this module as a ``ProviderError`` carrying a
readable message; records and detail dicts never contain boto3 objects.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError

from ..log_utils import log_event
from .base import Ack, Bucket, Cluster, Instance, ListPage, ProviderError, ProviderScope, S3Object

logger = logging.getLogger(__name__)

INSTANCE_VERBS = {
    "start": "start_instances",
    "stop": "stop_instances",
    "reboot": "reboot_instances",
    "terminate": "terminate_instances",
}
OBJECT_PAGE_SIZE = 1000
PRESIGN_SECONDS = 3600
DEFAULT_BUCKET_REGION = "us-east-1"
METRIC_PERIOD_SECONDS = 300
METRIC_WINDOW = timedelta(hours=1)
# (result key, CloudWatch metric name, statistic)
INSTANCE_METRICS = (
    ("cpu_utilization", "CPUUtilization", "Average"),
    ("network_in", "NetworkIn", "Sum"),
    ("network_out", "NetworkOut", "Sum"),
    ("disk_read_bytes", "DiskReadBytes", "Sum"),
    ("disk_write_bytes", "DiskWriteBytes", "Sum"),
    ("status_check_failed", "StatusCheckFailed", "Maximum"),
)


def _timestamp(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return "" if value is None else str(value)


def _name_tag(tags: list[dict[str, str]] | None) -> str:
    for tag in tags or ():
        if tag.get("Key") == "Name":
            return tag.get("Value", "")
    return ""


def _describe(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "")
        message = error.get("Message", "") or str(exc)
        return f"{code}: {message}" if code else message
    return str(exc)


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def scope_env(scope: ProviderScope, base_env: Mapping[str, str] | None = None) -> dict[str, str]:
    """Environment for ``aws`` CLI subprocesses acting in ``scope``."""
    env = dict(os.environ if base_env is None else base_env)
    if scope.credentials is not None:
        env["AWS_ACCESS_KEY_ID"] = scope.credentials.access_key_id
        env["AWS_SECRET_ACCESS_KEY"] = scope.credentials.secret_access_key
        if scope.credentials.session_token:
            env["AWS_SESSION_TOKEN"] = scope.credentials.session_token
        env.pop("AWS_PROFILE", None)
    elif scope.profile_name:
        env["AWS_PROFILE"] = scope.profile_name
    env["AWS_REGION"] = scope.region
    env["AWS_DEFAULT_REGION"] = scope.region
    return env


class AwsResourceProvider:
    """``ResourceProvider`` for one region and identity."""

    def __init__(self, session: Any, scope: ProviderScope, *, run: Callable[..., Any] = subprocess.run) -> None:
        self._session = session
        self.scope = scope
        self._run = run
        self._clients: dict[str, Any] = {}
        self._lock = threading.Lock()

    def _client(self, service: str):
        with self._lock:
            client = self._clients.get(service)
            if client is None:
                client = self._session.client(service, region_name=self.scope.region)
                self._clients[service] = client
            return client

    # -- ResourceProvider -------------------------------------------------

    def list(
        self,
        kind: str,
        filter: Mapping[str, Any] | None = None,
        continuation_token: str | None = None,
    ) -> ListPage:
        handlers = {
            "instances": lambda: self._list_instances(),
            "buckets": lambda: self._list_buckets(),
            "objects": lambda: self._list_objects(filter or {}, continuation_token),
            "clusters": lambda: self._list_clusters(),
        }
        return self._invoke(handlers, kind, f"list {kind}")

    def get(self, kind: str, resource_id: str, **options: Any) -> Any:
        handlers = {
            "instance": lambda: self._instance_details(resource_id),
            "instance-status": lambda: self._instance_status(resource_id),
            "ssm-status": lambda: self._ssm_status(resource_id),
            "instance-metrics": lambda: self._instance_metrics(resource_id),
            "object": lambda: self._object_details(options["bucket"], resource_id),
            "cluster": lambda: self._cluster_details(resource_id),
            "node-groups": lambda: self._node_groups(resource_id),
            "addons": lambda: self._addons(resource_id),
            "bucket-policy": lambda: self._bucket_policy(resource_id),
            "bucket-versioning": lambda: self._bucket_versioning(resource_id),
            "presigned-url": lambda: self._presigned_url(
                options["bucket"], resource_id, int(options.get("expires", PRESIGN_SECONDS))
            ),
        }
        return self._invoke(handlers, kind, f"get {kind} {resource_id}")

    def mutate(self, kind: str, resource_id: str, verb: str, **options: Any) -> Ack:
        key = f"{kind}:{verb}" if kind != "instance" else "instance"
        handlers = {
            "instance": lambda: self._instance_action(resource_id, verb),
            "object:delete": lambda: self._client("s3").delete_object(Bucket=options["bucket"], Key=resource_id),
            "object:download": lambda: self._download(options["bucket"], resource_id, options["destination"]),
            "object:upload": lambda: self._client("s3").upload_file(options["source"], options["bucket"], resource_id),
            "bucket:delete": lambda: self._client("s3").delete_bucket(Bucket=resource_id),
            "cluster:update-kubeconfig": lambda: self._update_kubeconfig(resource_id),
        }
        self._invoke(handlers, key, f"{verb} {kind} {resource_id}")
        log_event(logger, "resource.mutated", kind=kind, resource_id=resource_id, verb=verb)
        return Ack(kind=kind, resource_id=resource_id, verb=verb)

    def _invoke(self, handlers: Mapping[str, Callable[[], Any]], key: str, description: str) -> Any:
        handler = handlers.get(key)
        if handler is None:
            raise ProviderError(f"Unsupported operation: {description}")
        try:
            return handler()
        except (Boto3Error, BotoCoreError, ClientError) as exc:
            logger.warning("%s failed: %s", description, exc)
            raise ProviderError(_describe(exc)) from exc

    # -- EC2 / SSM ---------------------------------------------------------

    def _list_instances(self) -> ListPage:
        instances: list[Instance] = []
        for page in self._client("ec2").get_paginator("describe_instances").paginate():
            for reservation in page.get("Reservations", []):
                for raw in reservation.get("Instances", []):
                    instances.append(
                        Instance(
                            instance_id=raw.get("InstanceId", ""),
                            name=_name_tag(raw.get("Tags")),
                            state=raw.get("State", {}).get("Name", ""),
                            instance_type=raw.get("InstanceType", ""),
                            public_ip=raw.get("PublicIpAddress", ""),
                            private_ip=raw.get("PrivateIpAddress", ""),
                            availability_zone=raw.get("Placement", {}).get("AvailabilityZone", ""),
                            launch_time=_timestamp(raw.get("LaunchTime")),
                        )
                    )
        return ListPage(items=tuple(instances))

    def _instance_details(self, instance_id: str) -> dict[str, Any]:
        response = self._client("ec2").describe_instances(InstanceIds=[instance_id])
        reservations = response.get("Reservations", [])
        if not reservations or not reservations[0].get("Instances"):
            raise ProviderError(f"Instance {instance_id} not found")
        raw = reservations[0]["Instances"][0]
        return {
            "instance_id": raw.get("InstanceId", ""),
            "name": _name_tag(raw.get("Tags")),
            "state": raw.get("State", {}).get("Name", ""),
            "instance_type": raw.get("InstanceType", ""),
            "availability_zone": raw.get("Placement", {}).get("AvailabilityZone", ""),
            "public_ip": raw.get("PublicIpAddress", ""),
            "private_ip": raw.get("PrivateIpAddress", ""),
            "vpc_id": raw.get("VpcId", ""),
            "subnet_id": raw.get("SubnetId", ""),
            "key_name": raw.get("KeyName", ""),
            "image_id": raw.get("ImageId", ""),
            "architecture": raw.get("Architecture", ""),
            "platform": raw.get("PlatformDetails", ""),
            "launch_time": _timestamp(raw.get("LaunchTime")),
            "security_groups": [group.get("GroupName", "") for group in raw.get("SecurityGroups", [])],
            "volumes": [
                {"device": mapping.get("DeviceName", ""), "volume_id": mapping.get("Ebs", {}).get("VolumeId", "")}
                for mapping in raw.get("BlockDeviceMappings", [])
            ],
            "tags": {tag.get("Key", ""): tag.get("Value", "") for tag in raw.get("Tags", [])},
        }

    def _instance_status(self, instance_id: str) -> dict[str, str]:
        response = self._client("ec2").describe_instance_status(InstanceIds=[instance_id], IncludeAllInstances=True)
        statuses = response.get("InstanceStatuses", [])
        if not statuses:
            return {"system_status": "unknown", "instance_status": "unknown"}
        status = statuses[0]
        return {
            "state": status.get("InstanceState", {}).get("Name", ""),
            "system_status": status.get("SystemStatus", {}).get("Status", ""),
            "instance_status": status.get("InstanceStatus", {}).get("Status", ""),
        }

    def _ssm_status(self, instance_id: str) -> dict[str, Any]:
        response = self._client("ssm").describe_instance_information(
            Filters=[{"Key": "InstanceIds", "Values": [instance_id]}]
        )
        info_list = response.get("InstanceInformationList", [])
        if not info_list:
            return {"connected": False, "ping_status": "Not registered"}
        info = info_list[0]
        ping = info.get("PingStatus", "")
        return {
            "connected": ping == "Online",
            "ping_status": ping,
            "agent_version": info.get("AgentVersion", ""),
            "platform": info.get("PlatformName", "") or info.get("PlatformType", ""),
            "last_ping": _timestamp(info.get("LastPingDateTime")),
        }

    def _instance_metrics(self, instance_id: str) -> dict[str, Any]:
        """Latest five-minute datapoint of each EC2 metric; ``None`` when CloudWatch has none."""
        cloudwatch = self._client("cloudwatch")
        end = datetime.now(timezone.utc)
        start = end - METRIC_WINDOW
        metrics: dict[str, Any] = {"period": "Last 5 minutes"}
        for key, metric_name, statistic in INSTANCE_METRICS:
            response = cloudwatch.get_metric_statistics(
                Namespace="AWS/EC2",
                MetricName=metric_name,
                Dimensions=[{"Name": "InstanceId", "Value": instance_id}],
                StartTime=start,
                EndTime=end,
                Period=METRIC_PERIOD_SECONDS,
                Statistics=[statistic],
            )
            datapoints = response.get("Datapoints", [])
            if not datapoints:
                metrics[key] = None
                continue
            latest = max(datapoints, key=lambda point: point.get("Timestamp") or datetime.min.replace(tzinfo=timezone.utc))
            metrics[key] = latest.get(statistic)
        return metrics

    def _instance_action(self, instance_id: str, verb: str) -> None:
        method = INSTANCE_VERBS.get(verb)
        if method is None:
            raise ProviderError(f"Unsupported instance action: {verb}")
        getattr(self._client("ec2"), method)(InstanceIds=[instance_id])

    # -- S3 ----------------------------------------------------------------

    def _bucket_region(self, name: str) -> str:
        try:
            response = self._client("s3").get_bucket_location(Bucket=name)
        except ClientError as exc:
            logger.debug("bucket location for %s unavailable: %s", name, exc)
            return ""
        return response.get("LocationConstraint") or DEFAULT_BUCKET_REGION

    def _list_buckets(self) -> ListPage:
        response = self._client("s3").list_buckets()
        buckets = tuple(
            Bucket(
                name=raw.get("Name", ""),
                region=self._bucket_region(raw.get("Name", "")),
                created=_timestamp(raw.get("CreationDate")),
            )
            for raw in response.get("Buckets", [])
        )
        return ListPage(items=buckets)

    def _list_objects(self, filter: Mapping[str, Any], continuation_token: str | None) -> ListPage:
        bucket = filter["bucket"]
        prefix = filter.get("prefix", "")
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Prefix": prefix,
            "Delimiter": "/",
            "MaxKeys": OBJECT_PAGE_SIZE,
        }
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        response = self._client("s3").list_objects_v2(**params)
        items: list[S3Object] = [
            S3Object(key=common["Prefix"], is_folder=True)
            for common in response.get("CommonPrefixes", [])
            if common.get("Prefix")
        ]
        for raw in response.get("Contents", []):
            key = raw.get("Key", "")
            if key == prefix:
                continue
            items.append(
                S3Object(
                    key=key,
                    size=int(raw.get("Size", 0)),
                    last_modified=_timestamp(raw.get("LastModified")),
                    storage_class=raw.get("StorageClass", "") or "STANDARD",
                )
            )
        truncated = bool(response.get("IsTruncated"))
        return ListPage(
            items=tuple(items),
            continuation_token=response.get("NextContinuationToken") if truncated else None,
            truncated=truncated,
        )

    def _object_details(self, bucket: str, key: str) -> dict[str, Any]:
        s3 = self._client("s3")
        head = s3.head_object(Bucket=bucket, Key=key)
        details: dict[str, Any] = {
            "key": key,
            "bucket": bucket,
            "size": int(head.get("ContentLength", 0)),
            "last_modified": _timestamp(head.get("LastModified")),
            "content_type": head.get("ContentType", ""),
            "etag": str(head.get("ETag", "")).strip('"'),
            "storage_class": head.get("StorageClass", "") or "STANDARD",
            "version_id": head.get("VersionId", ""),
            "server_side_encryption": head.get("ServerSideEncryption", ""),
            "metadata": dict(head.get("Metadata", {})),
        }
        try:
            tagging = s3.get_object_tagging(Bucket=bucket, Key=key)
        except ClientError as exc:
            logger.debug("tags for s3://%s/%s unavailable: %s", bucket, key, exc)
        else:
            details["tags"] = {tag.get("Key", ""): tag.get("Value", "") for tag in tagging.get("TagSet", [])}
        return details

    def _bucket_policy(self, bucket: str) -> str:
        try:
            response = self._client("s3").get_bucket_policy(Bucket=bucket)
        except ClientError as exc:
            if _error_code(exc) == "NoSuchBucketPolicy":
                return "No bucket policy attached"
            raise
        return response.get("Policy", "")

    def _bucket_versioning(self, bucket: str) -> str:
        response = self._client("s3").get_bucket_versioning(Bucket=bucket)
        return response.get("Status") or "Disabled"

    def _presigned_url(self, bucket: str, key: str, expires: int) -> str:
        return self._client("s3").generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=expires,
        )

    def _download(self, bucket: str, key: str, destination: str) -> None:
        target = Path(destination).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        self._client("s3").download_file(bucket, key, str(target))

    # -- EKS ---------------------------------------------------------------

    def _list_clusters(self) -> ListPage:
        eks = self._client("eks")
        clusters: list[Cluster] = []
        for page in eks.get_paginator("list_clusters").paginate():
            for name in page.get("clusters", []):
                try:
                    raw = eks.describe_cluster(name=name).get("cluster", {})
                except ClientError as exc:
                    logger.debug("describe_cluster %s failed: %s", name, exc)
                    clusters.append(Cluster(name=name, status="unknown", region=self.scope.region))
                    continue
                clusters.append(
                    Cluster(
                        name=name,
                        version=raw.get("version", ""),
                        status=raw.get("status", ""),
                        region=self.scope.region,
                    )
                )
        return ListPage(items=tuple(clusters))

    def _cluster_details(self, name: str) -> dict[str, Any]:
        raw = self._client("eks").describe_cluster(name=name).get("cluster", {})
        vpc = raw.get("resourcesVpcConfig", {})
        return {
            "name": raw.get("name", name),
            "arn": raw.get("arn", ""),
            "version": raw.get("version", ""),
            "platform_version": raw.get("platformVersion", ""),
            "status": raw.get("status", ""),
            "endpoint": raw.get("endpoint", ""),
            "role_arn": raw.get("roleArn", ""),
            "vpc_id": vpc.get("vpcId", ""),
            "subnets": list(vpc.get("subnetIds", [])),
            "created": _timestamp(raw.get("createdAt")),
            "tags": dict(raw.get("tags", {})),
        }

    def _node_groups(self, cluster: str) -> list[dict[str, Any]]:
        eks = self._client("eks")
        groups: list[dict[str, Any]] = []
        for name in eks.list_nodegroups(clusterName=cluster).get("nodegroups", []):
            try:
                raw = eks.describe_nodegroup(clusterName=cluster, nodegroupName=name).get("nodegroup", {})
            except ClientError as exc:
                logger.debug("describe_nodegroup %s failed: %s", name, exc)
                groups.append({"name": name, "status": "unknown"})
                continue
            scaling = raw.get("scalingConfig", {})
            groups.append(
                {
                    "name": name,
                    "status": raw.get("status", ""),
                    "version": raw.get("version", ""),
                    "instance_types": list(raw.get("instanceTypes", [])),
                    "desired": scaling.get("desiredSize", 0),
                    "min": scaling.get("minSize", 0),
                    "max": scaling.get("maxSize", 0),
                    "ami_type": raw.get("amiType", ""),
                }
            )
        return groups

    def _addons(self, cluster: str) -> list[dict[str, Any]]:
        eks = self._client("eks")
        addons: list[dict[str, Any]] = []
        for name in eks.list_addons(clusterName=cluster).get("addons", []):
            try:
                raw = eks.describe_addon(clusterName=cluster, addonName=name).get("addon", {})
            except ClientError as exc:
                logger.debug("describe_addon %s failed: %s", name, exc)
                addons.append({"name": name, "status": "unknown"})
                continue
            addons.append(
                {
                    "name": name,
                    "version": raw.get("addonVersion", ""),
                    "status": raw.get("status", ""),
                }
            )
        return addons

    def _update_kubeconfig(self, cluster: str) -> None:
        argv = ["aws", "eks", "update-kubeconfig", "--name", cluster, "--region", self.scope.region]
        try:
            result = self._run(argv, capture_output=True, text=True, check=False, env=scope_env(self.scope))
        except OSError as exc:
            raise ProviderError(f"Failed to run aws CLI: {exc}") from exc
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise ProviderError(detail or f"aws eks update-kubeconfig exited with code {result.returncode}")
