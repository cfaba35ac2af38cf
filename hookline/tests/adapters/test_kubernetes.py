"""Tests for the Kubernetes adapters.

The typed kubernetes_asyncio APIs are replaced by AsyncMock stand-ins, which
is enough to exercise call arguments, JSON conversion and error mapping.
"""

import base64
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from kubernetes_asyncio import client, config
from kubernetes_asyncio.client.exceptions import ApiException

from hookline.adapters.kubernetes.client import KubeApiClient, api_errors, split_api_version
from hookline.adapters.kubernetes.events import KubeEventRecorder
from hookline.adapters.kubernetes.manifests import (
    receiver_manifest,
    source_from_manifest,
    status_to_manifest,
)
from hookline.adapters.kubernetes.secrets import KubeSecretStore
from hookline.adapters.kubernetes.services import KnativeServicePlatform
from hookline.adapters.kubernetes.sinks import KubeSinkResolver
from hookline.adapters.kubernetes.sources import KubeSourceStore
from hookline.core.errors import (
    ApiConflictError,
    ApiError,
    ApiNotFoundError,
    SinkNotFoundError,
)
from hookline.core.models import (
    FINALIZER_NAME,
    Condition,
    ConditionStatus,
    Destination,
    EventAttributes,
    ObjectRef,
)
from hookline.core.receiver import ReceiverLifecycleManager
from hookline.tests.builders import broker_ref, make_source

SOURCE_OBJECT = {
    "apiVersion": "sources.knative.dev/v1alpha1",
    "kind": "GitLabSource",
    "metadata": {
        "name": "my-source",
        "namespace": "default",
        "uid": "uid-1",
        "generation": 3,
        "resourceVersion": "77",
        "finalizers": [FINALIZER_NAME],
    },
    "spec": {
        "projectUrl": "https://gitlab.example.com/my/project",
        "eventTypes": ["push_events"],
        "accessToken": {"secretKeyRef": {"name": "gitlab-secret", "key": "accessToken"}},
        "secretToken": {"secretKeyRef": {"name": "gitlab-secret", "key": "secretToken"}},
        "sslverify": True,
        "serviceAccountName": "gitlab-sa",
        "sink": {"ref": {"apiVersion": "eventing.knative.dev/v1", "kind": "Broker", "name": "default"}},
    },
    "status": {
        "observedGeneration": 2,
        "webhookID": 42,
        "sinkUri": "http://broker/",
        "conditions": [
            {"type": "Ready", "status": "True", "lastTransitionTime": "2024-01-01T00:00:00Z"}
        ],
    },
}


def _not_found() -> ApiException:
    return ApiException(status=404, reason="Not Found")


@pytest.fixture
def api() -> KubeApiClient:
    return KubeApiClient(core=AsyncMock(), custom=AsyncMock())


class TestErrorMapping:
    def test_not_found(self) -> None:
        with pytest.raises(ApiNotFoundError):
            with api_errors("get thing"):
                raise _not_found()

    def test_conflict_carries_server_message(self) -> None:
        e = ApiException(status=409, reason="Conflict")
        e.body = json.dumps({"kind": "Status", "message": "object was modified"})

        with pytest.raises(ApiConflictError) as exc_info:
            with api_errors("update thing"):
                raise e

        assert "object was modified" in str(exc_info.value)

    def test_other_status(self) -> None:
        with pytest.raises(ApiError) as exc_info:
            with api_errors("get thing"):
                raise ApiException(status=500, reason="Internal Server Error")

        assert exc_info.value.status_code == 500
        assert not isinstance(exc_info.value, ApiNotFoundError)

    def test_split_api_version(self) -> None:
        assert split_api_version("eventing.knative.dev/v1") == ("eventing.knative.dev", "v1")
        assert split_api_version("v1") == ("", "v1")


class TestConnect:
    @pytest.mark.asyncio
    async def test_falls_back_to_kubeconfig(self, monkeypatch: pytest.MonkeyPatch) -> None:
        loaded = {}

        def outside_cluster(client_configuration=None):
            raise config.ConfigException("Service host/port is not set.")

        async def load_kube_config(config_file=None, context=None, client_configuration=None):
            loaded.update(config_file=config_file, context=context)

        monkeypatch.setattr(config, "load_incluster_config", outside_cluster)
        monkeypatch.setattr(config, "load_kube_config", load_kube_config)

        api = await KubeApiClient.connect(kubeconfig="/home/dev/.kube/config", context="dev")
        try:
            assert loaded == {"config_file": "/home/dev/.kube/config", "context": "dev"}
            assert isinstance(api.custom, client.CustomObjectsApi)
        finally:
            await api.close()

    @pytest.mark.asyncio
    async def test_no_configuration(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def missing(*args, **kwargs):
            raise config.ConfigException("Invalid kube-config file. No configuration found.")

        async def missing_kubeconfig(*args, **kwargs):
            missing()

        monkeypatch.setattr(config, "load_incluster_config", missing)
        monkeypatch.setattr(config, "load_kube_config", missing_kubeconfig)

        with pytest.raises(ApiError):
            await KubeApiClient.connect()


class TestManifests:
    def test_source_is_parsed(self) -> None:
        source = source_from_manifest(SOURCE_OBJECT)

        assert source.key == "default/my-source"
        assert source.generation == 3
        assert source.spec.sink.ref == broker_ref()
        assert source.spec.ssl_verify is True
        assert source.spec.service_account_name == "gitlab-sa"
        assert source.status.webhook_id == "42"
        assert source.status.conditions[0].status == ConditionStatus.TRUE
        assert source.status.conditions[0].last_transition_time == datetime(
            2024, 1, 1, tzinfo=timezone.utc
        )

    def test_status_is_rendered(self) -> None:
        source = source_from_manifest(SOURCE_OBJECT)
        source.status.event_attributes = [EventAttributes("t", "s")]
        source.status.conditions.append(
            Condition(type="Deployed", status=ConditionStatus.FALSE, reason="R", message="m")
        )

        body = status_to_manifest(source.status)

        assert body["webhookID"] == 42
        assert body["observedGeneration"] == 2
        assert body["ceAttributes"] == [{"type": "t", "source": "s"}]
        assert body["conditions"] == [
            {"type": "Ready", "status": "True", "lastTransitionTime": "2024-01-01T00:00:00Z"},
            {"type": "Deployed", "status": "False", "reason": "R", "message": "m"},
        ]

    def test_receiver_manifest_carries_owner_and_env(self) -> None:
        source = make_source(service_account_name="gitlab-sa")
        spec = ReceiverLifecycleManager(None, image="img").build_spec(source, "http://sink/")  # type: ignore[arg-type]

        manifest = receiver_manifest(spec)

        assert manifest["metadata"]["generateName"] == "my-source-"
        [owner] = manifest["metadata"]["ownerReferences"]
        assert owner["uid"] == source.uid
        assert owner["controller"] is True
        pod = manifest["spec"]["template"]["spec"]
        assert pod["serviceAccountName"] == "gitlab-sa"
        env = {e["name"]: e for e in pod["containers"][0]["env"]}
        assert env["GITLAB_SECRET_TOKEN"]["valueFrom"]["secretKeyRef"]["key"] == "secretToken"
        assert env["K_SINK"]["value"] == "http://sink/"


class TestSecretStore:
    @pytest.mark.asyncio
    async def test_decodes_data(self, api: KubeApiClient) -> None:
        encoded = base64.b64encode(b"glpat-123").decode()
        api.core.read_namespaced_secret.return_value = client.V1Secret(
            data={"accessToken": encoded}
        )

        data = await KubeSecretStore(api).get_secret("default", "gitlab-secret")

        assert data == {"accessToken": "glpat-123"}
        api.core.read_namespaced_secret.assert_awaited_once_with(
            name="gitlab-secret", namespace="default"
        )

    @pytest.mark.asyncio
    async def test_missing_secret(self, api: KubeApiClient) -> None:
        api.core.read_namespaced_secret.side_effect = _not_found()
        assert await KubeSecretStore(api).get_secret("default", "missing") is None

    @pytest.mark.asyncio
    async def test_undecodable_value(self, api: KubeApiClient) -> None:
        api.core.read_namespaced_secret.return_value = client.V1Secret(
            data={"accessToken": "%%%"}
        )
        with pytest.raises(ApiError):
            await KubeSecretStore(api).get_secret("default", "gitlab-secret")


@pytest.mark.asyncio
async def test_knative_platform_lists_and_creates(api: KubeApiClient) -> None:
    api.custom.list_namespaced_custom_object.return_value = {
        "items": [
            {
                "metadata": {
                    "name": "my-source-abcde",
                    "namespace": "default",
                    "ownerReferences": [{"uid": "uid-my-source", "controller": True}],
                },
                "status": {
                    "url": "https://my-source-abcde.default.example.com",
                    "conditions": [{"type": "Ready", "status": "True"}],
                },
            }
        ]
    }
    api.custom.create_namespaced_custom_object.return_value = {
        "metadata": {"name": "my-source-fghij", "namespace": "default"}
    }
    manager = ReceiverLifecycleManager(KnativeServicePlatform(api), image="img")
    source = make_source()

    owned = await manager.find_owned(source)
    created = await manager.create(source, "http://sink/")

    assert owned is not None
    assert owned.ready is True
    assert owned.address == "https://my-source-abcde.default.example.com"
    assert created.name == "my-source-fghij"
    assert created.ready is False
    call = api.custom.create_namespaced_custom_object.await_args
    assert call.kwargs["group"] == "serving.knative.dev"
    assert call.kwargs["plural"] == "services"
    assert call.kwargs["body"]["kind"] == "Service"


@pytest.mark.asyncio
async def test_knative_platform_maps_errors(api: KubeApiClient) -> None:
    api.custom.create_namespaced_custom_object.side_effect = ApiException(
        status=403, reason="Forbidden"
    )
    spec = ReceiverLifecycleManager(None, image="img").build_spec(make_source(), "http://sink/")  # type: ignore[arg-type]

    with pytest.raises(ApiError) as exc_info:
        await KnativeServicePlatform(api).create_receiver(spec)

    assert exc_info.value.status_code == 403


class TestSinkResolver:
    @pytest.mark.asyncio
    async def test_uri_is_used_as_is(self, api: KubeApiClient) -> None:
        resolver = KubeSinkResolver(api)
        assert await resolver.resolve(Destination(uri="http://x/"), "default") == "http://x/"
        api.custom.get_namespaced_custom_object.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_addressable_ref_is_resolved(self, api: KubeApiClient) -> None:
        api.custom.get_namespaced_custom_object.return_value = {
            "status": {"address": {"url": "http://broker-ingress/"}}
        }

        uri = await KubeSinkResolver(api).resolve(Destination(ref=broker_ref()), "default")

        assert uri == "http://broker-ingress/"
        api.custom.get_namespaced_custom_object.assert_awaited_once_with(
            group="eventing.knative.dev",
            version="v1",
            namespace="default",
            plural="brokers",
            name="default",
        )

    @pytest.mark.asyncio
    async def test_missing_ref(self, api: KubeApiClient) -> None:
        api.custom.get_namespaced_custom_object.side_effect = _not_found()
        with pytest.raises(SinkNotFoundError):
            await KubeSinkResolver(api).resolve(Destination(ref=broker_ref("absent")), "default")

    @pytest.mark.asyncio
    async def test_ref_without_address(self, api: KubeApiClient) -> None:
        api.custom.get_namespaced_custom_object.return_value = {"status": {}}
        with pytest.raises(SinkNotFoundError):
            await KubeSinkResolver(api).resolve(Destination(ref=broker_ref("pending")), "default")

    @pytest.mark.asyncio
    async def test_core_service_uses_cluster_dns(self, api: KubeApiClient) -> None:
        ref = ObjectRef(api_version="v1", kind="Service", name="display", namespace="apps")
        assert await KubeSinkResolver(api).resolve(Destination(ref=ref), "default") == (
            "http://display.apps.svc.cluster.local/"
        )

    @pytest.mark.asyncio
    async def test_other_core_kinds_are_not_addressable(self, api: KubeApiClient) -> None:
        ref = ObjectRef(api_version="v1", kind="ConfigMap", name="c")
        with pytest.raises(SinkNotFoundError):
            await KubeSinkResolver(api).resolve(Destination(ref=ref), "default")


class TestEventRecorder:
    @pytest.mark.asyncio
    async def test_creates_event(self, api: KubeApiClient) -> None:
        await KubeEventRecorder(api).record(make_source(), "Warning", "SecretNotFound", "m")

        call = api.core.create_namespaced_event.await_args
        assert call.kwargs["namespace"] == "default"
        body = call.kwargs["body"]
        assert body["type"] == "Warning"
        assert body["reason"] == "SecretNotFound"
        assert body["involvedObject"]["kind"] == "GitLabSource"

    @pytest.mark.asyncio
    async def test_swallows_api_errors(self, api: KubeApiClient) -> None:
        api.core.create_namespaced_event.side_effect = ApiException(status=403, reason="Forbidden")
        await KubeEventRecorder(api).record(make_source(), "Normal", "WebhookCreated", "m")
        api.core.create_namespaced_event.assert_awaited_once()


class TestSourceStore:
    @pytest.mark.asyncio
    async def test_lists_all_namespaces(self, api: KubeApiClient) -> None:
        api.custom.list_cluster_custom_object.return_value = {"items": [SOURCE_OBJECT]}

        [source] = await KubeSourceStore(api).list_sources()

        assert source.name == "my-source"
        api.custom.list_cluster_custom_object.assert_awaited_once_with(
            group="sources.knative.dev", version="v1alpha1", plural="gitlabsources"
        )

    @pytest.mark.asyncio
    async def test_lists_one_namespace(self, api: KubeApiClient) -> None:
        api.custom.list_namespaced_custom_object.return_value = {"items": []}

        assert await KubeSourceStore(api, namespace="team-a").list_sources() == []
        assert api.custom.list_namespaced_custom_object.await_args.kwargs["namespace"] == "team-a"

    @pytest.mark.asyncio
    async def test_status_goes_to_subresource(self, api: KubeApiClient) -> None:
        api.custom.replace_namespaced_custom_object_status.return_value = SOURCE_OBJECT
        source = source_from_manifest(SOURCE_OBJECT)

        await KubeSourceStore(api).update_status(source)

        call = api.custom.replace_namespaced_custom_object_status.await_args
        assert call.kwargs["name"] == "my-source"
        assert call.kwargs["body"]["metadata"]["resourceVersion"] == "77"
        assert call.kwargs["body"]["status"]["webhookID"] == 42

    @pytest.mark.asyncio
    async def test_status_conflict(self, api: KubeApiClient) -> None:
        api.custom.replace_namespaced_custom_object_status.side_effect = ApiException(
            status=409, reason="Conflict"
        )
        with pytest.raises(ApiConflictError):
            await KubeSourceStore(api).update_status(source_from_manifest(SOURCE_OBJECT))

    @pytest.mark.asyncio
    async def test_finalizers_are_patched(self, api: KubeApiClient) -> None:
        api.custom.patch_namespaced_custom_object.return_value = SOURCE_OBJECT

        await KubeSourceStore(api).set_finalizers(source_from_manifest(SOURCE_OBJECT), [])

        patch = api.custom.patch_namespaced_custom_object.await_args.kwargs["body"]
        assert patch == [
            {"op": "test", "path": "/metadata/resourceVersion", "value": "77"},
            {"op": "add", "path": "/metadata/finalizers", "value": []},
        ]
