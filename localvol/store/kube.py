"""Kubernetes backed resource store.

Volume groups, logical volumes and LocalStorageClasses are cluster-scoped
custom objects; StorageClasses are read and written through the storage
API group.
"""

import logging
from typing import Any, Dict, List, Optional, Type

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from localvol.exceptions import ResourceAlreadyExists, ResourceConflict, ResourceNotFound, StoreError
from localvol.models import LocalStorageClass, LogicalVolume, StorageClass, VolumeGroup
from localvol.store.base import R, ResourceStore

LOG = logging.getLogger(__name__)

CRD_GROUP = "storage.localvol.io"
CRD_VERSION = "v1alpha1"

_PLURALS = {
    VolumeGroup.KIND: "lvmvolumegroups",
    LogicalVolume.KIND: "lvmlogicalvolumes",
    LocalStorageClass.KIND: "localstorageclasses",
}


def load_kube_config(kubeconfig: Optional[str] = None) -> None:
    """Use the in-cluster service account when available, else a kubeconfig file."""
    if kubeconfig:
        config.load_kube_config(config_file=kubeconfig)
        return
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


class KubernetesStore(ResourceStore):
    """ResourceStore over the Kubernetes API."""

    def __init__(self, api_client: Optional[client.ApiClient] = None):
        self.api_client = api_client or client.ApiClient()
        self.custom = client.CustomObjectsApi(self.api_client)
        self.storage = client.StorageV1Api(self.api_client)

    def _translate(self, e: ApiException, kind: str, name: str, creating: bool = False) -> Exception:
        if e.status == 404:
            return ResourceNotFound(kind=kind, name=name)
        if e.status == 409:
            if creating:
                return ResourceAlreadyExists(kind=kind, name=name)
            return ResourceConflict(kind=kind, name=name, details=e.reason or "conflict")
        return StoreError(details=f"{kind} {name}: {e.status} {e.reason}")

    def _manifest(self, obj: R, creating: bool = False) -> Dict[str, Any]:
        body = obj.to_wire()
        if obj.KIND == StorageClass.KIND:
            body["apiVersion"] = "storage.k8s.io/v1"
        else:
            body["apiVersion"] = f"{CRD_GROUP}/{CRD_VERSION}"
        body["kind"] = obj.KIND
        if creating:
            for field in ("resourceVersion", "uid", "creationTimestamp", "deletionTimestamp"):
                body["metadata"].pop(field, None)
        return body

    def _from_storage_class(self, item: Any) -> StorageClass:
        return StorageClass.model_validate(self.api_client.sanitize_for_serialization(item))

    def get(self, cls: Type[R], name: str, namespace: str = "") -> R:
        try:
            if cls.KIND == StorageClass.KIND:
                return self._from_storage_class(self.storage.read_storage_class(name))
            item = self.custom.get_cluster_custom_object(CRD_GROUP, CRD_VERSION, _PLURALS[cls.KIND], name)
        except ApiException as e:
            raise self._translate(e, cls.KIND, name)
        return cls.model_validate(item)

    def list(self, cls: Type[R]) -> List[R]:
        try:
            if cls.KIND == StorageClass.KIND:
                items = [self._from_storage_class(i) for i in self.storage.list_storage_class().items]
            else:
                response = self.custom.list_cluster_custom_object(CRD_GROUP, CRD_VERSION, _PLURALS[cls.KIND])
                items = [cls.model_validate(i) for i in response.get("items", [])]
        except ApiException as e:
            raise self._translate(e, cls.KIND, "*")
        return sorted(items, key=lambda o: o.name)

    def create(self, obj: R) -> R:
        body = self._manifest(obj, creating=True)
        try:
            if obj.KIND == StorageClass.KIND:
                return self._from_storage_class(self.storage.create_storage_class(body))
            item = self.custom.create_cluster_custom_object(CRD_GROUP, CRD_VERSION, _PLURALS[obj.KIND], body)
        except ApiException as e:
            raise self._translate(e, obj.KIND, obj.name, creating=True)
        return type(obj).model_validate(item)

    def update(self, obj: R) -> R:
        body = self._manifest(obj)
        try:
            if obj.KIND == StorageClass.KIND:
                return self._from_storage_class(self.storage.replace_storage_class(obj.name, body))
            item = self.custom.replace_cluster_custom_object(
                CRD_GROUP, CRD_VERSION, _PLURALS[obj.KIND], obj.name, body
            )
        except ApiException as e:
            raise self._translate(e, obj.KIND, obj.name)
        return type(obj).model_validate(item)

    def delete(self, cls: Type[R], name: str, namespace: str = "") -> None:
        try:
            if cls.KIND == StorageClass.KIND:
                self.storage.delete_storage_class(name)
            else:
                self.custom.delete_cluster_custom_object(CRD_GROUP, CRD_VERSION, _PLURALS[cls.KIND], name)
        except ApiException as e:
            raise self._translate(e, cls.KIND, name)

    def ping(self) -> bool:
        try:
            self.storage.list_storage_class(limit=1)
            return True
        except ApiException as e:
            LOG.warning("Kubernetes API is not reachable: %s", e.reason)
            return False
