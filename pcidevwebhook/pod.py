"""Mutation of virt-launcher pods for virtual machines with passed-through devices."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from .admission import AdmissionError, Mutator, Operation, Resource, Scope
from .indexer import PCI_DEVICE_BY_RESOURCE_NAME, VM_BY_NAME
from .models import CORE_GROUP, CORE_VERSION, Pod, VirtualMachine
from .store import ObjectCache

log = logging.getLogger(__name__)

VM_LABEL = "harvesterhci.io/vmName"
DEFAULT_COMPUTE_CONTAINER_NAME = "compute"
MATCHING_LABELS: tuple[dict[str, str], ...] = ({"kubevirt.io": "virt-launcher"},)


def _labels_match(selector: dict[str, str], labels: dict[str, str]) -> bool:
    return all(labels.get(key) == value for key, value in selector.items())


class PodMutator(Mutator):
    """Add the SYS_RESOURCE capability to compute containers of VMs using devices."""

    def __init__(
        self, device_cache: ObjectCache, vm_cache: ObjectCache, vgpu_cache: ObjectCache
    ) -> None:
        self._device_cache = device_cache
        self._vm_cache = vm_cache
        self._vgpu_cache = vgpu_cache

    def resource(self) -> Resource:
        return Resource(
            names=("pods",),
            scope=Scope.NAMESPACED,
            api_group=CORE_GROUP,
            api_version=CORE_VERSION,
            object_type=Pod,
            operation_types=(Operation.CREATE,),
        )

    def create(self, request: Any, new_obj: Pod) -> list[str]:
        pod = new_obj
        if not any(_labels_match(sel, pod.labels) for sel in MATCHING_LABELS):
            log.info("ignoring pod %s in ns %s as no valid labels found", pod.name, pod.namespace)
            return []

        vm_name = pod.labels.get(VM_LABEL)
        if vm_name is None:
            return []

        vms = self._vm_cache.get_by_index(VM_BY_NAME, f"{vm_name}-{pod.namespace}")
        if len(vms) != 1:
            raise AdmissionError(f"expected to find exactly 1 vm but found {len(vms)}")
        vm = vms[0]

        if not vm.host_devices and not vm.gpus:
            log.info("vm %s in ns %s has no device attachments, skipping", vm.name, vm.namespace)
            return []

        if not self.patch_needed(vm):
            return []

        patch_ops = create_capability_patch(pod)
        log.debug("patch generated %s, for pod %s in ns %s", patch_ops, pod.name, pod.namespace)
        return patch_ops

    def patch_needed(self, vm: VirtualMachine) -> bool:
        """Return True if the VM uses a known PCI device or any GPU."""
        if not vm.host_devices and not vm.gpus:
            log.info("vm %s in ns %s has no device attachments, skipping", vm.name, vm.namespace)
            return False
        for device in vm.host_devices:
            if self._device_cache.get_by_index(PCI_DEVICE_BY_RESOURCE_NAME, device.device_name):
                return True
        return bool(vm.gpus)


def create_capability_patch(pod: Pod) -> list[str]:
    """Return patch operations adding SYS_RESOURCE to each compute container."""
    patch_ops: list[str] = []
    for idx, container in enumerate(pod.containers):
        if container.name == DEFAULT_COMPUTE_CONTAINER_NAME:
            patch_ops.extend(
                resource_patch(
                    container.capabilities_add,
                    f"/spec/containers/{idx}/securityContext/capabilities/add",
                )
            )
    return patch_ops


def resource_patch(add: Iterable[str], base_path: str) -> list[str]:
    """Return the patch operation that sets the capability list with SYS_RESOURCE appended."""
    value = [*add, "SYS_RESOURCE"]
    if len(value) == 1:
        base_path += "/-"
    value_str = json.dumps(value, separators=(",", ":"))
    return [f'{{"op": "add", "path": "{base_path}", "value": {value_str}}}']