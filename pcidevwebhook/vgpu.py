"""Validation of vGPU devices."""

from __future__ import annotations

import logging
from typing import Any

from .admission import AdmissionError, Operation, Resource, Scope, Validator
from .indexer import VM_BY_VGPU
from .models import DEVICES_GROUP, DEVICES_VERSION, VGPUDevice
from .store import ObjectCache

log = logging.getLogger(__name__)


def _spec(device: VGPUDevice) -> tuple[bool, str]:
    return (device.enabled, device.vgpu_type_name)


class VGPUValidator(Validator):
    """Deny disabling or deleting a vGPU in use, and enabling with an unknown profile."""

    def __init__(self, vm_cache: ObjectCache) -> None:
        self._vm_cache = vm_cache

    def resource(self) -> Resource:
        return Resource(
            names=("vgpudevices",),
            scope=Scope.CLUSTER,
            api_group=DEVICES_GROUP,
            api_version=DEVICES_VERSION,
            object_type=VGPUDevice,
            operation_types=(Operation.UPDATE, Operation.DELETE),
        )

    def update(self, request: Any, old_obj: VGPUDevice, new_obj: VGPUDevice) -> None:
        if _spec(old_obj) == _spec(new_obj):
            return
        if old_obj.enabled and not new_obj.enabled:
            check_vgpu_usage(self._vm_cache, new_obj.name)
        elif not old_obj.enabled and new_obj.enabled:
            validate_vgpu_profiles(old_obj, new_obj)

    def delete(self, request: Any, old_obj: VGPUDevice) -> None:
        check_vgpu_usage(self._vm_cache, old_obj.name)


def check_vgpu_usage(vm_cache: ObjectCache, device_name: str) -> None:
    """Raise AdmissionError if a virtual machine uses the named vGPU."""
    try:
        vms = vm_cache.get_by_index(VM_BY_VGPU, device_name)
    except KeyError as err:
        log.error("error fetching VMs from cache: %s", err)
        raise
    if vms:
        vm = vms[0]
        raise AdmissionError(
            f"device {device_name} is in use with VM {vm.name} in namespace {vm.namespace}"
        )


def validate_vgpu_profiles(old_obj: VGPUDevice, new_obj: VGPUDevice) -> None:
    """Raise AdmissionError unless the requested profile is one the device offers."""
    if not new_obj.vgpu_type_name:
        raise AdmissionError(f"VGPUTypeName cannot be empty for vGPU device {new_obj.name}")
    if new_obj.vgpu_type_name not in old_obj.available_types:
        raise AdmissionError(
            f"VGPUTypeName {new_obj.vgpu_type_name} is not a valid profile "
            f"for vGPU device {new_obj.name}"
        )