"""Validation of SR-IOV GPU devices."""

from __future__ import annotations

from typing import Any

from .admission import AdmissionError, Operation, Resource, Scope, Validator
from .models import DEVICES_GROUP, DEVICES_VERSION, SRIOVGPUDevice
from .store import ObjectCache
from .vgpu import check_vgpu_usage


class SRIOVGPUValidator(Validator):
    """Deny disabling a GPU whose vGPUs are in use, and deleting an enabled GPU."""

    def __init__(self, vm_cache: ObjectCache) -> None:
        self._vm_cache = vm_cache

    def resource(self) -> Resource:
        return Resource(
            names=("sriovgpudevices",),
            scope=Scope.CLUSTER,
            api_group=DEVICES_GROUP,
            api_version=DEVICES_VERSION,
            object_type=SRIOVGPUDevice,
            operation_types=(Operation.UPDATE, Operation.DELETE),
        )

    def update(self, request: Any, old_obj: SRIOVGPUDevice, new_obj: SRIOVGPUDevice) -> None:
        if old_obj.enabled == new_obj.enabled:
            return
        if old_obj.enabled and not new_obj.enabled:
            for vgpu in new_obj.vgpu_devices:
                check_vgpu_usage(self._vm_cache, vgpu)

    def delete(self, request: Any, old_obj: SRIOVGPUDevice) -> None:
        if old_obj.enabled:
            raise AdmissionError(f"please disable gpuDevice {old_obj.name} before deletion")