"""Validation of USB devices and USB device claims."""

from __future__ import annotations

import logging
from typing import Any

from .admission import AdmissionError, Operation, Resource, Scope, Validator
from .indexer import VM_BY_USB_DEVICE_CLAIM
from .models import DEVICES_GROUP, DEVICES_VERSION, USBDevice, USBDeviceClaim
from .store import ObjectCache

log = logging.getLogger(__name__)


class USBDeviceValidator(Validator):
    """Deny deleting a USB device that is still enabled."""

    def resource(self) -> Resource:
        return Resource(
            names=("usbdevices",),
            scope=Scope.CLUSTER,
            api_group=DEVICES_GROUP,
            api_version=DEVICES_VERSION,
            object_type=USBDevice,
            operation_types=(Operation.DELETE,),
        )

    def delete(self, request: Any, old_obj: USBDevice) -> None:
        if old_obj.enabled:
            message = f"usbdevice {old_obj.name} is still in use"
            log.error(message)
            raise AdmissionError(message)


class USBDeviceClaimValidator(Validator):
    """Deny deleting a USB device claim that a virtual machine uses."""

    def __init__(self, vm_cache: ObjectCache) -> None:
        self._vm_cache = vm_cache

    def resource(self) -> Resource:
        return Resource(
            names=("usbdeviceclaims",),
            scope=Scope.CLUSTER,
            api_group=DEVICES_GROUP,
            api_version=DEVICES_VERSION,
            object_type=USBDeviceClaim,
            operation_types=(Operation.DELETE,),
        )

    def delete(self, request: Any, old_obj: USBDeviceClaim) -> None:
        vms = self._vm_cache.get_by_index(VM_BY_USB_DEVICE_CLAIM, old_obj.name)
        if vms:
            vm = vms[0]
            message = f"usbdeviceclaim {old_obj.name} is still in use by vm {vm.name}/{vm.namespace}"
            log.error(message)
            raise AdmissionError(message)