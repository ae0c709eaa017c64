"""Validation that a virtual machine's host devices all live on one node."""

from __future__ import annotations

from typing import Any

from .admission import AdmissionError, Operation, Resource, Scope, Validator
from .models import KUBEVIRT_GROUP, KUBEVIRT_VERSION, VirtualMachine
from .store import NotFoundError, ObjectCache

_MISMATCH = (
    "device {kind}/{name} is not on the same node in "
    "VirtualMachine.Spec.Template.Spec.Domain.Devices.HostDevices {vm}"
)


def _lookup(cache: ObjectCache, name: str) -> Any:
    try:
        return cache.get(name)
    except NotFoundError:
        return None


class DeviceHostValidator(Validator):
    """Deny virtual machines whose USB and PCI host devices are on different nodes."""

    def __init__(self, usb_cache: ObjectCache, pci_cache: ObjectCache) -> None:
        self._usb_cache = usb_cache
        self._pci_cache = pci_cache

    def resource(self) -> Resource:
        return Resource(
            names=("virtualmachines",),
            scope=Scope.NAMESPACED,
            api_group=KUBEVIRT_GROUP,
            api_version=KUBEVIRT_VERSION,
            object_type=VirtualMachine,
            operation_types=(Operation.CREATE, Operation.UPDATE),
        )

    def create(self, request: Any, new_obj: VirtualMachine) -> None:
        if new_obj.host_devices:
            self._validate_devices_from_same_node(new_obj)

    def update(self, request: Any, old_obj: Any, new_obj: VirtualMachine) -> None:
        if new_obj.host_devices:
            self._validate_devices_from_same_node(new_obj)

    def _validate_devices_from_same_node(self, vm: VirtualMachine) -> None:
        node_name = ""
        for device in vm.host_devices:
            usb = _lookup(self._usb_cache, device.name)
            if not node_name and usb is not None:
                node_name = usb.node_name
                continue

            pci = _lookup(self._pci_cache, device.name)
            if not node_name and pci is not None:
                node_name = pci.node_name
                continue

            if pci is not None and pci.node_name != node_name:
                raise AdmissionError(_MISMATCH.format(kind="pcidevice", name=pci.name, vm=vm.name))
            if usb is not None and usb.node_name != node_name:
                raise AdmissionError(_MISMATCH.format(kind="usbdevice", name=usb.name, vm=vm.name))