"""Mutation of virtual machines to include every device of a claimed IOMMU group."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from .admission import Mutator, Operation, Resource, Scope
from .indexer import IOMMU_GROUP_BY_NODE
from .models import (
    KUBEVIRT_GROUP,
    KUBEVIRT_VERSION,
    HostDevice,
    OwnerReference,
    PCIDevice,
    PCIDeviceClaim,
    VirtualMachine,
)
from .store import NotFoundError, ObjectCache

log = logging.getLogger(__name__)

DEFAULT_HOST_DEV_BASE_PATH = "/spec/template/spec/domain/devices/hostDevices/-"


@dataclass(frozen=True)
class DeviceWithOwner:
    """A PCI device together with the user its claim should belong to."""

    device: PCIDevice
    owner: str


class PCIVMMutator(Mutator):
    """Add the other devices of each claimed device's IOMMU group to the VM, claiming them."""

    def __init__(
        self, device_cache: ObjectCache, claim_cache: ObjectCache, claim_client: ObjectCache
    ) -> None:
        self._device_cache = device_cache
        self._claim_cache = claim_cache
        self._claim_client = claim_client

    def resource(self) -> Resource:
        return Resource(
            names=("virtualmachines",),
            scope=Scope.NAMESPACED,
            api_group=KUBEVIRT_GROUP,
            api_version=KUBEVIRT_VERSION,
            object_type=VirtualMachine,
            operation_types=(Operation.CREATE, Operation.UPDATE),
        )

    def create(self, request: Any, new_obj: VirtualMachine) -> list[str]:
        if not new_obj.host_devices:
            return []
        return self.generate_patch(new_obj)

    def update(self, request: Any, old_obj: Any, new_obj: VirtualMachine) -> list[str]:
        if not new_obj.host_devices:
            return []
        # The previous host devices are taken from the incoming object itself,
        # so an unchanged list is always seen and the request is ignored.
        previous = new_obj
        if list(previous.host_devices) == list(new_obj.host_devices):
            return []
        return self.generate_patch(new_obj)

    def generate_patch(self, vm: VirtualMachine) -> list[str]:
        """Claim and add missing IOMMU group members; return the patch operations."""
        in_vm: list[str] = []
        possible: list[DeviceWithOwner] = []
        for host_device in vm.host_devices:
            try:
                device = self._device_cache.get(host_device.name)
                claim = self._claim_cache.get(host_device.name)
            except NotFoundError:
                return []
            group = self._device_cache.get_by_index(
                IOMMU_GROUP_BY_NODE, f"{device.node_name}-{device.iommu_group}"
            )
            in_vm.append(host_device.name)
            possible.extend(DeviceWithOwner(d, claim.user_name) for d in group)

        needed = identify_additional_pci_devices(in_vm, possible)
        if not needed:
            return []
        for item in needed:
            self.find_and_create_claim(item.device, item.owner)
        patch = generate_patch_from_devices(needed)
        log.debug("generated patch for vm %s in ns %s: %s", vm.name, vm.namespace, patch)
        return patch

    def find_and_create_claim(self, device: PCIDevice, owner: str) -> None:
        """Create a claim for the device unless one exists."""
        try:
            self._claim_cache.get(device.name)
        except NotFoundError:
            self._claim_client.create(generate_pci_device_claim(device, owner))


def generate_patch_from_devices(devices_needed: list[DeviceWithOwner]) -> list[str]:
    """Return host device patch operations for each needed device."""
    return [op for item in devices_needed for op in generate_device_patch(item.device)]


def generate_device_patch(device: PCIDevice) -> list[str]:
    """Return the operation appending the device to the VM's host devices."""
    host_dev = HostDevice(name=device.name, device_name=device.resource_name)
    value = json.dumps(host_dev.to_dict(), separators=(",", ":"))
    return [f'{{"op": "add", "path": "{DEFAULT_HOST_DEV_BASE_PATH}", "value": {value}}}']


def identify_additional_pci_devices(
    pci_devices_in_vm: list[str], possible: list[DeviceWithOwner]
) -> list[DeviceWithOwner]:
    """Return the candidates not already attached to the VM."""
    present = set(pci_devices_in_vm)
    return [item for item in possible if item.device.name not in present]


def generate_pci_device_claim(device: PCIDevice, owner: str) -> PCIDeviceClaim:
    """Build a claim for the device owned by the device object."""
    return PCIDeviceClaim(
        name=device.name,
        user_name=owner,
        node_name=device.node_name,
        address=device.address,
        owner_references=[
            OwnerReference(
                api_version=device.api_version, kind=device.kind, name=device.name, uid=device.uid
            )
        ],
    )