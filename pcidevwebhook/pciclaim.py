"""Validation of PCI device claims."""

from __future__ import annotations

import logging
from typing import Any

from .admission import AdmissionError, Operation, Resource, Scope, Validator
from .indexer import USB_DEVICE_BY_ADDRESS, VM_BY_PCI_DEVICE_CLAIM
from .models import DEVICES_GROUP, DEVICES_VERSION, PCIDeviceClaim
from .store import ObjectCache

log = logging.getLogger(__name__)


class PCIDeviceClaimValidator(Validator):
    """Deny claims on devices without an IOMMU group or already held, and deletion of claims in use."""

    def __init__(
        self,
        device_cache: ObjectCache,
        vm_cache: ObjectCache | None,
        usb_claim_cache: ObjectCache,
    ) -> None:
        self._device_cache = device_cache
        self._vm_cache = vm_cache
        self._usb_claim_cache = usb_claim_cache

    def resource(self) -> Resource:
        return Resource(
            names=("pcideviceclaims",),
            scope=Scope.CLUSTER,
            api_group=DEVICES_GROUP,
            api_version=DEVICES_VERSION,
            object_type=PCIDeviceClaim,
            operation_types=(Operation.CREATE, Operation.DELETE),
        )

    def create(self, request: Any, new_obj: PCIDeviceClaim) -> None:
        device = self._device_cache.get(new_obj.name)
        if not device.iommu_group:
            message = f"pcidevice {device.name} has no iommuGroup available"
            log.error(message)
            raise AdmissionError(message)

        key = f"{device.node_name}-{device.address}"
        usb_claims = self._usb_claim_cache.get_by_index(USB_DEVICE_BY_ADDRESS, key)
        if usb_claims:
            used = ",".join(claim.name for claim in usb_claims)
            message = (
                f"usbdeviceclaim [{used}] is used, so its pcidevice {device.name} can't be claimed"
            )
            log.error(message)
            raise AdmissionError(message)

    def delete(self, request: Any, old_obj: PCIDeviceClaim) -> None:
        if self._vm_cache is None:
            raise AdmissionError("no virtual machine cache available")
        vms = self._vm_cache.get_by_index(VM_BY_PCI_DEVICE_CLAIM, old_obj.name)
        if vms:
            vm = vms[0]
            message = (
                f"pcideviceclaim {old_obj.name} is already in use with vm {vm.name} "
                f"in namespace {vm.namespace}"
            )
            log.error(message)
            raise AdmissionError(message)