"""Admission review routing and the sets of mutators and validators served."""

from __future__ import annotations

import base64
import logging
from typing import Any, Callable, Mapping

from .admission import AdmissionError, Mutator, Operation, Resource, Validator
from .models import (
    PCIDevice,
    PCIDeviceClaim,
    SRIOVGPUDevice,
    SRIOVNetworkDevice,
    USBDevice,
    USBDeviceClaim,
    VGPUDevice,
    pod_from_dict,
    virtual_machine_from_dict,
)
from .pciclaim import PCIDeviceClaimValidator
from .pod import PodMutator
from .sriov import SriovNetworkDeviceValidator
from .sriovgpu import SRIOVGPUValidator
from .store import Clients
from .usb import USBDeviceClaimValidator, USBDeviceValidator
from .vgpu import VGPUValidator
from .vmmutator import PCIVMMutator
from .vmvalidation import DeviceHostValidator

log = logging.getLogger(__name__)

ADMISSION_TYPE_MUTATION = "mutation"
ADMISSION_TYPE_VALIDATION = "validation"


def _parts(data: Mapping[str, Any]) -> tuple[dict, dict, dict]:
    return data.get("metadata") or {}, data.get("spec") or {}, data.get("status") or {}


def _pci_device(data):
    m, _, s = _parts(data)
    return PCIDevice(
        name=m.get("name", ""), namespace=m.get("namespace", ""), uid=m.get("uid", ""),
        address=s.get("address", ""), class_id=s.get("classId", ""),
        description=s.get("description", ""), node_name=s.get("nodeName", ""),
        resource_name=s.get("resourceName", ""), vendor_id=s.get("vendorId", ""),
        device_id=s.get("deviceId", ""), kernel_driver_in_use=s.get("kernelDriverInUse", ""),
        iommu_group=s.get("iommuGroup", ""),
    )


def _pci_claim(data):
    m, sp, _ = _parts(data)
    return PCIDeviceClaim(
        name=m.get("name", ""), namespace=m.get("namespace", ""),
        user_name=sp.get("userName", ""), node_name=sp.get("nodeName", ""),
        address=sp.get("address", ""),
    )


def _usb_device(data):
    m, _, s = _parts(data)
    return USBDevice(
        name=m.get("name", ""), node_name=s.get("nodeName", ""),
        resource_name=s.get("resourceName", ""), vendor_id=s.get("vendorID", ""),
        product_id=s.get("productID", ""), device_path=s.get("devicePath", ""),
        enabled=bool(s.get("enabled", False)),
    )


def _usb_claim(data):
    m, sp, s = _parts(data)
    return USBDeviceClaim(
        name=m.get("name", ""), node_name=s.get("nodeName", ""),
        pci_address=s.get("pciAddress", ""), user_name=sp.get("userName", ""),
    )


def _vgpu(data):
    m, sp, s = _parts(data)
    return VGPUDevice(
        name=m.get("name", ""), enabled=bool(sp.get("enabled", False)),
        vgpu_type_name=sp.get("vGPUTypeName", ""),
        available_types=dict(s.get("availableTypes") or {}),
    )


def _sriov_gpu(data):
    m, sp, s = _parts(data)
    return SRIOVGPUDevice(
        name=m.get("name", ""), enabled=bool(sp.get("enabled", False)),
        vgpu_devices=list(s.get("vGPUDevices") or []),
    )


def _sriov_network(data):
    m, sp, s = _parts(data)
    return SRIOVNetworkDevice(
        name=m.get("name", ""), address=sp.get("address", ""), node_name=sp.get("nodeName", ""),
        num_vfs=int(sp.get("numVFs", 0)), vf_pci_devices=list(s.get("vfPCIDevices") or []),
        vf_addresses=list(s.get("vfAddresses") or []),
    )


_DECODERS: dict[str, Callable[[Mapping[str, Any]], Any]] = {
    "Pod": pod_from_dict,
    "VirtualMachine": virtual_machine_from_dict,
    "PCIDevice": _pci_device,
    "PCIDeviceClaim": _pci_claim,
    "USBDevice": _usb_device,
    "USBDeviceClaim": _usb_claim,
    "VGPUDevice": _vgpu,
    "SRIOVGPUDevice": _sriov_gpu,
    "SRIOVNetworkDevice": _sriov_network,
}


class AdmissionRouter:
    """Route admission reviews to handlers by API group and kind."""

    def __init__(self, admission_type: str) -> None:
        self.admission_type = admission_type
        self._handlers: dict[tuple[str, str], list[Validator | Mutator]] = {}

    def add(self, admitter: Validator | Mutator) -> None:
        """Register a handler for its resource."""
        rsc = admitter.resource()
        kind = rsc.object_type.__name__ if rsc.object_type else ""
        self._handlers.setdefault((rsc.api_group, kind), []).append(admitter)
        log.info("add %s handler for %s.%s (%s)", self.admission_type, rsc.names, rsc.api_group, kind)

    def handle(self, review: Mapping[str, Any]) -> dict[str, Any]:
        """Answer an AdmissionReview with an AdmissionReview response."""
        request = review.get("request") or {}
        kind_info = request.get("kind") or {}
        kind = kind_info.get("kind", "")
        group = kind_info.get("group", "")
        response: dict[str, Any] = {"uid": request.get("uid", ""), "allowed": True}
        handlers = self._handlers.get((group, kind), [])
        try:
            op = Operation(request.get("operation", ""))
        except ValueError:
            handlers = []
            op = None
        if handlers:
            decode = _DECODERS[kind]
            new = request.get("object")
            old = request.get("oldObject")
            new_obj = decode(new) if new else None
            old_obj = decode(old) if old else None
            patch: list[str] = []
            try:
                for handler in handlers:
                    if op not in handler.resource().operation_types:
                        continue
                    if op is Operation.CREATE:
                        result = handler.create(request, new_obj)
                    elif op is Operation.UPDATE:
                        result = handler.update(request, old_obj, new_obj)
                    elif op is Operation.DELETE:
                        result = handler.delete(request, old_obj)
                    else:
                        result = None
                    if isinstance(handler, Mutator) and result:
                        patch.extend(result)
            except (AdmissionError, LookupError) as err:
                response["allowed"] = False
                response["status"] = {"message": str(err).strip('"'), "code": 400}
            else:
                if patch:
                    data = "[" + ",".join(patch) + "]"
                    response["patch"] = base64.b64encode(data.encode()).decode("ascii")
                    response["patchType"] = "JSONPatch"
        return {
            "apiVersion": review.get("apiVersion", "admission.k8s.io/v1"),
            "kind": "AdmissionReview",
            "response": response,
        }


def mutation(clients: Clients) -> tuple[AdmissionRouter, list[Resource]]:
    """Build the mutating router and the resources it covers."""
    mutators: list[Mutator] = [
        PodMutator(clients.pci_devices, clients.virtual_machines, clients.vgpu_devices),
        PCIVMMutator(clients.pci_devices, clients.pci_device_claims, clients.pci_device_claims),
    ]
    router = AdmissionRouter(ADMISSION_TYPE_MUTATION)
    for m in mutators:
        router.add(m)
    return router, [m.resource() for m in mutators]


def validation(clients: Clients) -> tuple[AdmissionRouter, list[Resource]]:
    """Build the validating router and the resources it covers."""
    validators: list[Validator] = [
        SriovNetworkDeviceValidator(clients.pci_device_claims),
        PCIDeviceClaimValidator(
            clients.pci_devices, clients.virtual_machines, clients.usb_device_claims
        ),
        VGPUValidator(clients.virtual_machines),
        SRIOVGPUValidator(clients.virtual_machines),
        USBDeviceClaimValidator(clients.virtual_machines),
        DeviceHostValidator(clients.usb_devices, clients.pci_devices),
        USBDeviceValidator(),
    ]
    router = AdmissionRouter(ADMISSION_TYPE_VALIDATION)
    for v in validators:
        router.add(v)
    return router, [v.resource() for v in validators]