"""Data types for the objects the admission webhook inspects and produces."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

DEVICES_GROUP = "devices.harvesterhci.io"
DEVICES_VERSION = "v1beta1"
KUBEVIRT_GROUP = "kubevirt.io"
KUBEVIRT_VERSION = "v1"
CORE_GROUP = ""
CORE_VERSION = "v1"


@dataclass
class OwnerReference:
    """Reference from an object to the object that owns it."""

    api_version: str
    kind: str
    name: str
    uid: str = ""

    def _to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
        }


@dataclass
class HostDevice:
    """A host device attached to a virtual machine."""

    name: str
    device_name: str = ""

    def to_dict(self) -> dict[str, str]:
        """Return the device in its API form."""
        return {"name": self.name, "deviceName": self.device_name}


@dataclass
class GPU:
    """A GPU attached to a virtual machine."""

    name: str
    device_name: str = ""


@dataclass
class VirtualMachine:
    """A virtual machine with its attached host devices and GPUs."""

    name: str
    namespace: str = ""
    host_devices: list[HostDevice] = field(default_factory=list)
    gpus: list[GPU] = field(default_factory=list)


@dataclass
class PCIDevice:
    """A PCI device discovered on a node."""

    name: str
    address: str = ""
    class_id: str = ""
    description: str = ""
    node_name: str = ""
    resource_name: str = ""
    vendor_id: str = ""
    device_id: str = ""
    kernel_driver_in_use: str = ""
    iommu_group: str = ""
    namespace: str = ""
    uid: str = ""
    api_version: str = f"{DEVICES_GROUP}/{DEVICES_VERSION}"
    kind: str = "PCIDevice"


@dataclass
class PCIDeviceClaim:
    """A claim that passes a PCI device through to virtual machines."""

    name: str
    user_name: str = ""
    node_name: str = ""
    address: str = ""
    owner_references: list[OwnerReference] = field(default_factory=list)
    namespace: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the claim in its API form."""
        metadata: dict[str, Any] = {"name": self.name}
        if self.namespace:
            metadata["namespace"] = self.namespace
        if self.owner_references:
            metadata["ownerReferences"] = [ref._to_dict() for ref in self.owner_references]
        return {
            "apiVersion": f"{DEVICES_GROUP}/{DEVICES_VERSION}",
            "kind": "PCIDeviceClaim",
            "metadata": metadata,
            "spec": {
                "address": self.address,
                "nodeName": self.node_name,
                "userName": self.user_name,
            },
        }


@dataclass
class USBDevice:
    """A USB device discovered on a node."""

    name: str
    node_name: str = ""
    resource_name: str = ""
    vendor_id: str = ""
    product_id: str = ""
    device_path: str = ""
    enabled: bool = False


@dataclass
class USBDeviceClaim:
    """A claim that passes a USB device through to virtual machines."""

    name: str
    node_name: str = ""
    pci_address: str = ""
    user_name: str = ""


@dataclass
class VGPUDevice:
    """A virtual GPU and the profiles it can be enabled with."""

    name: str
    enabled: bool = False
    vgpu_type_name: str = ""
    available_types: dict[str, str] = field(default_factory=dict)


@dataclass
class SRIOVGPUDevice:
    """A GPU that exposes virtual functions as vGPU devices."""

    name: str
    enabled: bool = False
    vgpu_devices: list[str] = field(default_factory=list)


@dataclass
class SRIOVNetworkDevice:
    """A network device that exposes virtual functions as PCI devices."""

    name: str
    address: str = ""
    node_name: str = ""
    num_vfs: int = 0
    vf_pci_devices: list[str] = field(default_factory=list)
    vf_addresses: list[str] = field(default_factory=list)


@dataclass
class Container:
    """A pod container together with its capability settings."""

    name: str
    image: str = ""
    capabilities_add: list[str] = field(default_factory=list)
    capabilities_drop: list[str] = field(default_factory=list)

    def _to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.image:
            data["image"] = self.image
        capabilities: dict[str, list[str]] = {}
        if self.capabilities_add:
            capabilities["add"] = list(self.capabilities_add)
        if self.capabilities_drop:
            capabilities["drop"] = list(self.capabilities_drop)
        if capabilities:
            data["securityContext"] = {"capabilities": capabilities}
        return data


@dataclass
class Pod:
    """A pod with its labels and containers."""

    name: str
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    containers: list[Container] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the pod in its API form."""
        metadata: dict[str, Any] = {"name": self.name}
        if self.namespace:
            metadata["namespace"] = self.namespace
        if self.labels:
            metadata["labels"] = dict(self.labels)
        return {
            "apiVersion": CORE_VERSION,
            "kind": "Pod",
            "metadata": metadata,
            "spec": {"containers": [c._to_dict() for c in self.containers]},
        }


def _container_from_dict(data: Mapping[str, Any]) -> Container:
    capabilities = (data.get("securityContext") or {}).get("capabilities") or {}
    return Container(
        name=data.get("name", ""),
        image=data.get("image", ""),
        capabilities_add=list(capabilities.get("add") or []),
        capabilities_drop=list(capabilities.get("drop") or []),
    )


def pod_from_dict(data: Mapping[str, Any]) -> Pod:
    """Build a Pod from its API form."""
    metadata = data.get("metadata") or {}
    spec = data.get("spec") or {}
    return Pod(
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace", ""),
        labels=dict(metadata.get("labels") or {}),
        containers=[_container_from_dict(c) for c in spec.get("containers") or []],
    )


def virtual_machine_from_dict(data: Mapping[str, Any]) -> VirtualMachine:
    """Build a VirtualMachine from its API form."""
    metadata = data.get("metadata") or {}
    template = (data.get("spec") or {}).get("template") or {}
    devices = ((template.get("spec") or {}).get("domain") or {}).get("devices") or {}
    return VirtualMachine(
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace", ""),
        host_devices=[
            HostDevice(name=d.get("name", ""), device_name=d.get("deviceName", ""))
            for d in devices.get("hostDevices") or []
        ],
        gpus=[
            GPU(name=g.get("name", ""), device_name=g.get("deviceName", ""))
            for g in devices.get("gpus") or []
        ],
    )