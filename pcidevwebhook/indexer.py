"""Index functions and their registration on the webhook caches."""

from __future__ import annotations

from .models import PCIDevice, USBDeviceClaim, VirtualMachine
from .store import Clients

VM_BY_NAME = "harvesterhci.io/vm-by-name"
PCI_DEVICE_BY_RESOURCE_NAME = "harvesterhcio.io/pcidevice-by-resource-name"
IOMMU_GROUP_BY_NODE = "pcidevice.harvesterhci.io/iommu-by-node"
USB_DEVICE_BY_ADDRESS = "pcidevice.harvesterhci.io/usb-device-by-address"
VM_BY_PCI_DEVICE_CLAIM = "harvesterhci.io/vm-by-pcideviceclaim"
VM_BY_USB_DEVICE_CLAIM = "harvesterhci.io/vm-by-usbdeviceclaim"
VM_BY_VGPU = "harvesterhci.io/vm-by-vgpu"


def vm_by_name(vm: VirtualMachine) -> list[str]:
    """Index a VM by name and namespace."""
    return [f"{vm.name}-{vm.namespace}"]


def pci_device_by_resource_name(device: PCIDevice) -> list[str]:
    """Index a PCI device by its resource name."""
    return [device.resource_name]


def iommu_group_by_node_name(device: PCIDevice) -> list[str]:
    """Index a PCI device by node name and IOMMU group, unique across the cluster."""
    return [f"{device.node_name}-{device.iommu_group}"]


def vm_by_host_device_name(vm: VirtualMachine) -> list[str]:
    """Index a VM by the names of its host devices (PCI or USB claim names)."""
    return [dev.name for dev in vm.host_devices]


def vm_by_vgpu_device(vm: VirtualMachine) -> list[str]:
    """Index a VM by the names of its GPUs."""
    return [gpu.name for gpu in vm.gpus]


def usb_device_claim_by_address(claim: USBDeviceClaim) -> list[str]:
    """Index a USB device claim by node name and PCI address."""
    return [f"{claim.node_name}-{claim.pci_address}"]


def register_indexers(clients: Clients) -> None:
    """Register every index the admission handlers look objects up by."""
    vms = clients.virtual_machines
    vms.add_indexer(VM_BY_NAME, vm_by_name)
    vms.add_indexer(VM_BY_PCI_DEVICE_CLAIM, vm_by_host_device_name)
    vms.add_indexer(VM_BY_USB_DEVICE_CLAIM, vm_by_host_device_name)
    vms.add_indexer(VM_BY_VGPU, vm_by_vgpu_device)
    clients.pci_devices.add_indexer(PCI_DEVICE_BY_RESOURCE_NAME, pci_device_by_resource_name)
    clients.pci_devices.add_indexer(IOMMU_GROUP_BY_NODE, iommu_group_by_node_name)
    clients.usb_device_claims.add_indexer(USB_DEVICE_BY_ADDRESS, usb_device_claim_by_address)