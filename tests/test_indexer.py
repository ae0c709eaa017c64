import pytest

from pcidevwebhook.indexer import (
    IOMMU_GROUP_BY_NODE,
    PCI_DEVICE_BY_RESOURCE_NAME,
    USB_DEVICE_BY_ADDRESS,
    VM_BY_PCI_DEVICE_CLAIM,
    VM_BY_USB_DEVICE_CLAIM,
    VM_BY_VGPU,
    iommu_group_by_node_name,
    pci_device_by_resource_name,
    register_indexers,
    usb_device_claim_by_address,
    vm_by_host_device_name,
    vm_by_name,
    vm_by_vgpu_device,
)
from pcidevwebhook.models import GPU, HostDevice, PCIDevice, USBDeviceClaim, VirtualMachine
from pcidevwebhook.store import Clients


@pytest.fixture
def node1dev1():
    return PCIDevice(
        name="node1dev1",
        address="0000:04:10.0",
        node_name="node1",
        resource_name="fake.com/device1",
        iommu_group="89",
    )


@pytest.fixture
def node2dev1():
    return PCIDevice(
        name="node2dev1",
        address="0000:04:10.0",
        node_name="node2",
        resource_name="fake.com/device1",
        iommu_group="89",
    )


@pytest.fixture
def vm1():
    return VirtualMachine(
        name="vgpu-vm",
        namespace="default",
        host_devices=[HostDevice("node1dev1", "fake.com/device1")],
        gpus=[GPU("vgpu1", "nvidia.com/fakevgpu")],
    )


def test_vm_by_name(vm1):
    assert vm_by_name(vm1) == ["vgpu-vm-default"]


def test_iommu_group_by_node_name(node1dev1):
    assert iommu_group_by_node_name(node1dev1) == ["node1-89"]


def test_pci_device_by_resource_name(node1dev1):
    assert pci_device_by_resource_name(node1dev1) == [node1dev1.resource_name]


def test_vm_device_indexes(vm1):
    assert vm_by_host_device_name(vm1) == ["node1dev1"]
    assert vm_by_vgpu_device(vm1) == ["vgpu1"]
    assert vm_by_vgpu_device(VirtualMachine(name="novgpu-vm")) == []


def test_usb_claim_index_matches_device_iommu_key_shape(node1dev1):
    claim = USBDeviceClaim(name="usbdeviceclaim1", node_name="node1", pci_address="0000:04:10.0")
    (key,) = usb_device_claim_by_address(claim)
    assert key.startswith(claim.node_name)
    assert key.endswith(claim.pci_address)


def test_register_indexers(vm1, node1dev1, node2dev1):
    clients = Clients()
    clients.virtual_machines.add(vm1)
    clients.pci_devices.add(node1dev1)
    clients.pci_devices.add(node2dev1)
    claim = USBDeviceClaim(name="usbdeviceclaim1", node_name="node1", pci_address="0000:04:10.0")
    clients.usb_device_claims.add(claim)
    register_indexers(clients)

    assert clients.virtual_machines.get_by_index(VM_BY_VGPU, "vgpu1") == [vm1]
    assert clients.virtual_machines.get_by_index(VM_BY_PCI_DEVICE_CLAIM, "node1dev1") == [vm1]
    assert clients.virtual_machines.get_by_index(VM_BY_USB_DEVICE_CLAIM, "other") == []
    assert clients.pci_devices.get_by_index(
        PCI_DEVICE_BY_RESOURCE_NAME, "fake.com/device1"
    ) == [node1dev1, node2dev1]
    (key,) = iommu_group_by_node_name(node2dev1)
    assert clients.pci_devices.get_by_index(IOMMU_GROUP_BY_NODE, key) == [node2dev1]
    (usb_key,) = usb_device_claim_by_address(claim)
    assert clients.usb_device_claims.get_by_index(USB_DEVICE_BY_ADDRESS, usb_key) == [claim]