import json

from pcidevwebhook.indexer import register_indexers
from pcidevwebhook.models import HostDevice, PCIDevice, PCIDeviceClaim, VirtualMachine
from pcidevwebhook.store import Clients, ObjectCache
from pcidevwebhook.vmmutator import (
    DeviceWithOwner,
    PCIVMMutator,
    generate_pci_device_claim,
    identify_additional_pci_devices,
)


def dev(name, address, node, resource, group):
    return PCIDevice(
        name=name, address=address, node_name=node, resource_name=resource, iommu_group=group
    )


node1dev1 = dev("node1dev1", "0000:04:10.0", "node1", "fake.com/device1", "89")
node1dev2 = dev("node1dev2", "0000:04:10.1", "node1", "fake.com/device2", "89")
node1dev3 = dev("node1dev3", "0000:05:10.1", "node1", "fake.com/device3", "99")
node2dev1 = dev("node2dev1", "0000:04:10.0", "node2", "fake.com/device1", "89")


def claim(name, address):
    return PCIDeviceClaim(name=name, user_name="admin", node_name="node1", address=address)


def make_mutator(*claims):
    clients = Clients(
        pci_devices=ObjectCache([node1dev1, node1dev2, node1dev3, node2dev1]),
        pci_device_claims=ObjectCache(claims),
    )
    register_indexers(clients)
    m = PCIVMMutator(clients.pci_devices, clients.pci_device_claims, clients.pci_device_claims)
    return m, clients


def vm(*devices):
    return VirtualMachine(
        name="vm", namespace="default", host_devices=[HostDevice(n, r) for n, r in devices]
    )


def test_vm_with_no_devices():
    m, _ = make_mutator(claim("node1dev1", "0000:04:10.0"))
    assert m.generate_patch(vm(("RandomName", "fake.com/device3"))) == []


def test_vm_without_iommu_devices():
    m, _ = make_mutator(claim("node1dev1", "0000:04:10.0"))
    assert m.generate_patch(vm(("node1dev3", "fake.com/device3"))) == []


def test_vm_with_iommu_devices():
    m, clients = make_mutator(claim("node1dev1", "0000:04:10.0"))
    ops = m.generate_patch(vm(("node1dev1", "fake.com/device1")))
    assert len(ops) == 1
    op = json.loads(ops[0])
    assert op["value"] == {"name": "node1dev2", "deviceName": "fake.com/device2"}
    assert clients.pci_device_claims.get("node1dev2").user_name == "admin"


def test_vm_with_all_iommu_devices():
    m, _ = make_mutator(claim("node1dev1", "0000:04:10.0"), claim("node1dev2", "0000:04:10.1"))
    ops = m.generate_patch(vm(("node1dev1", "fake.com/device1"), ("node1dev2", "fake.com/device2")))
    assert ops == []


def test_vm_without_valid_device_name():
    m, _ = make_mutator(claim("node1dev1", "0000:04:10.0"))
    assert m.generate_patch(vm()) == []
    assert m.create(None, vm()) == []


def test_identify_and_claim():
    items = [DeviceWithOwner(node1dev1, "a"), DeviceWithOwner(node1dev2, "a")]
    assert identify_additional_pci_devices(["node1dev1"], items) == [items[1]]
    c = generate_pci_device_claim(node1dev2, "admin")
    assert c.address == node1dev2.address
    assert c.owner_references[0].name == node1dev2.name