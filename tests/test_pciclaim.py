import pytest

from pcidevwebhook.admission import AdmissionError, Operation, Scope
from pcidevwebhook.indexer import register_indexers
from pcidevwebhook.models import (
    HostDevice,
    PCIDevice,
    PCIDeviceClaim,
    USBDeviceClaim,
    VirtualMachine,
)
from pcidevwebhook.pciclaim import PCIDeviceClaimValidator
from pcidevwebhook.store import Clients, NotFoundError, ObjectCache


def _device(name, address, class_id, description, node, resource, iommu):
    return PCIDevice(
        name=name,
        address=address,
        class_id=class_id,
        description=description,
        node_name=node,
        resource_name=resource,
        vendor_id="8086",
        kernel_driver_in_use="ixgbevf",
        iommu_group=iommu,
    )


def node1dev1():
    return _device("node1dev1", "0000:04:10.0", "0200", "fake device 1", "node1", "fake.com/device1", "89")


def node1dev2():
    return _device("node1dev2", "0000:04:10.1", "0200", "fake device 2", "node1", "fake.com/device2", "89")


def node1dev3():
    return _device("node1dev3", "0000:05:10.1", "0300", "fake device 3", "node1", "fake.com/device3", "99")


def node2dev1():
    return _device("node2dev1", "0000:04:10.0", "0300", "fake device 1", "node2", "fake.com/device1", "89")


def node1_no_iommu_dev():
    return _device(
        "node1dev1noiommu", "0000:04:10.0", "0200", "fake device 1", "node1", "fake.com/device1", ""
    )


def node1dev1_claim():
    return PCIDeviceClaim(name="node1dev1", user_name="admin", node_name="node1", address="0000:04:10.0")


def node1_no_iommu_claim():
    return PCIDeviceClaim(
        name="node1dev1noiommu", user_name="admin", node_name="node1", address="0000:04:10.0"
    )


def usb_device_claim1():
    return USBDeviceClaim(name="usbdeviceclaim1", node_name="node1", pci_address="0000:04:10.0")


def vm_with_iommu_device():
    return VirtualMachine(
        name="vm-with-iommu-devices",
        namespace="default",
        host_devices=[HostDevice(name="node1dev1", device_name="fake.com/device1")],
    )


def vm_without_valid_device_name():
    return VirtualMachine(name="vm-without-devices", namespace="default", host_devices=[])


def make_clients(**caches):
    clients = Clients(**{key: ObjectCache(objs) for key, objs in caches.items()})
    register_indexers(clients)
    return clients


def make_validator(clients, with_vms=True):
    return PCIDeviceClaimValidator(
        clients.pci_devices,
        clients.virtual_machines if with_vms else None,
        clients.usb_device_claims,
    )


def base_devices():
    return [node1dev1(), node1dev2(), node1dev3(), node2dev1()]


def test_resource_covers_create_and_delete():
    validator = make_validator(make_clients())
    rsc = validator.resource()
    assert rsc.names == ("pcideviceclaims",)
    assert rsc.scope is Scope.CLUSTER
    assert rsc.api_group == "devices.harvesterhci.io"
    assert rsc.api_version == "v1beta1"
    assert rsc.object_type is PCIDeviceClaim
    assert rsc.operation_types == (Operation.CREATE, Operation.DELETE)


def test_claim_without_iommu_is_denied():
    clients = make_clients(pci_devices=base_devices() + [node1_no_iommu_dev()])
    validator = make_validator(clients, with_vms=False)
    with pytest.raises(AdmissionError, match="pcidevice node1dev1noiommu has no iommuGroup available"):
        validator.create(None, node1_no_iommu_claim())


def test_claim_with_iommu_is_allowed():
    clients = make_clients(pci_devices=base_devices() + [node1_no_iommu_dev()])
    validator = make_validator(clients, with_vms=False)
    assert validator.create(None, node1dev1_claim()) is None


def test_claim_for_unknown_device_raises_not_found():
    clients = make_clients(pci_devices=base_devices())
    validator = make_validator(clients, with_vms=False)
    with pytest.raises(NotFoundError):
        validator.create(None, PCIDeviceClaim(name="missing"))


def test_claim_when_usb_claim_in_use_is_denied():
    clients = make_clients(pci_devices=base_devices(), usb_device_claims=[usb_device_claim1()])
    validator = make_validator(clients, with_vms=False)
    with pytest.raises(AdmissionError) as excinfo:
        validator.create(None, node1dev1_claim())
    assert str(excinfo.value) == (
        "usbdeviceclaim [usbdeviceclaim1] is used, so its pcidevice node1dev1 can't be claimed"
    )


def test_delete_claim_in_use_is_denied():
    clients = make_clients(pci_devices=base_devices(), virtual_machines=[vm_with_iommu_device()])
    validator = make_validator(clients)
    with pytest.raises(AdmissionError) as excinfo:
        validator.delete(None, node1dev1_claim())
    assert str(excinfo.value) == (
        "pcideviceclaim node1dev1 is already in use with vm vm-with-iommu-devices in namespace default"
    )


def test_delete_claim_not_in_use_is_allowed():
    clients = make_clients(
        pci_devices=base_devices(), virtual_machines=[vm_without_valid_device_name()]
    )
    validator = make_validator(clients)
    assert validator.delete(None, node1dev1_claim()) is None