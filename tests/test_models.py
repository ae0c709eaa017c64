from pcidevwebhook.models import (
    GPU,
    Container,
    HostDevice,
    OwnerReference,
    PCIDeviceClaim,
    Pod,
    VirtualMachine,
    pod_from_dict,
    virtual_machine_from_dict,
)


def _vm_dict():
    return {
        "metadata": {"name": "vgpu-vm", "namespace": "default"},
        "spec": {
            "template": {
                "spec": {
                    "domain": {
                        "devices": {
                            "hostDevices": [
                                {"name": "usbdevice1", "deviceName": "fake.com/device1"}
                            ],
                            "gpus": [{"name": "vgpu1", "deviceName": "nvidia.com/fakevgpu"}],
                        }
                    }
                }
            }
        },
    }


def test_host_device_to_dict_uses_api_field_names():
    dev = HostDevice(name="node1dev1", device_name="fake.com/device1")
    assert dev.to_dict() == {"name": "node1dev1", "deviceName": "fake.com/device1"}


def test_virtual_machine_from_dict_reads_devices():
    vm = virtual_machine_from_dict(_vm_dict())
    assert vm == VirtualMachine(
        name="vgpu-vm",
        namespace="default",
        host_devices=[HostDevice("usbdevice1", "fake.com/device1")],
        gpus=[GPU("vgpu1", "nvidia.com/fakevgpu")],
    )


def test_virtual_machine_from_dict_without_template():
    vm = virtual_machine_from_dict({"metadata": {"name": "novgpu-vm"}, "spec": {}})
    assert vm.name == "novgpu-vm"
    assert vm.host_devices == []
    assert vm.gpus == []


def test_pod_from_dict_reads_capabilities():
    data = {
        "metadata": {
            "name": "virt-launcher-demo-clvzw",
            "namespace": "default",
            "labels": {"kubevirt.io": "virt-launcher", "harvesterhci.io/vmName": "demo"},
        },
        "spec": {
            "containers": [
                {
                    "name": "compute",
                    "securityContext": {
                        "capabilities": {
                            "add": ["NET_BIND_SERVICE", "SYS_NICE"],
                            "drop": ["NET_RAW"],
                        }
                    },
                }
            ]
        },
    }
    pod = pod_from_dict(data)
    assert pod.labels["harvesterhci.io/vmName"] == "demo"
    assert pod.containers[0].capabilities_add == ["NET_BIND_SERVICE", "SYS_NICE"]
    assert pod.containers[0].capabilities_drop == ["NET_RAW"]


def test_pod_round_trip():
    pod = Pod(
        name="virt-launcher-fake",
        namespace="default",
        labels={"kubevirt.io": "virt-launcher"},
        containers=[
            Container("compute", "fakeimage", ["NET_BIND_SERVICE", "SYS_NICE"], ["NET_RAW"]),
            Container("sidecar"),
        ],
    )
    assert pod_from_dict(pod.to_dict()) == pod


def test_pod_to_dict_omits_empty_capability_lists():
    pod = Pod(name="p", containers=[Container("compute", capabilities_drop=["NET_RAW"])])
    container = pod.to_dict()["spec"]["containers"][0]
    assert "add" not in container["securityContext"]["capabilities"]
    assert container["securityContext"]["capabilities"]["drop"] == ["NET_RAW"]


def test_pci_device_claim_to_dict():
    claim = PCIDeviceClaim(
        name="node1dev2",
        user_name="admin",
        node_name="node1",
        address="0000:04:10.1",
        owner_references=[OwnerReference("v1", "PCIDevice", "node1dev2", "uid-1")],
    )
    data = claim.to_dict()
    assert data["kind"] == "PCIDeviceClaim"
    assert data["metadata"]["name"] == "node1dev2"
    assert data["metadata"]["ownerReferences"][0]["name"] == "node1dev2"
    assert data["spec"] == {"address": "0000:04:10.1", "nodeName": "node1", "userName": "admin"}