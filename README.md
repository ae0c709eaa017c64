# pcidevwebhook

An admission webhook for host device passthrough. It validates and mutates
the objects that describe PCI devices, USB devices, vGPUs and SR-IOV
devices, and the virtual machines that use them.

## What it checks

Validators refuse a request by raising `AdmissionError`
(`pcidevwebhook.admission`):

- **PCI device claims** (`pciclaim.PCIDeviceClaimValidator`): a claim cannot
  be created for a device that has no IOMMU group, nor while a USB device
  claim holds the same node and PCI address. A claim that a VM still lists
  among its host devices cannot be deleted.
- **SR-IOV network devices** (`sriov.SriovNetworkDeviceValidator`): the
  number of VFs cannot be changed to 0, and the device cannot be deleted,
  while any of its VF PCI devices has a claim.
- **vGPU devices** (`vgpu.VGPUValidator`): a vGPU that a VM uses cannot be
  disabled or deleted. Enabling one needs a `vgpu_type_name` that is among
  the device's `available_types`.
- **SR-IOV GPU devices** (`sriovgpu.SRIOVGPUValidator`): a device cannot be
  disabled while a VM uses any of its vGPUs, and an enabled device cannot be
  deleted.
- **USB devices and claims** (`usb.USBDeviceValidator`,
  `usb.USBDeviceClaimValidator`): an enabled USB device cannot be deleted,
  nor a claim that a VM still uses.
- **Virtual machines** (`vmvalidation.DeviceHostValidator`): the USB and PCI
  host devices of a VM must all be on the same node.

Mutators return lists of JSON patch operations (as strings):

- **Pods** (`pod.PodMutator`): for a pod labelled `kubevirt.io: virt-launcher`
  whose VM (found by the `harvesterhci.io/vmName` label) has a GPU, or a host
  device whose resource name matches a known PCI device, each container named
  `compute` gets the `SYS_RESOURCE` capability added.
- **Virtual machines** (`vmmutator.PCIVMMutator`): on create, a VM that
  asks for a claimed PCI device also gets every other device in the same
  IOMMU group on that node, and missing claims for those devices are created
  with the same user name. Update requests yield no patch.

## Using it as a library

Objects are plain dataclasses from `pcidevwebhook.models`. They are kept in
in-memory `ObjectCache` instances, grouped in `Clients`
(`pcidevwebhook.store`). `register_indexers(clients)` installs the index
lookups the handlers rely on. `mutation(clients)` and `validation(clients)`
each return an `AdmissionRouter` and the list of `Resource`s it covers:

```python
from pcidevwebhook.indexer import register_indexers
from pcidevwebhook.store import Clients
from pcidevwebhook.webhook import mutation, validation

clients = Clients()
register_indexers(clients)
mutating_router, mutation_resources = mutation(clients)
validating_router, validation_resources = validation(clients)
response = validating_router.handle(review)  # review: an AdmissionReview dict
```

`handle` returns an AdmissionReview response. A denied request has
`allowed: False` and the error message in `status`; a mutation with changes
carries a base64 `JSONPatch`.

`build_webhook_configurations(ca_bundle, mutation_resources,
validation_resources)` returns the mutating and validating webhook
configuration documents that point the cluster at the service.

## Running the server

```
pip install .
pcidevwebhook --cert server.crt --key server.key
```

Options: `--host` (default `0.0.0.0`), `--port` (default 8443), `--cert` and
`--key` (required). `AdmissionWebhookServer` answers POSTs at
`/v1/webhook/mutation` and `/v1/webhook/validation` over TLS 1.2 or newer.
`AdmissionWebhookServer.dispatch(path, body)` runs the same routing without
a socket, and `on_ca_secret(secret)` builds the webhook configurations from
a CA secret carrying `tls.crt`.

## What it does not do

The package does not talk to a cluster. Its caches are filled only by the
caller, and the command starts with empty caches. It does not issue or
rotate TLS certificates, and it does not apply the webhook configurations it
builds.

## Tests

```
pip install ".[test]"
pytest
```