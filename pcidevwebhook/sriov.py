"""Validation of SR-IOV network devices."""

from __future__ import annotations

import logging
from typing import Any

from .admission import AdmissionError, Operation, Resource, Scope, Validator
from .models import DEVICES_GROUP, DEVICES_VERSION, SRIOVNetworkDevice
from .store import NotFoundError, ObjectCache

log = logging.getLogger(__name__)


class SriovNetworkDeviceValidator(Validator):
    """Deny disabling or deleting a network device whose virtual functions are claimed."""

    def __init__(self, claim_cache: ObjectCache) -> None:
        self._claim_cache = claim_cache

    def resource(self) -> Resource:
        return Resource(
            names=("sriovnetworkdevices",),
            scope=Scope.CLUSTER,
            api_group=DEVICES_GROUP,
            api_version=DEVICES_VERSION,
            object_type=SRIOVNetworkDevice,
            operation_types=(Operation.DELETE, Operation.UPDATE),
        )

    def update(self, request: Any, old_obj: SRIOVNetworkDevice, new_obj: SRIOVNetworkDevice) -> None:
        if old_obj.num_vfs == new_obj.num_vfs:
            return
        if new_obj.num_vfs == 0:
            self._check_vf_in_use(new_obj)

    def delete(self, request: Any, old_obj: SRIOVNetworkDevice) -> None:
        self._check_vf_in_use(old_obj)

    def _check_vf_in_use(self, device: SRIOVNetworkDevice) -> None:
        claims_found = []
        for vf in device.vf_pci_devices:
            try:
                claim = self._claim_cache.get(vf)
            except NotFoundError:
                log.debug("skipping vf pcidevice %s, as no claim exists for it", vf)
                continue
            claims_found.append(claim.name)

        if claims_found:
            message = (
                f"found pcideviceclaims: {','.join(claims_found)} related to "
                f"sriovnetworkdevice {device.name} in use"
            )
            log.error(message)
            raise AdmissionError(message)