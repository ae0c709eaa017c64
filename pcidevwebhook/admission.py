"""Admission handler interfaces, resource rules and webhook configuration objects."""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

log = logging.getLogger(__name__)

CERT_NAME = "pcidevices-webhook-tls"
CA_NAME = "pcidevices-webhook-ca"
PORT = 8443
MUTATION_PATH = "/v1/webhook/mutation"
VALIDATION_PATH = "/v1/webhook/validation"
NAMESPACE = "harvester-system"
SERVICE_NAME = "pcidevices-webhook"
WEBHOOK_NAME = "pcidevices.harvesterhci.io"
MUTATOR_NAME = "pcidevices-mutator"
VALIDATOR_NAME = "pcidevices-validator"
ADMISSION_REVIEW_VERSIONS = ("v1", "v1beta1")
FAILURE_POLICY = "Ignore"
SIDE_EFFECTS = "None"


class Operation(str, Enum):
    """Admission operations a handler can be registered for."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


class Scope(str, Enum):
    """Scope of the resources a rule matches."""

    CLUSTER = "Cluster"
    NAMESPACED = "Namespaced"


@dataclass(frozen=True)
class Resource:
    """The resource an admission handler covers, and for which operations."""

    names: tuple[str, ...]
    scope: Scope
    api_group: str
    api_version: str
    object_type: type | None
    operation_types: tuple[Operation, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "names", tuple(self.names))
        object.__setattr__(self, "operation_types", tuple(self.operation_types))


@dataclass(frozen=True)
class RuleWithOperations:
    """A webhook rule: which operations on which resources are sent to it."""

    operations: tuple[Operation, ...]
    api_groups: tuple[str, ...]
    api_versions: tuple[str, ...]
    resources: tuple[str, ...]
    scope: Scope

    def to_dict(self) -> dict[str, Any]:
        """Return the rule in its API form."""
        return {
            "operations": [op.value for op in self.operations],
            "apiGroups": list(self.api_groups),
            "apiVersions": list(self.api_versions),
            "resources": list(self.resources),
            "scope": self.scope.value,
        }


class AdmissionError(Exception):
    """Raised by a handler to deny a request."""


class Validator(ABC):
    """Base for validating handlers; operations are allowed unless overridden."""

    @abstractmethod
    def resource(self) -> Resource:
        """Describe the resource and operations this validator covers."""

    def create(self, request: Any, new_obj: Any) -> None:
        """Validate a create request; allowed by default."""
        return None

    def update(self, request: Any, old_obj: Any, new_obj: Any) -> None:
        """Validate an update request; allowed by default."""
        return None

    def delete(self, request: Any, old_obj: Any) -> None:
        """Validate a delete request; allowed by default."""
        return None


class Mutator(ABC):
    """Base for mutating handlers; covered operations yield no patch unless overridden."""

    @abstractmethod
    def resource(self) -> Resource:
        """Describe the resource and operations this mutator covers."""

    def _default_patch(self, operation: Operation) -> list[str]:
        rsc = self.resource()
        if operation not in rsc.operation_types:
            raise AdmissionError(
                f"operation {operation.value} is not handled for {','.join(rsc.names)}"
            )
        return []

    def create(self, request: Any, new_obj: Any) -> list[str]:
        """Return JSON patch operations for a create request."""
        return self._default_patch(Operation.CREATE)

    def update(self, request: Any, old_obj: Any, new_obj: Any) -> list[str]:
        """Return JSON patch operations for an update request."""
        return self._default_patch(Operation.UPDATE)

    def delete(self, request: Any, old_obj: Any) -> list[str]:
        """Return JSON patch operations for a delete request."""
        return self._default_patch(Operation.DELETE)


def build_rules(resources: Iterable[Resource]) -> list[RuleWithOperations]:
    """Turn handler resources into webhook rules, one per resource."""
    rules = []
    for rsc in resources:
        log.debug("add rule for %s", rsc)
        rules.append(
            RuleWithOperations(
                operations=rsc.operation_types,
                api_groups=(rsc.api_group,),
                api_versions=(rsc.api_version,),
                resources=rsc.names,
                scope=rsc.scope,
            )
        )
    return rules


def _webhook_configuration(
    kind: str, name: str, path: str, ca_bundle: bytes, rules: list[RuleWithOperations]
) -> dict[str, Any]:
    return {
        "apiVersion": "admissionregistration.k8s.io/v1",
        "kind": kind,
        "metadata": {"name": name},
        "webhooks": [
            {
                "name": WEBHOOK_NAME,
                "clientConfig": {
                    "service": {
                        "namespace": NAMESPACE,
                        "name": SERVICE_NAME,
                        "path": path,
                        "port": PORT,
                    },
                    "caBundle": base64.b64encode(ca_bundle).decode("ascii"),
                },
                "rules": [rule.to_dict() for rule in rules],
                "failurePolicy": FAILURE_POLICY,
                "sideEffects": SIDE_EFFECTS,
                "admissionReviewVersions": list(ADMISSION_REVIEW_VERSIONS),
            }
        ],
    }


def build_webhook_configurations(
    ca_bundle: bytes,
    mutation_resources: Iterable[Resource],
    validation_resources: Iterable[Resource],
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return the mutating and validating webhook configurations to apply."""
    log.debug("building validation rules")
    validation_rules = build_rules(validation_resources)
    log.debug("building mutation rules")
    mutation_rules = build_rules(mutation_resources)
    mutating = _webhook_configuration(
        "MutatingWebhookConfiguration", MUTATOR_NAME, MUTATION_PATH, ca_bundle, mutation_rules
    )
    validating = _webhook_configuration(
        "ValidatingWebhookConfiguration",
        VALIDATOR_NAME,
        VALIDATION_PATH,
        ca_bundle,
        validation_rules,
    )
    return mutating, validating