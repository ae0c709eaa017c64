"""In-memory object caches with named indexes, and the set of caches the webhook uses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, TypeVar

T = TypeVar("T")


class NotFoundError(LookupError):
    """Raised when an object is not in a cache."""

    def __init__(self, name: str) -> None:
        super().__init__(f'"{name}" not found')
        self.name = name


class AlreadyExistsError(Exception):
    """Raised when creating an object whose name is already taken."""

    def __init__(self, name: str) -> None:
        super().__init__(f'"{name}" already exists')
        self.name = name


class ObjectCache(Generic[T]):
    """Objects keyed by name, searchable through registered indexers."""

    def __init__(self, objects: Iterable[T] = ()) -> None:
        self._objects: dict[str, T] = {}
        self._indexers: dict[str, Callable[[T], list[str]]] = {}
        for obj in objects:
            self.add(obj)

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, name: object) -> bool:
        return name in self._objects

    def add(self, obj: T) -> None:
        """Store an object, replacing any with the same name."""
        self._objects[_name_of(obj)] = obj

    def create(self, obj: T) -> T:
        """Store a new object; raise AlreadyExistsError if the name is taken."""
        name = _name_of(obj)
        if name in self._objects:
            raise AlreadyExistsError(name)
        self._objects[name] = obj
        return obj

    def get(self, name: str) -> T:
        """Return the object with this name or raise NotFoundError."""
        try:
            return self._objects[name]
        except KeyError:
            raise NotFoundError(name) from None

    def list(self) -> list[T]:
        """Return all objects in the order they were first stored."""
        return list(self._objects.values())

    def add_indexer(self, name: str, func: Callable[[T], list[str]]) -> None:
        """Register a function that maps an object to its index keys."""
        self._indexers[name] = func

    def get_by_index(self, index_name: str, key: str) -> list[T]:
        """Return the objects whose index keys under index_name include key."""
        try:
            indexer = self._indexers[index_name]
        except KeyError:
            raise KeyError(f"index with name {index_name} does not exist") from None
        return [obj for obj in self._objects.values() if key in indexer(obj)]


def _name_of(obj: Any) -> str:
    return obj.name


@dataclass
class Clients:
    """The caches the admission handlers read from and write to."""

    virtual_machines: ObjectCache = field(default_factory=ObjectCache)
    pci_devices: ObjectCache = field(default_factory=ObjectCache)
    pci_device_claims: ObjectCache = field(default_factory=ObjectCache)
    usb_devices: ObjectCache = field(default_factory=ObjectCache)
    usb_device_claims: ObjectCache = field(default_factory=ObjectCache)
    vgpu_devices: ObjectCache = field(default_factory=ObjectCache)
    sriov_gpu_devices: ObjectCache = field(default_factory=ObjectCache)
    sriov_network_devices: ObjectCache = field(default_factory=ObjectCache)