"""Admission webhook validators and mutators for PCI, USB, vGPU and SR-IOV device objects."""

__version__ = "0.1.0"