"""
Provisioning: cloud resources created by an external deployer.
"""

from .resource import (
    EmulatorResourceAnnotation,
    OutputReference,
    Provisioner,
    ProvisioningResource,
    ResourceInfrastructure,
    provisioned_owner,
)

__all__ = [
    "EmulatorResourceAnnotation",
    "OutputReference",
    "Provisioner",
    "ProvisioningResource",
    "ResourceInfrastructure",
    "provisioned_owner",
]
