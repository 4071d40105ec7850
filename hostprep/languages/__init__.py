from .node import NpmInstallStep
from .rust import CargoBuildStep

__all__ = [
    "NpmInstallStep",
    "CargoBuildStep",
]
