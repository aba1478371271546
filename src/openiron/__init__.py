"""
OpenIron - Top surface detection and ironing for layer-based 3D printing.

Finds the parts of each sliced layer that face open air and plans a thin,
low-flow smoothing pass over them.
"""

__version__ = "0.1.0"
__author__ = "OpenIron Contributors"

from openiron.core.config import ConfigManager, IroningConfig, LineConfig
from openiron.pipeline import IroningPipeline, MeshJob

__all__ = [
    "__version__",
    "ConfigManager",
    "IroningConfig",
    "LineConfig",
    "IroningPipeline",
    "MeshJob",
]
