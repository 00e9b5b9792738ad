"""
stagehand - Kubernetes operator for Playbooks of buildable Actors

Reconciles Playbooks into namespaces full of Actors, resolves their partner
dependencies, builds missing images and deploys the results.
"""

__version__ = "0.1.0"
__author__ = "Stagehand Team"


__all__ = ["StagehandConfig", "load_config", "get_stagehand_home"]

from .config import StagehandConfig, load_config, get_stagehand_home
