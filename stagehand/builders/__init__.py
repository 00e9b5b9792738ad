"""Stagehand builders package.

Provides the image builders an actor can be built with:
- LifecycleBuilder: buildpacks lifecycle in a Job
- ImageBuilder: kpack Image resource

BuilderRegistry maps the configured builder kind to an instance, and
BuildOrchestrator decides when a build is needed.
"""

from stagehand.builders.base import Builder
from stagehand.builders.image import ImageBuilder
from stagehand.builders.lifecycle import LifecycleBuilder
from stagehand.builders.orchestrator import BuildOrchestrator
from stagehand.builders.registry import BuilderRegistry

__all__ = [
    "Builder",
    "BuildOrchestrator",
    "BuilderRegistry",
    "ImageBuilder",
    "LifecycleBuilder",
]
