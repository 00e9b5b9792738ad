"""
Builder registry - maps builder kinds to Builder implementations.
"""

from typing import TYPE_CHECKING, Optional

from stagehand.builders.base import Builder
from stagehand.config import StagehandConfig
from stagehand.resources.store import ObjectStore

if TYPE_CHECKING:
    from stagehand.credentials import CredentialStore


class BuilderRegistry:
    """
    Registry for builder dispatch by kind.

    Usage:
        registry = BuilderRegistry.create_default(store, config)
        builder = registry.get(config.builder)
    """

    def __init__(self) -> None:
        self._builders: dict[str, Builder] = {}

    def register(self, kind: str, builder: Builder) -> None:
        self._builders[kind] = builder

    def get(self, kind: str) -> Builder:
        """
        Get the builder for a kind.

        Raises:
            KeyError: If no builder is registered for this kind
        """
        if kind not in self._builders:
            registered = list(self._builders.keys())
            raise KeyError(f"No builder registered for kind: {kind}. Registered: {registered}")
        return self._builders[kind]

    def has(self, kind: str) -> bool:
        return kind in self._builders

    def list_kinds(self) -> list[str]:
        return list(self._builders.keys())

    @classmethod
    def create_default(
        cls,
        store: ObjectStore,
        config: StagehandConfig,
        credentials: Optional["CredentialStore"] = None,
    ) -> "BuilderRegistry":
        """Create a registry with the lifecycle and image builders."""
        from stagehand.builders.image import ImageBuilder
        from stagehand.builders.lifecycle import LifecycleBuilder

        registry = cls()
        registry.register(LifecycleBuilder.kind, LifecycleBuilder(store, config, credentials))
        registry.register(ImageBuilder.kind, ImageBuilder(store, config, credentials))
        return registry
