# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-03
# Description: ModelVariant
# -----------------------------------------------------------------------------
from dataclasses import dataclass
from typing import Dict, Union


@dataclass(frozen=True)
class ModelVariant:
    """
    One embedding model the provider can load.
    `version` tags every vector it produces; vectors of different versions
    live in different index directories and are never compared.
    """

    name: str
    model_name: str
    dimensions: int

    @property
    def version(self) -> str:
        return f"{self.name}@{self.dimensions}"


MODEL_VARIANTS: Dict[str, ModelVariant] = {
    "openai-small": ModelVariant("openai-small", "text-embedding-3-small", 1536),
    "openai-small-512": ModelVariant("openai-small-512", "text-embedding-3-small", 512),
    "openai-large": ModelVariant("openai-large", "text-embedding-3-large", 3072),
    "openai-large-1024": ModelVariant("openai-large-1024", "text-embedding-3-large", 1024),
}


def resolve_variant(variant: Union[str, ModelVariant]) -> ModelVariant:
    if isinstance(variant, ModelVariant):
        return variant
    try:
        return MODEL_VARIANTS[variant]
    except KeyError:
        raise ValueError(
            f"Unknown embedding variant '{variant}'. Known: {sorted(MODEL_VARIANTS)}"
        ) from None
