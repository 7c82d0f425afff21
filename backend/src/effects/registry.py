"""Effect registry — lookup of built-in sort effects by id."""

from types import ModuleType

import numpy as np

_REQUIRED_ATTRS = ("EFFECT_ID", "EFFECT_NAME", "EFFECT_CATEGORY", "PARAMS", "apply")

_REGISTRY: dict[str, ModuleType] = {}


def register(module: ModuleType):
    """Register an effect module. Raises ValueError on missing attrs or duplicate id."""
    missing = [a for a in _REQUIRED_ATTRS if not hasattr(module, a)]
    if missing:
        raise ValueError(f"{module.__name__} is missing {missing}")
    if module.EFFECT_ID in _REGISTRY and _REGISTRY[module.EFFECT_ID] is not module:
        raise ValueError(f"duplicate effect id: {module.EFFECT_ID}")
    _REGISTRY[module.EFFECT_ID] = module


def get(effect_id: str) -> ModuleType | None:
    return _REGISTRY.get(effect_id)


def list_all() -> list[dict]:
    """List all registered effects with their parameter schema."""
    return [
        {
            "id": eid,
            "name": mod.EFFECT_NAME,
            "category": mod.EFFECT_CATEGORY,
            "params": mod.PARAMS,
        }
        for eid, mod in _REGISTRY.items()
    ]


def apply(effect_id: str, frame: np.ndarray, params: dict) -> np.ndarray:
    """Run a registered effect on a single still frame.

    Raises:
        ValueError: If ``effect_id`` is not registered.
    """
    mod = get(effect_id)
    if mod is None:
        raise ValueError(f"unknown effect: {effect_id}")
    h, w = frame.shape[:2]
    output, _ = mod.apply(frame, params, None, frame_index=0, seed=0, resolution=(w, h))
    return output


def _auto_register():
    from effects.fx import pixelsort

    register(pixelsort)


_auto_register()
