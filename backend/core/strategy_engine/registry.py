# core/strategy_engine/registry.py
from dataclasses import fields
from typing import Any, Callable, Dict, List, Optional

from .contracts import Strategy
from .execution import ExecutionSink, PaperExecutionSink
from .strategies import MeanReversion, MeanReversionConfig, MomentumBreak, MomentumBreakConfig

# name -> (factory, config class)
STRATEGY_REGISTRY: Dict[str, tuple] = {
    MomentumBreak.name: (MomentumBreak, MomentumBreakConfig),
    MeanReversion.name: (MeanReversion, MeanReversionConfig),
}


def list_strategies() -> List[str]:
    return sorted(STRATEGY_REGISTRY)


def get_strategy_parameters(name: str) -> Dict[str, Any]:
    """Default parameters of a registered strategy"""
    _, config_cls = _lookup(name)
    defaults = config_cls()
    return {f.name: getattr(defaults, f.name) for f in fields(config_cls)}


def create_strategy(name: str, sink: Optional[ExecutionSink] = None, **parameters) -> Strategy:
    """
    Build a fresh strategy instance.

    Instances carry indicator state, so every run gets its own; never hand the
    same instance to two runs.
    """
    factory, config_cls = _lookup(name)
    known = {f.name for f in fields(config_cls)}
    unknown = set(parameters) - known
    if unknown:
        raise ValueError(f"Unknown parameters for {name}: {sorted(unknown)}")

    return factory(sink if sink is not None else PaperExecutionSink(), config_cls(**parameters))


def _lookup(name: str) -> tuple:
    if name not in STRATEGY_REGISTRY:
        raise ValueError(f"Unknown strategy '{name}'. Available: {list_strategies()}")
    return STRATEGY_REGISTRY[name]


def register_strategy(name: str, factory: Callable, config_cls: type) -> None:
    STRATEGY_REGISTRY[name] = (factory, config_cls)
