"""Rule plugins, the runner and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Iterable, List, Sequence, Set

from ..logging import get_logger
from ..models import FactSet, Finding
from .base import Rule
from .builtin import (
    PanicMacroInPublicApi,
    RiskyCallInPublicApi,
    StdInNoStd,
    UndocumentedPublicApi,
)

_ENTRY_POINT_GROUP = "cratescope.rules"

# Registration order is the reporting order.
_BUILTIN_FACTORIES: dict[str, Callable[[], Rule]] = {
    "KLEP001": UndocumentedPublicApi,
    "KLEP002": RiskyCallInPublicApi,
    "KLEP004": StdInNoStd,
    "KLEP003": PanicMacroInPublicApi,
}

logger = get_logger("rules")


class RuleRunner:
    """Runs registered rules in order and concatenates their findings."""

    def __init__(self, rules: Iterable[Rule] | None = None) -> None:
        self._rules: List[Rule] = list(rules or [])

    @classmethod
    def with_default_rules(cls) -> "RuleRunner":
        return cls(factory() for factory in _BUILTIN_FACTORIES.values())

    def add_rule(self, rule: Rule) -> "RuleRunner":
        if not isinstance(rule, Rule):
            raise TypeError(f"{rule!r} is not a Rule")
        self._rules.append(rule)
        return self

    @property
    def rules(self) -> List[Rule]:
        return list(self._rules)

    def run(self, facts: FactSet) -> List[Finding]:
        findings: List[Finding] = []
        for rule in self._rules:
            produced = list(rule.run(facts))
            logger.debug("Rule %s produced %d finding(s)", rule.code, len(produced))
            findings.extend(produced)
        return findings


def discover_rules(enabled: Sequence[str] | None = None) -> List[Rule]:
    """Return instantiated rules (built-ins, then plugins), honoring enabled codes or names."""

    enabled_set: Set[str] | None = None
    if enabled:
        enabled_set = {item.upper() for item in enabled}

    rules: List[Rule] = []
    seen: Set[str] = set()

    def _add(key: str, factory: Callable[[], Rule]) -> None:
        instance = factory()
        if not isinstance(instance, Rule):
            raise TypeError(f"Rule factory for '{key}' did not return a Rule instance")
        code = (instance.code or key).upper()
        aliases = {code, key.upper(), instance.name.upper()} - {""}
        if enabled_set is not None and not aliases & enabled_set:
            return
        if code in seen:
            return
        rules.append(instance)
        seen.add(code)
        if enabled_set is not None:
            enabled_set.difference_update(aliases)

    for key, factory in _BUILTIN_FACTORIES.items():
        _add(key, factory)

    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"Failed to load rule entry point '{entry.name}': {exc}") from exc

        def _factory(obj: object = loaded) -> Rule:
            return _coerce_rule(obj)

        _add(entry.name, _factory)

    if enabled_set:
        missing = ", ".join(sorted(enabled_set))
        raise ValueError(f"Unknown rules requested: {missing}")

    return rules


def _coerce_rule(obj: object) -> Rule:
    if isinstance(obj, Rule):
        return obj
    if isinstance(obj, type) and issubclass(obj, Rule):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, Rule):
            return instance
    raise TypeError("Rule entry point must be a Rule subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = ["Rule", "RuleRunner", "discover_rules"]
