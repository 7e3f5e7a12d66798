"""Load and resolve StandardsPolicy objects from YAML files."""

from __future__ import annotations

import importlib.resources
from pathlib import Path

import regex
import yaml

from psgate.errors import ConfigurationError
from psgate.policy.models import StandardsPolicy
from psgate.scanner.models import Severity
from psgate.scanner.patterns import Pattern

_PRESET_PREFIX = "preset:"


def load_policy(path: str | Path, _stack: list[str] | None = None) -> StandardsPolicy:
    """Load a policy from a YAML file path."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read policy {path}: {e.strerror or e}") from e
    data = _parse_yaml(text, str(path))
    key = str(Path(path).resolve())
    return _build_policy(data, key, _stack if _stack is not None else [])


def load_policy_from_string(text: str) -> StandardsPolicy:
    """Parse a YAML string into a policy, resolving inheritance."""
    return _build_policy(_parse_yaml(text, "<string>"), "<string>", [])


def load_preset(name: str) -> StandardsPolicy:
    return _load_preset(name, [])


def list_presets() -> list[str]:
    pkg = importlib.resources.files("psgate.policy.presets")
    return sorted(
        entry.name[: -len(".yaml")]
        for entry in pkg.iterdir()
        if entry.name.endswith(".yaml")
    )


def _parse_yaml(text: str, source: str) -> dict:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"{source}: invalid YAML: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{source}: policy YAML must be a mapping")
    return data


def _build_policy(data: dict, key: str, _stack: list[str]) -> StandardsPolicy:
    """Build one policy and merge its parents.

    ``key`` identifies the source (resolved file path or preset ref). Only the
    chain currently being resolved counts as a cycle, so a parent shared by
    two branches is fine.
    """
    name = str(data.get("name", "unnamed"))

    if key in _stack:
        chain = " -> ".join([*_stack[_stack.index(key) :], key])
        raise ConfigurationError(f"Circular policy inheritance detected: {chain}")

    inherit_list = data.get("inherit", [])
    if isinstance(inherit_list, str):
        inherit_list = [inherit_list]
    _stack.append(key)
    try:
        parents = [_load_ref(str(ref), _stack) for ref in inherit_list]
    finally:
        _stack.pop()

    own = StandardsPolicy(
        name=name,
        description=str(data.get("description", "")),
        version=str(data.get("version", "1")),
        approved_verbs=_str_tuple(data, "approved_verbs"),
        disabled_rules=_str_tuple(data, "disabled_rules"),
        severity_overrides=_parse_overrides(data.get("severity_overrides", {})),
        security_patterns=tuple(_parse_patterns(data.get("security_patterns", []))),
        extensions=tuple(_normalize_extension(e) for e in _str_tuple(data, "extensions")),
        exclude=_str_tuple(data, "exclude"),
        test_suffixes=_str_tuple(data, "test_suffixes"),
        inherit=tuple(inherit_list),
    )
    for parent in parents:
        own = _merge(own, parent)
    return own


def _merge(child: StandardsPolicy, parent: StandardsPolicy) -> StandardsPolicy:
    """Combine a policy with one parent; the child's settings win."""
    overrides = dict(parent.severity_overrides)
    overrides.update(dict(child.severity_overrides))

    # Own patterns first, parent patterns with the same id are shadowed
    own_ids = {p.id for p in child.security_patterns}
    patterns = child.security_patterns + tuple(
        p for p in parent.security_patterns if p.id not in own_ids
    )

    return StandardsPolicy(
        name=child.name,
        description=child.description or parent.description,
        version=child.version,
        approved_verbs=_unique(child.approved_verbs + parent.approved_verbs),
        disabled_rules=_unique(child.disabled_rules + parent.disabled_rules),
        severity_overrides=tuple(overrides.items()),
        security_patterns=patterns,
        extensions=child.extensions or parent.extensions,
        exclude=child.exclude or parent.exclude,
        test_suffixes=child.test_suffixes or parent.test_suffixes,
        inherit=child.inherit,
    )


def _str_tuple(data: dict, key: str) -> tuple[str, ...]:
    value = data.get(key, [])
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ConfigurationError(f"'{key}' must be a list of strings")
    return tuple(str(v) for v in value)


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def _parse_overrides(raw: object) -> tuple[tuple[str, Severity], ...]:
    if not isinstance(raw, dict):
        raise ConfigurationError("'severity_overrides' must be a mapping of rule id to severity")
    overrides: list[tuple[str, Severity]] = []
    for rule_id, value in raw.items():
        try:
            overrides.append((str(rule_id), Severity.parse(str(value))))
        except ValueError as e:
            raise ConfigurationError(f"severity_overrides.{rule_id}: {e}") from e
    return tuple(overrides)


def _parse_patterns(raw: object) -> list[Pattern]:
    if not isinstance(raw, list):
        raise ConfigurationError("'security_patterns' must be a list")
    patterns: list[Pattern] = []
    for i, p in enumerate(raw):
        if not isinstance(p, dict) or "id" not in p or "regex" not in p:
            raise ConfigurationError(f"security_patterns[{i}]: 'id' and 'regex' are required")
        flags = 0 if p.get("case_sensitive", False) else regex.IGNORECASE
        try:
            compiled = regex.compile(str(p["regex"]), flags)
            severity = Severity.parse(str(p.get("severity", "High")))
        except regex.error as e:
            raise ConfigurationError(f"security_patterns[{i}] ({p['id']}): bad regex: {e}") from e
        except ValueError as e:
            raise ConfigurationError(f"security_patterns[{i}] ({p['id']}): {e}") from e
        patterns.append(
            Pattern(
                id=str(p["id"]),
                regex=compiled,
                severity=severity,
                description=str(p.get("description", "")),
                remediation=str(p.get("remediation", "")),
            )
        )
    return patterns


def _unique(items: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))


def _load_ref(ref: str, _stack: list[str]) -> StandardsPolicy:
    if ref.startswith(_PRESET_PREFIX):
        preset_name = ref[len(_PRESET_PREFIX) :]
        return _load_preset(preset_name, _stack)
    # Treat as file path
    return load_policy(ref, _stack=_stack)


def _load_preset(name: str, _stack: list[str]) -> StandardsPolicy:
    filename = f"{name}.yaml"
    pkg = importlib.resources.files("psgate.policy.presets")
    resource = pkg.joinpath(filename)
    if not resource.is_file():
        raise ConfigurationError(f"Unknown policy preset: {name}")
    text = resource.read_text(encoding="utf-8")
    return _build_policy(_parse_yaml(text, f"preset:{name}"), f"{_PRESET_PREFIX}{name}", _stack)
