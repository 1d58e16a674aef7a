from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from .errors import ConfigError
from .models import Node, Pod
from .store import ClusterStateStore


KEY_RE = re.compile(r"^([a-z0-9]([-a-z0-9.]*[a-z0-9])?/)?[A-Za-z0-9]([-A-Za-z0-9_.]{0,61}[A-Za-z0-9])?$")
VALUE_RE = re.compile(r"^([A-Za-z0-9]([-A-Za-z0-9_.]{0,61}[A-Za-z0-9])?)?$")
SET_RE = re.compile(r"^(?P<key>\S+)\s+(?P<op>in|notin)\s*\((?P<values>[^()]*)\)$")
EQ_RE = re.compile(r"^(?P<key>[^=!\s]+)\s*(?P<op>==|=|!=)\s*(?P<value>\S*)$")


class Operator(str, Enum):
    EQUALS = "="
    NOT_EQUALS = "!="
    IN = "in"
    NOT_IN = "notin"
    EXISTS = "exists"
    DOES_NOT_EXIST = "!"


@dataclass(frozen=True)
class Requirement:
    key: str
    operator: Operator
    values: tuple[str, ...] = ()

    def matches(self, labels: Mapping[str, str]) -> bool:
        op = self.operator
        if op is Operator.EXISTS:
            return self.key in labels
        if op is Operator.DOES_NOT_EXIST:
            return self.key not in labels
        if op in (Operator.EQUALS, Operator.IN):
            return self.key in labels and labels[self.key] in self.values
        # != and notin also match when the key is absent
        return labels.get(self.key) not in self.values

    def __str__(self) -> str:
        op = self.operator
        if op is Operator.EXISTS:
            return self.key
        if op is Operator.DOES_NOT_EXIST:
            return f"!{self.key}"
        if op in (Operator.EQUALS, Operator.NOT_EQUALS):
            return f"{self.key}{op.value}{self.values[0]}"
        return f"{self.key} {op.value} ({','.join(self.values)})"


def _split_terms(expr: str) -> list[str]:
    """Split on commas that are not inside a value set."""
    terms: list[str] = []
    depth = 0
    cur = ""
    for ch in expr:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise ConfigError(f"Unbalanced ')' in selector {expr!r}.")
        if ch == "," and depth == 0:
            terms.append(cur)
            cur = ""
            continue
        cur += ch
    if depth != 0:
        raise ConfigError(f"Unbalanced '(' in selector {expr!r}.")
    terms.append(cur)
    return [t.strip() for t in terms]


def _check_key(key: str, expr: str) -> str:
    if not KEY_RE.match(key):
        raise ConfigError(f"Invalid label key {key!r} in selector {expr!r}.")
    return key


def _check_value(value: str, expr: str) -> str:
    if not VALUE_RE.match(value):
        raise ConfigError(f"Invalid label value {value!r} in selector {expr!r}.")
    return value


def _parse_term(term: str, expr: str) -> Requirement:
    if not term:
        raise ConfigError(f"Empty requirement in selector {expr!r}.")

    m = SET_RE.match(term)
    if m:
        key = _check_key(m.group("key"), expr)
        if not m.group("values").strip():
            raise ConfigError(f"Empty value set for {m.group('key')!r} in selector {expr!r}.")
        values = tuple(_check_value(v.strip(), expr) for v in m.group("values").split(","))
        op = Operator.IN if m.group("op") == "in" else Operator.NOT_IN
        return Requirement(key, op, tuple(sorted(set(values))))

    m = EQ_RE.match(term)
    if m:
        key = _check_key(m.group("key"), expr)
        value = _check_value(m.group("value"), expr)
        op = Operator.NOT_EQUALS if m.group("op") == "!=" else Operator.EQUALS
        return Requirement(key, op, (value,))

    if term.startswith("!"):
        return Requirement(_check_key(term[1:].strip(), expr), Operator.DOES_NOT_EXIST)
    return Requirement(_check_key(term, expr), Operator.EXISTS)


@dataclass(frozen=True)
class LabelSelector:
    """A parsed label selector: a conjunction of requirements."""

    requirements: tuple[Requirement, ...] = ()

    @classmethod
    def parse(cls, expr: str) -> "LabelSelector":
        """Parse `key=value`, `key!=value`, `key`, `!key`, `key in (a,b)`, `key notin (a,b)`.

        Terms are comma-separated and all must hold. An empty expression
        selects everything.
        """
        if not expr or not expr.strip():
            return cls()
        return cls(tuple(_parse_term(t, expr) for t in _split_terms(expr.strip())))

    def matches(self, labels: Mapping[str, str]) -> bool:
        return all(r.matches(labels) for r in self.requirements)

    def empty(self) -> bool:
        return not self.requirements

    def __str__(self) -> str:
        return ",".join(str(r) for r in self.requirements)


class ResourceKind(str, Enum):
    NODE = "node"
    POD = "pod"


def node_field_selector(node_name: str) -> str:
    return f"spec.nodeName={node_name}"


class ResourceSelector:
    """A label selector bound to one resource kind, parsed once and reused."""

    def __init__(self, kind: ResourceKind, expr: str):
        self.kind = kind
        self.expr = expr
        self.labels = LabelSelector.parse(expr)

    def __repr__(self) -> str:
        return f"ResourceSelector({self.kind.value}, {str(self.labels)!r})"

    def nodes(self, store: ClusterStateStore) -> list[Node]:
        if self.kind is not ResourceKind.NODE:
            raise TypeError(f"{self!r} does not select nodes")
        return store.list_nodes(str(self.labels))

    def pods(self, store: ClusterStateStore, namespace: str, node_name: str | None = None) -> list[Pod]:
        if self.kind is not ResourceKind.POD:
            raise TypeError(f"{self!r} does not select pods")
        field_selector = node_field_selector(node_name) if node_name else None
        return store.list_pods(namespace, field_selector=field_selector, label_selector=str(self.labels))
