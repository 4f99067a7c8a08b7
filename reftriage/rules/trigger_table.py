"""
Trigger Table - Immutable Rule Registry

Built once from declarative rule definitions at process start, then shared
read-only by every resolution. Validation is fail-closed: any problem
rejects the whole table, a partially valid table is never served.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from reftriage.errors import InvalidRuleDefinition
from reftriage.models.definition import TriggerTableDefinition
from reftriage.models.rule import (
    ALLOWED_MATCHERS,
    Contract,
    DocumentRef,
    MatcherKind,
    MatcherSpec,
    RuleType,
    SignalRequirement,
    TriggerRule,
)
from reftriage.models.signal import SignalKind
from reftriage.utils.text import (
    inverse_document_frequency,
    normalize_keyword,
    normalize_setting_key,
)

logger = logging.getLogger(__name__)


class TriggerTable:
    """
    Read-only registry of trigger rules, contracts and keyword weights.

    Use TriggerTable.build() or load_trigger_table(); the constructor is
    internal. Every container exposed is a tuple or a read-only mapping.
    """

    def __init__(
        self,
        version: str,
        rules: tuple[TriggerRule, ...],
        documents: Mapping[str, DocumentRef],
        fallback_category: str,
        contracts: tuple[Contract, ...],
        compiled_patterns: Mapping[str, re.Pattern],
    ):
        self._version = version
        self._rules = rules
        self._rules_by_id = MappingProxyType({r.id: r for r in rules})
        self._documents = MappingProxyType(dict(documents))
        self._fallback_category = fallback_category
        self._fallback_documents = tuple(
            d for d in documents.values() if d.category == fallback_category
        )

        by_category: dict[str, list[Contract]] = {}
        for contract in contracts:
            by_category.setdefault(contract.applies_to_category, []).append(contract)
        self._contracts = MappingProxyType({k: tuple(v) for k, v in by_category.items()})

        # Registration order; duplicates across rules share one compiled pattern
        self._patterns = tuple(compiled_patterns.items())

        keyword_rules = [r for r in rules if r.type == RuleType.KEYWORD]
        df = Counter(kw for r in keyword_rules for kw in r.keywords)
        n = len(keyword_rules)
        self._idf = MappingProxyType(
            {kw: inverse_document_frequency(count, n) for kw, count in df.items()}
        )
        self._default_weight = inverse_document_frequency(0, n)

        children = {
            child
            for r in rules
            if r.type == RuleType.DECISION_NODE
            for child in (r.if_true, r.if_false)
            if child is not None
        }
        self._roots = tuple(
            r.id for r in rules if r.type == RuleType.DECISION_NODE and r.id not in children
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls, definition: Union[TriggerTableDefinition, Mapping[str, Any]]
    ) -> "TriggerTable":
        """
        Validate definitions and build the table.

        Raises:
            InvalidRuleDefinition: listing every problem found.
        """
        if not isinstance(definition, TriggerTableDefinition):
            try:
                definition = TriggerTableDefinition.model_validate(definition)
            except ValidationError as e:
                raise InvalidRuleDefinition(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in e.errors()
                ) from e

        builder = _TableBuilder(definition)
        table = builder.build()
        logger.info(
            f"Trigger table v{table.version} loaded: {len(table.rules)} rules, "
            f"{len(table.roots)} decision root(s), {len(table.patterns)} pattern(s)"
        )
        return table

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def version(self) -> str:
        return self._version

    @property
    def rules(self) -> tuple[TriggerRule, ...]:
        return self._rules

    @property
    def direct_rules(self) -> tuple[TriggerRule, ...]:
        """ERROR_PATTERN and KEYWORD rules, in registration order."""
        return tuple(r for r in self._rules if r.type != RuleType.DECISION_NODE)

    @property
    def roots(self) -> tuple[str, ...]:
        """Ids of decision nodes that are no other node's child."""
        return self._roots

    @property
    def patterns(self) -> tuple[tuple[str, re.Pattern], ...]:
        return self._patterns

    @property
    def documents(self) -> Mapping[str, DocumentRef]:
        return self._documents

    @property
    def fallback_category(self) -> str:
        return self._fallback_category

    @property
    def fallback_documents(self) -> tuple[DocumentRef, ...]:
        return self._fallback_documents

    def get_rule(self, rule_id: str) -> Optional[TriggerRule]:
        return self._rules_by_id.get(rule_id)

    def contracts_for(self, category: str) -> tuple[Contract, ...]:
        return self._contracts.get(category, ())

    def keyword_weight(self, keyword: str) -> float:
        """IDF weight of a keyword; terms outside the vocabulary weigh the most."""
        return self._idf.get(keyword, self._default_weight)

    @property
    def vocabulary(self) -> frozenset[str]:
        return frozenset(self._idf)

    def __repr__(self) -> str:
        return f"TriggerTable(version={self._version!r}, rules={len(self._rules)})"


class _TableBuilder:
    """Collects validation problems while normalizing definitions."""

    def __init__(self, definition: TriggerTableDefinition):
        self.definition = definition
        self.problems: list[str] = []
        self.documents: dict[str, DocumentRef] = {}
        self.compiled: dict[str, re.Pattern] = {}
        # literal text as written -> escaped source
        self.literals: dict[str, str] = {}

    def build(self) -> TriggerTable:
        self._build_catalog()
        rules = self._build_rules()
        self._check_tree(rules)
        contracts = self._build_contracts()

        if self.problems:
            logger.error(f"Rejected trigger table: {len(self.problems)} problem(s)")
            raise InvalidRuleDefinition(self.problems)

        return TriggerTable(
            version=self.definition.version,
            rules=tuple(rules),
            documents=self.documents,
            fallback_category=self.definition.fallback_category,
            contracts=tuple(contracts),
            compiled_patterns=self.compiled,
        )

    def _build_catalog(self) -> None:
        for doc_id, category in self.definition.documents.items():
            if not doc_id.strip() or not category.strip():
                self.problems.append(f"document {doc_id!r}: id and category must be non-empty")
                continue
            self.documents[doc_id] = DocumentRef(id=doc_id, category=category)

        fallback = self.definition.fallback_category
        if not any(d.category == fallback for d in self.documents.values()):
            self.problems.append(f"fallback category {fallback!r} has no documents")

    def _build_rules(self) -> list[TriggerRule]:
        rules: list[TriggerRule] = []
        seen: set[str] = set()

        for order, rule_def in enumerate(self.definition.rules):
            where = f"rule {rule_def.id!r}"
            if not rule_def.id.strip():
                self.problems.append(f"rule #{order}: id must be non-empty")
                continue
            if rule_def.id in seen:
                self.problems.append(f"{where}: duplicate id")
                continue
            seen.add(rule_def.id)

            matchers = self._build_matchers(where, rule_def.type, rule_def.matchers)
            targets = self._build_targets(where, rule_def.targets)

            if rule_def.type != RuleType.DECISION_NODE and (rule_def.if_true or rule_def.if_false):
                self.problems.append(f"{where}: only DECISION_NODE rules may have children")

            if matchers is None or not targets:
                continue

            rules.append(TriggerRule(
                id=rule_def.id,
                type=rule_def.type,
                matchers=tuple(matchers),
                targets=tuple(targets),
                priority_tier=rule_def.priority_tier,
                registration_order=order,
                question=rule_def.question,
                if_true=rule_def.if_true,
                if_false=rule_def.if_false,
            ))
        return rules

    def _build_matchers(
        self, where: str, rule_type: RuleType, specs: list[MatcherSpec]
    ) -> Optional[list[MatcherSpec]]:
        if not specs:
            self.problems.append(f"{where}: at least one matcher is required")
            return None

        ok = True
        matchers = []
        for i, spec in enumerate(specs):
            label = f"{where} matcher #{i}"
            if spec.kind not in ALLOWED_MATCHERS[rule_type]:
                self.problems.append(f"{label}: {spec.kind.value} matcher not allowed on {rule_type.value}")
                ok = False
                continue
            normalized = self._normalize_matcher(label, spec)
            if normalized is None:
                ok = False
                continue
            matchers.append(normalized)
        return matchers if ok else None

    def _normalize_matcher(self, label: str, spec: MatcherSpec) -> Optional[MatcherSpec]:
        if spec.kind == MatcherKind.PATTERN:
            if not spec.pattern:
                self.problems.append(f"{label}: pattern must be non-empty")
                return None
            source = re.escape(spec.pattern) if spec.literal else spec.pattern
            if spec.literal:
                self.literals.setdefault(spec.pattern, source)
            if source not in self.compiled:
                try:
                    self.compiled[source] = re.compile(source)
                except (re.error, OverflowError, RecursionError, ValueError) as e:
                    self.problems.append(f"{label}: pattern does not compile: {e}")
                    return None
            return MatcherSpec(kind=MatcherKind.PATTERN, pattern=source)

        if spec.kind == MatcherKind.KEYWORDS:
            if not spec.keywords:
                self.problems.append(f"{label}: keyword set must be non-empty")
                return None
            keywords: list[str] = []
            for raw in spec.keywords:
                kw = normalize_keyword(raw)
                if kw is None:
                    self.problems.append(
                        f"{label}: keyword {raw!r} must be a single non-stop-word token"
                    )
                    return None
                if kw not in keywords:
                    keywords.append(kw)
            return MatcherSpec(kind=MatcherKind.KEYWORDS, keywords=tuple(keywords))

        if spec.kind == MatcherKind.SETTING:
            key = normalize_setting_key(spec.key or "")
            if not key:
                self.problems.append(f"{label}: setting key must be non-empty")
                return None
            return MatcherSpec(kind=MatcherKind.SETTING, key=key, equals=spec.equals)

        # category
        if not spec.category or not any(
            d.category == spec.category for d in self.documents.values()
        ):
            self.problems.append(f"{label}: unknown category {spec.category!r}")
            return None
        return MatcherSpec(kind=MatcherKind.CATEGORY, category=spec.category)

    def _build_targets(self, where: str, target_ids: list[str]) -> list[DocumentRef]:
        if not target_ids:
            self.problems.append(f"{where}: at least one target is required")
            return []
        targets: list[DocumentRef] = []
        for target_id in target_ids:
            ref = self.documents.get(target_id)
            if ref is None:
                self.problems.append(f"{where}: unknown target document {target_id!r}")
                return []
            if ref not in targets:
                targets.append(ref)
        return targets

    def _check_tree(self, rules: list[TriggerRule]) -> None:
        by_id = {r.id: r for r in rules}
        declared = {r.id for r in self.definition.rules}
        parent_of: dict[str, str] = {}

        for rule in rules:
            if rule.type != RuleType.DECISION_NODE:
                continue
            for child_id in (rule.if_true, rule.if_false):
                if child_id is None:
                    continue
                child = by_id.get(child_id)
                if child is None:
                    # Already reported if the child was declared but rejected
                    if child_id not in declared:
                        self.problems.append(f"rule {rule.id!r}: unknown child node {child_id!r}")
                    continue
                if child.type != RuleType.DECISION_NODE:
                    self.problems.append(f"rule {rule.id!r}: child {child_id!r} is not a DECISION_NODE")
                elif child_id in parent_of and parent_of[child_id] != rule.id:
                    self.problems.append(
                        f"rule {child_id!r}: has more than one parent "
                        f"({parent_of[child_id]!r}, {rule.id!r})"
                    )
                else:
                    parent_of[child_id] = rule.id

        nodes = [r for r in rules if r.type == RuleType.DECISION_NODE]
        reachable: set[str] = set()
        stack = [r.id for r in nodes if r.id not in parent_of]
        while stack:
            node_id = stack.pop()
            if node_id in reachable:
                continue
            reachable.add(node_id)
            node = by_id[node_id]
            stack.extend(c for c in (node.if_true, node.if_false) if c in by_id)

        for node in nodes:
            if node.id not in reachable:
                self.problems.append(f"rule {node.id!r}: decision node is part of a cycle")

    def _build_contracts(self) -> list[Contract]:
        categories = {d.category for d in self.documents.values()}
        contracts = []
        for i, contract_def in enumerate(self.definition.contracts):
            where = f"contract #{i} ({contract_def.category!r})"
            ok = True
            if contract_def.category not in categories:
                self.problems.append(f"{where}: unknown category")
                ok = False
            if not contract_def.message.strip():
                self.problems.append(f"{where}: violation message must be non-empty")
                ok = False
            if not contract_def.requires:
                self.problems.append(f"{where}: at least one required signal is needed")
                ok = False

            requires = []
            for req in contract_def.requires:
                value = self._normalize_requirement(where, req.kind, req.value)
                if value is None:
                    ok = False
                    continue
                requires.append(SignalRequirement(kind=req.kind, value=value))

            if ok:
                contracts.append(Contract(
                    applies_to_category=contract_def.category,
                    requires=tuple(requires),
                    violation_message=contract_def.message,
                    clarifying_question=contract_def.question,
                ))
        return contracts

    def _normalize_requirement(self, where: str, kind: SignalKind, value: str) -> Optional[str]:
        if kind == SignalKind.SETTING:
            key = normalize_setting_key(value)
            if not key:
                self.problems.append(f"{where}: setting requirement must name a key")
                return None
            return key
        if kind == SignalKind.KEYWORD:
            kw = normalize_keyword(value)
            if kw is None:
                self.problems.append(f"{where}: keyword requirement {value!r} is not a single token")
            return kw
        if value not in self.compiled:
            value = self.literals.get(value, value)
        if value not in self.compiled:
            self.problems.append(f"{where}: pattern requirement {value!r} is not a registered pattern")
            return None
        return value


@dataclass(frozen=True)
class LoadResult:
    """Result of load_trigger_table: exactly one of table / error is set."""

    table: Optional[TriggerTable] = None
    error: Optional[InvalidRuleDefinition] = None

    @property
    def ok(self) -> bool:
        return self.table is not None

    def unwrap(self) -> TriggerTable:
        """Return the table or raise the load error."""
        if self.error is not None:
            raise self.error
        return self.table


def load_trigger_table(
    definition: Union[TriggerTableDefinition, Mapping[str, Any]],
) -> LoadResult:
    """
    Build a Trigger Table, returning the failure instead of raising.

    Args:
        definition: Parsed definition model or raw mapping (e.g. from YAML).

    Returns:
        LoadResult with either the table or the rejection error.
    """
    try:
        return LoadResult(table=TriggerTable.build(definition))
    except InvalidRuleDefinition as e:
        logger.error(f"Trigger table load failed: {e}")
        return LoadResult(error=e)
