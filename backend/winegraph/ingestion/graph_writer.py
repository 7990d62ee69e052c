"""
Graph upsert engine.

Maps a batch of normalized records onto idempotent node/edge merges keyed
by natural keys (wine id, person/country/province name) and submits the
whole batch as one atomic transaction.

The mutation is described with a MergeProgram: merge_node() and merge_edge()
calls recorded in order, with conditional blocks for optional entities.
merge_edge() only accepts nodes merged earlier in the same or an enclosing
block, so an edge can never be emitted before both of its endpoints. The
program renders to a single parameterized UNWIND statement.
"""

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from ..db import GraphSession, is_transient
from ..errors import TransactionError
from ..models.enums import NodeLabel, RelType
from .protocols import Batch, UpsertResult

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[a-z][a-z0-9_]*$")


def _check_identifier(kind: str, name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid {kind} identifier: {name!r}")
    return name


@dataclass(frozen=True)
class NodeRef:
    """A node bound by an earlier merge_node() call."""
    var: str
    label: NodeLabel


@dataclass(frozen=True)
class NodeMerge:
    """MERGE a node on its natural key, then overwrite attributes."""
    ref: NodeRef
    key: str
    source: str
    replace: Optional[str] = None
    attributes: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class EdgeMerge:
    """MERGE a relationship between two already-merged nodes."""
    source: NodeRef
    rel_type: RelType
    target: NodeRef


@dataclass
class ConditionalBlock:
    """Steps applied only when every listed row field is non-null."""
    when: tuple[str, ...]
    steps: list["Step"] = field(default_factory=list)


Step = Union[NodeMerge, EdgeMerge, ConditionalBlock]


class MergeProgram:
    """
    Ordered description of the per-row merges for one UNWIND statement.

    Example:
        program = MergeProgram()
        wine = program.merge_node(NodeLabel.WINE, "id", "id", var="w", replace="wine")
        country = program.merge_node(NodeLabel.COUNTRY, "name", "country", var="c")
        program.merge_edge(wine, RelType.IS_FROM_COUNTRY, country)
        cypher = program.render()
    """

    def __init__(self, row_var: str = "row", batch_param: str = "batch"):
        self.row_var = _check_identifier("row", row_var)
        self.batch_param = _check_identifier("parameter", batch_param)
        self.steps: list[Step] = []
        # Innermost scope last; each scope knows the vars it bound
        self._scopes: list[tuple[list[Step], set[str]]] = [(self.steps, set())]
        self._all_vars: set[str] = set()

    def _visible(self, ref: NodeRef) -> bool:
        return any(ref.var in bound for _, bound in self._scopes)

    def merge_node(
        self,
        label: NodeLabel,
        key: str,
        source: str,
        var: str,
        replace: Optional[str] = None,
        attributes: Optional[dict[str, str]] = None,
    ) -> NodeRef:
        """
        Merge a node by natural key.

        Args:
            label: Node label
            key: Natural key property name
            source: Row field holding the key value
            var: Cypher variable bound to the node
            replace: Row field holding a map that replaces all properties
            attributes: Property -> row field assignments, overwritten on every merge

        Returns:
            NodeRef usable by later merge_edge() calls in this scope
        """
        _check_identifier("variable", var)
        _check_identifier("property", key)
        _check_identifier("field", source)
        if var in self._all_vars or var == self.row_var:
            raise ValueError(f"Variable already bound: {var}")
        if replace is not None:
            _check_identifier("field", replace)
        pairs = tuple((attributes or {}).items())
        for prop, field_name in pairs:
            _check_identifier("property", prop)
            _check_identifier("field", field_name)

        ref = NodeRef(var=var, label=NodeLabel(label))
        steps, bound = self._scopes[-1]
        steps.append(NodeMerge(ref=ref, key=key, source=source, replace=replace, attributes=pairs))
        bound.add(var)
        self._all_vars.add(var)
        return ref

    def merge_edge(self, source: NodeRef, rel_type: RelType, target: NodeRef) -> None:
        """
        Merge a relationship between two nodes merged earlier.

        Raises:
            ValueError: If either endpoint is not yet merged in a visible scope
        """
        for ref in (source, target):
            if not self._visible(ref):
                raise ValueError(
                    f"Cannot merge {RelType(rel_type).value} edge: node '{ref.var}' "
                    f"({ref.label.value}) is not merged in this scope"
                )
        steps, _ = self._scopes[-1]
        steps.append(EdgeMerge(source=source, rel_type=RelType(rel_type), target=target))

    @contextmanager
    def when(self, *fields: str) -> Iterator["MergeProgram"]:
        """Open a block applied only to rows where all fields are non-null."""
        if not fields:
            raise ValueError("when() needs at least one field")
        for name in fields:
            _check_identifier("field", name)
        block = ConditionalBlock(when=tuple(fields))
        self._scopes[-1][0].append(block)
        self._scopes.append((block.steps, set()))
        try:
            yield self
        finally:
            self._scopes.pop()

    def render(self) -> str:
        """Render the program as one parameterized Cypher statement."""
        lines = [f"UNWIND ${self.batch_param} AS {self.row_var}"]
        counter = iter(range(1_000_000))
        self._render_steps(self.steps, lines, 0, counter)
        return "\n".join(lines)

    def _render_steps(self, steps: list[Step], lines: list[str], depth: int, counter: Iterator[int]) -> None:
        pad = "  " * depth
        row = self.row_var
        for step in steps:
            if isinstance(step, NodeMerge):
                var, label = step.ref.var, step.ref.label.value
                lines.append(f"{pad}MERGE ({var}:{label} {{{step.key}: {row}.{step.source}}})")
                if step.replace is not None:
                    lines.append(f"{pad}SET {var} = {row}.{step.replace}")
                for prop, field_name in step.attributes:
                    lines.append(f"{pad}SET {var}.{prop} = {row}.{field_name}")
            elif isinstance(step, EdgeMerge):
                lines.append(
                    f"{pad}MERGE ({step.source.var})-[:{step.rel_type.value}]->({step.target.var})"
                )
            else:
                guard = " OR ".join(f"{row}.{name} IS NULL" for name in step.when)
                loop_var = f"when{next(counter)}"
                lines.append(f"{pad}FOREACH ({loop_var} IN CASE WHEN {guard} THEN [] ELSE [1] END |")
                self._render_steps(step.steps, lines, depth + 1, counter)
                lines.append(f"{pad})")


def build_wine_program() -> MergeProgram:
    """
    The per-record merge order for wine reviews.

    1. Wine by id, attributes overwritten
    2. Person by taster name (if present) + TASTED_BY
    3. Country by name (always present) + IS_FROM_COUNTRY
    4. Province by name (if present) + IS_FROM_PROVINCE
    5. Province IS_LOCATED_IN Country (if both present)
    """
    program = MergeProgram()
    wine = program.merge_node(NodeLabel.WINE, "id", "id", var="w", replace="wine")

    with program.when("taster_name"):
        person = program.merge_node(
            NodeLabel.PERSON, "name", "taster_name", var="p",
            attributes={"twitter_handle": "taster_twitter_handle"},
        )
        program.merge_edge(wine, RelType.TASTED_BY, person)

    country = program.merge_node(NodeLabel.COUNTRY, "name", "country", var="c")
    program.merge_edge(wine, RelType.IS_FROM_COUNTRY, country)

    with program.when("province"):
        province = program.merge_node(NodeLabel.PROVINCE, "name", "province", var="pr")
        program.merge_edge(wine, RelType.IS_FROM_PROVINCE, province)
        with program.when("country"):
            program.merge_edge(province, RelType.IS_LOCATED_IN, country)

    return program


class GraphUpsertEngine:
    """
    Writes batches of normalized records to the graph.

    Each upsert() is one explicit transaction: every record's merges are
    committed together or not at all. Failures are not retried here.
    """

    def __init__(self, graph: GraphSession, program: Optional[MergeProgram] = None):
        """
        Initialize engine.

        Args:
            graph: Write-capable graph session
            program: Merge program (defaults to the wine review program)
        """
        self.graph = graph
        self.program = program or build_wine_program()
        self.query = self.program.render()

    async def upsert(self, batch: Batch) -> UpsertResult:
        """
        Merge every record of the batch in one transaction.

        Raises:
            TransactionError: With the batch id range and underlying error
        """
        if len(batch) == 0:
            raise ValueError(f"Batch {batch.index} is empty")

        min_id, max_id = batch.min_id, batch.max_id
        try:
            async with self.graph.transaction() as tx:
                result = await tx.run(self.query, {self.program.batch_param: batch.rows()})
                await result.consume()
        except Exception as e:
            logger.debug(f"Batch {batch.index} [{min_id}, {max_id}] rolled back: {e}")
            raise TransactionError(min_id, max_id, e, retryable=is_transient(e)) from e

        return UpsertResult(
            batch_index=batch.index,
            records_processed=len(batch),
            min_id=min_id,
            max_id=max_id,
        )
