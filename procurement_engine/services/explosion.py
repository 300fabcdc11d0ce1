from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from procurement_engine.core.exceptions import BomCycleError, InvalidQuantityError, NotFoundError
from procurement_engine.core.security import Actor
from procurement_engine.core.settings import get_app_settings
from procurement_engine.db.models.catalog import BomLine, Item
from procurement_engine.repositories.audit import AuditRepository
from procurement_engine.repositories.catalog import BomRepository, ItemRepository
from procurement_engine.services.base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComponentAvailability:
    """One direct BOM edge of an assembly with the component's current stock."""

    component_id: UUID
    name: str
    sku: str
    qty_per: int
    available: int
    reorder_level: int = 0
    unit: str = "pcs"
    is_assembly: bool = False

    @property
    def constrains(self) -> bool:
        return self.qty_per > 0

    @property
    def can_build(self) -> Optional[int]:
        if not self.constrains:
            return None
        return max(0, self.available) // self.qty_per

    @property
    def below_threshold(self) -> bool:
        """Cannot cover one more parent unit, or sits at or below its reorder level."""
        if not self.constrains:
            return False
        return self.available < self.qty_per or self.available <= self.reorder_level


@dataclass(frozen=True)
class BuildabilityResult:
    """
    max_buildable is None when no component constrains the assembly.

    Bottlenecks are the components below their threshold plus the binding
    components whose own limit equals max_buildable.
    """

    max_buildable: Optional[int]
    bottlenecks: Tuple[ComponentAvailability, ...]
    components: Tuple[ComponentAvailability, ...]


# PUBLIC_INTERFACE
def compute_buildability(components: Iterable[ComponentAvailability]) -> BuildabilityResult:
    """
    Compute how many units of an assembly current component stock can build.

    Components with a non-positive per-unit quantity are ignored.
    """
    components = tuple(components)
    limits = [c.can_build for c in components if c.constrains]
    max_buildable = min(limits) if limits else None
    bottlenecks = tuple(
        c for c in components if c.below_threshold or (c.constrains and c.can_build == max_buildable)
    )
    return BuildabilityResult(max_buildable=max_buildable, bottlenecks=bottlenecks, components=components)


def build_adjacency(edges: Iterable[Tuple[UUID, UUID]]) -> Dict[UUID, List[UUID]]:
    adjacency: Dict[UUID, List[UUID]] = {}
    for parent, component in edges:
        adjacency.setdefault(parent, []).append(component)
    return adjacency


# PUBLIC_INTERFACE
def find_cycle(
    adjacency: Mapping[UUID, Sequence[UUID]], start: UUID, max_depth: int
) -> Optional[List[UUID]]:
    """
    Return a path from ``start`` that revisits a node on itself, or None.

    Paths nested deeper than ``max_depth`` are reported as cycles too; a
    structure that deep is treated as corrupt.
    """
    path: List[UUID] = [start]
    on_path: Set[UUID] = {start}
    cleared: Set[UUID] = set()

    def visit(node: UUID) -> Optional[List[UUID]]:
        if len(path) > max_depth + 1:
            return list(path)
        for child in adjacency.get(node, ()):
            if child in on_path:
                return path + [child]
            if child in cleared:
                continue
            path.append(child)
            on_path.add(child)
            found = visit(child)
            if found:
                return found
            on_path.discard(child)
            path.pop()
            cleared.add(child)
        return None

    return visit(start)


def find_path(adjacency: Mapping[UUID, Sequence[UUID]], source: UUID, target: UUID) -> Optional[List[UUID]]:
    """Any directed path from source to target, iteratively."""
    stack: List[Tuple[UUID, List[UUID]]] = [(source, [source])]
    seen: Set[UUID] = set()
    while stack:
        node, trail = stack.pop()
        if node == target:
            return trail
        if node in seen:
            continue
        seen.add(node)
        for child in adjacency.get(node, ()):
            stack.append((child, trail + [child]))
    return None


@dataclass
class ExplosionNode:
    item_id: UUID
    sku: str
    name: str
    unit: str
    level: int
    qty_per: int
    total_required: int
    available: int
    shortage: int
    is_assembly: bool
    cyclic: bool = False
    children: List["ExplosionNode"] = field(default_factory=list)


class BomService(BaseService):
    """
    BOM buildability, multi-level explosion and guarded BOM edits.
    """

    def __init__(self, session: AsyncSession, max_depth: Optional[int] = None) -> None:
        super().__init__(session)
        self.items = ItemRepository(session)
        self.boms = BomRepository(session)
        self.audit = AuditRepository(session)
        self.max_depth = get_app_settings().BOM_MAX_DEPTH if max_depth is None else max_depth

    async def load_components(self, assembly_id: UUID) -> List[ComponentAvailability]:
        """Read the assembly's direct components with freshly loaded stock."""
        rows = await self.boms.get_assembly_components(assembly_id)
        return [
            ComponentAvailability(
                component_id=row.component_item_id,
                name=row.name,
                sku=row.sku,
                qty_per=row.qty_per,
                available=row.on_hand_quantity,
                reorder_level=row.reorder_level,
                unit=row.unit,
                is_assembly=row.is_assembly,
            )
            for row in rows
        ]

    async def load_adjacency(self) -> Dict[UUID, List[UUID]]:
        return build_adjacency(await self.boms.list_edges())

    # PUBLIC_INTERFACE
    async def assess_assembly(self, assembly_id: UUID) -> Tuple[Item, BuildabilityResult]:
        """
        Compute max buildable quantity and bottlenecks for one assembly.

        Raises:
            NotFoundError: unknown item
            BomCycleError: the assembly's BOM graph contains a cycle
        """
        async with self.unit_of_work():
            item = await self.items.get_item(assembly_id)
            if item is None:
                raise NotFoundError("Item", assembly_id)
            cycle = find_cycle(await self.load_adjacency(), assembly_id, self.max_depth)
            if cycle:
                raise BomCycleError(cycle)
            result = compute_buildability(await self.load_components(assembly_id))
        return item, result

    # PUBLIC_INTERFACE
    async def explode(self, item_id: UUID, quantity: int) -> ExplosionNode:
        """
        Expand an item's BOM into a tree sized for building ``quantity`` units.

        Each node carries the total quantity required at its level and the
        shortage against current stock. Recursion stops at the configured depth;
        an edge leading back onto the current path is marked cyclic and not followed.
        """
        if quantity <= 0:
            raise InvalidQuantityError(f"Build quantity must be greater than zero (got {quantity})")
        async with self.unit_of_work():
            item = await self.items.get_item(item_id)
            if item is None:
                raise NotFoundError("Item", item_id)
            root = ExplosionNode(
                item_id=item.id,
                sku=item.sku,
                name=item.name,
                unit=item.unit,
                level=0,
                qty_per=1,
                total_required=quantity,
                available=item.on_hand_quantity,
                shortage=max(0, quantity - item.on_hand_quantity),
                is_assembly=item.is_assembly,
            )
            await self._expand(root, {item.id})
        return root

    async def _expand(self, node: ExplosionNode, path: Set[UUID]) -> None:
        if node.level >= self.max_depth:
            return
        for comp in await self.load_components(node.item_id):
            total = comp.qty_per * node.total_required
            child = ExplosionNode(
                item_id=comp.component_id,
                sku=comp.sku,
                name=comp.name,
                unit=comp.unit,
                level=node.level + 1,
                qty_per=comp.qty_per,
                total_required=total,
                available=comp.available,
                shortage=max(0, total - comp.available),
                is_assembly=comp.is_assembly,
            )
            node.children.append(child)
            if comp.component_id in path:
                child.cyclic = True
                logger.warning("BOM cycle at %s under %s; not expanded", comp.sku, node.sku)
                continue
            if comp.is_assembly:
                await self._expand(child, path | {comp.component_id})

    # PUBLIC_INTERFACE
    async def add_bom_line(
        self,
        *,
        parent_item_id: UUID,
        component_item_id: UUID,
        qty_per: int,
        actor: Actor,
        version: str = "v1.0",
        notes: Optional[str] = None,
    ) -> BomLine:
        """
        Add a component edge to a parent item's BOM, marking the parent as an assembly.

        A parent lists each component once, so adding an existing pair revises
        that line's quantity, version and notes in place.

        Raises:
            InvalidQuantityError: qty_per <= 0
            NotFoundError: unknown parent or component
            BomCycleError: the edge would make the component (transitively) its own parent
        """
        if qty_per <= 0:
            raise InvalidQuantityError(f"Quantity per parent must be greater than zero (got {qty_per})")
        async with self.unit_of_work():
            parent = await self.items.get_item(parent_item_id)
            if parent is None:
                raise NotFoundError("Item", parent_item_id)
            component = await self.items.get_item(component_item_id)
            if component is None:
                raise NotFoundError("Item", component_item_id)

            if parent_item_id == component_item_id:
                raise BomCycleError([parent.sku, component.sku])
            back_path = find_path(await self.load_adjacency(), component_item_id, parent_item_id)
            if back_path is not None:
                skus = await self.items.get_skus(back_path)
                raise BomCycleError([parent.sku] + [skus.get(node, str(node)) for node in back_path])

            line = await self.boms.get_bom_line(parent_item_id, component_item_id)
            if line is None:
                line = await self.boms.create_bom_line(
                    parent_item_id=parent_item_id,
                    component_item_id=component_item_id,
                    qty_per=qty_per,
                    version=version,
                    notes=notes,
                )
                action, verb = "create", "Added"
            else:
                line.qty_per, line.version, line.notes = qty_per, version, notes
                await self.boms.flush()
                action, verb = "update", "Revised"
            if not parent.is_assembly:
                await self.items.mark_assembly(parent_item_id)
            await self.audit.append(
                actor_id=actor.id,
                description=f"{verb} {component.sku} x{qty_per} in BOM of {parent.sku} ({version})",
                module="bom",
                action_type=action,
            )
        logger.info("BOM line %s -> %s x%d %s", parent.sku, component.sku, qty_per, verb.lower())
        return line
