"""Taxonomy management: the invariants of a project's code tree.

The tree is stored flat (see :mod:`coding_analytics.core.models.codes`) and
this module keeps three properties true across every mutation:

- **Uniqueness**: a code name is unique within its project, compared
  case-insensitively.  The pre-check gives a friendly error; the unique
  constraint underneath settles concurrent creates.
- **Acyclicity**: following ``parent_id`` upward from any code ends at a
  root.  Reparenting walks up from the candidate parent, O(depth).
- **Hoisting**: deleting a code moves its direct children to the deleted
  code's parent; nothing is cascaded.  Annotations of the deleted code are
  not touched (they become orphaned, see ``AnnotationIndex.list_orphaned``).

Nested views are built on demand in a single pass that groups codes by
``parent_id``, to any depth.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from coding_analytics.config.settings import get_settings
from coding_analytics.core.code_store import CodeStore
from coding_analytics.core.collaborators import ProjectMembership
from coding_analytics.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    InvalidOperationError,
    NotFoundError,
)
from coding_analytics.core.models.codes import Code, name_key_for
from coding_analytics.core.roles import can_mutate_taxonomy
from coding_analytics.core.schemas.codes import (
    CodeCreate,
    CodeDetail,
    CodeRead,
    CodeSummary,
    CodeTreeNode,
    CodeUpdate,
)

logger = structlog.get_logger(__name__)


def _clean_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise InvalidArgumentError("Code name must not be blank.")
    return cleaned


def build_tree(
    codes: list[Code], counts: Optional[dict[uuid.UUID, int]] = None
) -> list[CodeTreeNode]:
    """Assemble a flat list of codes into nested root nodes.

    Children are grouped by ``parent_id`` in one pass and attached
    recursively, so the tree has whatever depth the data has.  A code whose
    parent is not in *codes* is treated as a root.  Siblings keep the order
    of *codes*.

    Args:
        codes: Every code of one project.
        counts: Optional ``{code_id: annotation count}``.

    Returns:
        The root nodes, each with its full subtree.
    """
    counts = counts or {}
    known = {code.id for code in codes}
    children_of: dict[Optional[uuid.UUID], list[Code]] = defaultdict(list)
    for code in codes:
        parent = code.parent_id if code.parent_id in known else None
        children_of[parent].append(code)

    def _node(code: Code, path: frozenset[uuid.UUID]) -> CodeTreeNode:
        node = CodeTreeNode.model_validate(code)
        node.annotation_count = counts.get(code.id, 0)
        # path guards against rows that were corrupted outside this engine.
        node.children = [
            _node(child, path | {child.id})
            for child in children_of.get(code.id, [])
            if child.id not in path
        ]
        return node

    return [_node(root, frozenset({root.id})) for root in children_of.get(None, [])]


class TaxonomyManager:
    """Create, update, delete and read the code tree of a project.

    All mutations require the actor to hold OWNER or EDITOR on the project.
    Methods flush but never commit; the caller owns the transaction.

    Args:
        session: An open :class:`sqlalchemy.ext.asyncio.AsyncSession`.
        membership: Source of project existence and roles.
    """

    def __init__(self, session: AsyncSession, membership: ProjectMembership) -> None:
        self.session = session
        self.membership = membership
        self.codes = CodeStore(session)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    async def _require_project(self, project_id: uuid.UUID) -> None:
        if not await self.membership.project_exists(project_id):
            raise NotFoundError("project", project_id)

    async def _require_editor(self, project_id: uuid.UUID, actor_id: uuid.UUID) -> None:
        role = await self.membership.role_of(project_id, actor_id)
        if not can_mutate_taxonomy(role):
            logger.warning(
                "taxonomy.forbidden",
                project_id=str(project_id),
                actor_id=str(actor_id),
                role=role.value if role else None,
            )
            raise ForbiddenError(
                "Only project owners and editors may change the code taxonomy.",
                actor_id=actor_id,
                project_id=project_id,
            )

    async def _get_code(self, code_id: uuid.UUID) -> Code:
        code = await self.codes.get(code_id)
        if code is None:
            raise NotFoundError("code", code_id)
        return code

    async def _assert_name_free(
        self, project_id: uuid.UUID, name: str, exclude_id: Optional[uuid.UUID] = None
    ) -> None:
        existing = await self.codes.find_by_name_key(project_id, name_key_for(name))
        if existing is not None and existing.id != exclude_id:
            raise ConflictError(project_id, name)

    async def _is_descendant(self, candidate_id: uuid.UUID, code_id: uuid.UUID) -> bool:
        """Return True if *candidate_id* lies in the subtree below *code_id*.

        Walks up from the candidate via ``parent_id`` until a root or
        *code_id* is reached.
        """
        seen: set[uuid.UUID] = set()
        current: Optional[uuid.UUID] = candidate_id
        while current is not None and current not in seen:
            if current == code_id:
                return True
            seen.add(current)
            current = await self.codes.parent_id_of(current)
        return False

    async def _detail(self, code: Code) -> CodeDetail:
        detail = CodeDetail.model_validate(code)
        if code.parent_id is not None:
            parent = await self.codes.get(code.parent_id)
            detail.parent = CodeSummary.model_validate(parent) if parent else None
        detail.children = [
            CodeSummary.model_validate(child)
            for child in await self.codes.list_children(code.id)
        ]
        detail.annotation_count = await self.codes.annotation_count(code.id)
        return detail

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_code(
        self,
        project_id: uuid.UUID,
        payload: CodeCreate,
        actor_id: uuid.UUID,
    ) -> CodeDetail:
        """Create a code in *project_id*.

        Raises:
            NotFoundError: If the project, or the given parent within the
                project, does not exist.
            ForbiddenError: If the actor is not an owner or editor.
            InvalidArgumentError: If the name is blank.
            ConflictError: If the name is already used in the project.
        """
        await self._require_project(project_id)
        await self._require_editor(project_id, actor_id)

        name = _clean_name(payload.name)
        await self._assert_name_free(project_id, name)

        if payload.parent_id is not None:
            parent = await self.codes.get_in_project(payload.parent_id, project_id)
            if parent is None:
                raise NotFoundError("parent code", payload.parent_id)

        code = Code(
            id=uuid.uuid4(),
            project_id=project_id,
            name=name,
            name_key=name_key_for(name),
            description=payload.description,
            color=payload.color or get_settings().default_code_color,
            parent_id=payload.parent_id,
            created_by=actor_id,
        )
        await self.codes.add(code)

        logger.info(
            "code.created",
            code_id=str(code.id),
            project_id=str(project_id),
            parent_id=str(code.parent_id) if code.parent_id else None,
            actor_id=str(actor_id),
        )
        return await self._detail(code)

    async def update_code(
        self,
        code_id: uuid.UUID,
        patch: CodeUpdate,
        actor_id: uuid.UUID,
    ) -> CodeDetail:
        """Apply the fields present in *patch* to a code.

        Reparenting is validated before anything is written: a code cannot
        become its own parent nor the child of one of its descendants.

        Raises:
            NotFoundError: If the code or the new parent does not exist in
                the code's project.
            ForbiddenError: If the actor is not an owner or editor.
            InvalidOperationError: On self-parenting or a cyclic reparent.
            ConflictError: If a rename collides with another code.
        """
        code = await self._get_code(code_id)
        await self._require_editor(code.project_id, actor_id)

        fields = patch.model_fields_set

        if "parent_id" in fields and patch.parent_id != code.parent_id:
            new_parent_id = patch.parent_id
            if new_parent_id is not None:
                if new_parent_id == code.id:
                    raise InvalidOperationError("A code cannot be its own parent.")
                parent = await self.codes.get_in_project(new_parent_id, code.project_id)
                if parent is None:
                    raise NotFoundError("parent code", new_parent_id)
                if await self._is_descendant(new_parent_id, code.id):
                    raise InvalidOperationError(
                        "A code cannot be moved under one of its own descendants."
                    )
            code.parent_id = new_parent_id

        if "name" in fields and patch.name is not None:
            name = _clean_name(patch.name)
            await self._assert_name_free(code.project_id, name, exclude_id=code.id)
            code.name = name
            code.name_key = name_key_for(name)

        if "description" in fields:
            code.description = patch.description

        if "color" in fields and patch.color is not None:
            code.color = patch.color

        await self.codes.flush(code)

        logger.info(
            "code.updated",
            code_id=str(code.id),
            project_id=str(code.project_id),
            fields=sorted(fields),
            actor_id=str(actor_id),
        )
        return await self._detail(code)

    async def delete_code(self, code_id: uuid.UUID, actor_id: uuid.UUID) -> None:
        """Delete a code after hoisting its children to its parent.

        Annotations referencing the code are left in place.

        Raises:
            NotFoundError: If the code does not exist.
            ForbiddenError: If the actor is not an owner or editor.
        """
        code = await self._get_code(code_id)
        await self._require_editor(code.project_id, actor_id)

        moved = await self.codes.reparent_children(code.id, code.parent_id)
        await self.codes.delete(code)

        logger.info(
            "code.deleted",
            code_id=str(code_id),
            project_id=str(code.project_id),
            children_hoisted=moved,
            new_parent_id=str(code.parent_id) if code.parent_id else None,
            actor_id=str(actor_id),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_code(self, code_id: uuid.UUID) -> CodeDetail:
        return await self._detail(await self._get_code(code_id))

    async def list_codes(self, project_id: uuid.UUID) -> list[CodeDetail]:
        """Return every code of the project, flat, ordered by name.

        Each entry carries its parent, direct children and annotation count,
        resolved from a single fetch of the project's codes.
        """
        await self._require_project(project_id)
        codes = await self.codes.list_for_project(project_id)
        counts = await self.codes.annotation_counts(project_id)
        by_id = {code.id: code for code in codes}
        children_of: dict[uuid.UUID, list[Code]] = defaultdict(list)
        for code in codes:
            if code.parent_id is not None:
                children_of[code.parent_id].append(code)

        details: list[CodeDetail] = []
        for code in codes:
            detail = CodeDetail.model_validate(code)
            parent = by_id.get(code.parent_id) if code.parent_id else None
            detail.parent = CodeSummary.model_validate(parent) if parent else None
            detail.children = [CodeSummary.model_validate(c) for c in children_of[code.id]]
            detail.annotation_count = counts.get(code.id, 0)
            details.append(detail)
        return details

    async def get_tree(self, project_id: uuid.UUID) -> list[CodeTreeNode]:
        """Return the project's roots, each with its complete subtree."""
        await self._require_project(project_id)
        codes = await self.codes.list_for_project(project_id)
        counts = await self.codes.annotation_counts(project_id)
        tree = build_tree(codes, counts)
        logger.debug(
            "taxonomy.tree_built",
            project_id=str(project_id),
            codes=len(codes),
            roots=len(tree),
        )
        return tree

    async def read(self, code_id: uuid.UUID) -> CodeRead:
        """Return the bare code without resolving neighbours."""
        return CodeRead.model_validate(await self._get_code(code_id))
