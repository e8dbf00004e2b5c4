"""
Ledgerline - Account Taxonomy Service

Service layer for the chart of accounts (codes), the flat detail code
space, and the detail-level classification tree.
"""

import logging
import re
import uuid
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.journal import JournalItem
from app.models.taxonomy import (
    REQUIRED_PARENT_KIND,
    Code,
    CodeKind,
    CodeNature,
    Detail,
    DetailDetailLevel,
    DetailKind,
    DetailLevel,
)
from app.schemas.taxonomy import (
    CodeCreate,
    CodeResponse,
    CodeTreeNode,
    CodeUpdate,
    DetailCreate,
    DetailLevelCreate,
    DetailLevelLinkIn,
    DetailLevelResponse,
    DetailLevelTreeNode,
    DetailLevelUpdate,
    DetailUpdate,
)
from app.services.sequence_service import SequenceService
from app.utils.error_handling import (
    ConflictException,
    DuplicateEntryException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)

DETAIL_CODE_RE = re.compile(r"^\d{4}$")
GROUP_CODE_RE = re.compile(r"^\d{2}$")

# Ancestor walk limit when checking detail-level reparenting.
MAX_TREE_DEPTH = 512


def _parse_kind(value: Optional[str]) -> CodeKind:
    try:
        return CodeKind((value or "").strip().lower())
    except ValueError:
        raise ValidationException("invalidKind", field="kind")


def _parse_nature(value: Optional[str]) -> Optional[CodeNature]:
    # Unknown natures are stored as null rather than rejected.
    if not value:
        return None
    try:
        return CodeNature(value.strip().lower())
    except ValueError:
        return None


class TaxonomyService:
    """Service for codes, details and detail levels."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # CODES
    # =========================================================================

    async def list_codes(
        self,
        kind: Optional[CodeKind] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> List[Code]:
        query = select(Code)
        if kind:
            query = query.where(Code.kind == kind)
        if is_active is not None:
            query = query.where(Code.is_active == is_active)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(Code.code.ilike(pattern), Code.title.ilike(pattern)))
        result = await self.db.execute(query.order_by(Code.code))
        return list(result.scalars().all())

    async def get_code(self, code_id: uuid.UUID) -> Code:
        code = await self.db.get(Code, code_id)
        if not code:
            raise NotFoundException("Code", code_id)
        return code

    async def get_code_tree(self) -> List[CodeTreeNode]:
        """Group -> general -> specific tree, built in one pass over all codes."""
        codes = await self.list_codes()
        nodes: Dict[uuid.UUID, CodeTreeNode] = {
            code.id: CodeTreeNode(**CodeResponse.model_validate(code).model_dump())
            for code in codes
        }
        roots: List[CodeTreeNode] = []
        for code in codes:
            node = nodes[code.id]
            parent = nodes.get(code.parent_id) if code.parent_id else None
            if parent is not None:
                parent.children.append(node)
            elif code.kind == CodeKind.GROUP:
                roots.append(node)
        return roots

    async def _validate_parent(self, kind: CodeKind, parent_id: Optional[uuid.UUID]) -> None:
        required = REQUIRED_PARENT_KIND[kind]
        if required is None:
            if parent_id is not None:
                raise ValidationException("invalidParent", field="parent_id")
            return
        if parent_id is None:
            raise ValidationException("invalidParent", field="parent_id")
        parent = await self.db.get(Code, parent_id)
        if parent is None or parent.kind != required:
            raise ValidationException("invalidParent", field="parent_id")

    async def _ensure_unique_code(self, value: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        query = select(Code.id).where(Code.code == value)
        if exclude_id:
            query = query.where(Code.id != exclude_id)
        if (await self.db.execute(query.limit(1))).first():
            raise DuplicateEntryException("Code", "code", value, message="duplicateCode")

    @staticmethod
    def _validate_code_fields(kind: CodeKind, code: str, title: str) -> None:
        if not code:
            raise ValidationException("codeRequired", field="code")
        if not title:
            raise ValidationException("titleRequired", field="title")
        if kind == CodeKind.GROUP and not GROUP_CODE_RE.match(code):
            raise ValidationException("groupCodeWidth", field="code")

    async def create_code(self, data: CodeCreate) -> Code:
        kind = _parse_kind(data.kind)
        code_value = data.code.strip()
        title = data.title.strip()
        self._validate_code_fields(kind, code_value, title)
        await self._validate_parent(kind, data.parent_id)
        await self._ensure_unique_code(code_value)

        code = Code(
            code=code_value,
            title=title,
            kind=kind,
            parent_id=data.parent_id,
            is_active=data.is_active,
            nature=_parse_nature(data.nature),
            can_have_details=data.can_have_details,
        )
        self.db.add(code)
        await self.db.flush()
        logger.info(f"Code {code.code} ({kind.value}) created")
        return code

    async def update_code(self, code_id: uuid.UUID, data: CodeUpdate) -> Code:
        code = await self.get_code(code_id)
        changes = data.model_dump(exclude_unset=True)

        kind = _parse_kind(changes["kind"]) if "kind" in changes else code.kind
        code_value = changes["code"].strip() if changes.get("code") is not None else code.code
        title = changes["title"].strip() if changes.get("title") is not None else code.title
        parent_id = changes["parent_id"] if "parent_id" in changes else code.parent_id

        self._validate_code_fields(kind, code_value, title)
        # Validate against the state the row will have after the update.
        await self._validate_parent(kind, parent_id)
        if code_value != code.code:
            await self._ensure_unique_code(code_value, exclude_id=code.id)

        code.kind = kind
        code.code = code_value
        code.title = title
        code.parent_id = parent_id
        if "nature" in changes:
            code.nature = _parse_nature(changes["nature"])
        if changes.get("is_active") is not None:
            code.is_active = changes["is_active"]
        if changes.get("can_have_details") is not None:
            code.can_have_details = changes["can_have_details"]

        await self.db.flush()
        return code

    async def delete_code(self, code_id: uuid.UUID) -> None:
        code = await self.get_code(code_id)
        if await self._exists(select(Code.id).where(Code.parent_id == code.id)):
            raise ConflictException("hasChildren", resource_type="Code")
        if await self._exists(select(JournalItem.id).where(JournalItem.code_id == code.id)):
            raise ConflictException("codeInUse", resource_type="Code")
        await self.db.delete(code)
        await self.db.flush()
        logger.info(f"Code {code.code} deleted")

    # =========================================================================
    # DETAILS
    # =========================================================================

    async def list_details(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        kind: Optional[DetailKind] = None,
    ) -> List[Detail]:
        query = select(Detail)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(Detail.code.ilike(pattern), Detail.title.ilike(pattern)))
        if is_active is not None:
            query = query.where(Detail.is_active == is_active)
        if kind:
            query = query.where(Detail.kind == kind)
        result = await self.db.execute(query.order_by(Detail.code))
        return list(result.scalars().all())

    async def get_detail(self, detail_id: uuid.UUID) -> Detail:
        result = await self.db.execute(select(Detail).where(Detail.id == detail_id))
        detail = result.scalar_one_or_none()
        if not detail:
            raise NotFoundException("Detail", detail_id)
        return detail

    async def get_detail_levels_of(self, detail_id: uuid.UUID) -> List[Tuple[DetailLevel, DetailDetailLevel]]:
        """Detail levels a detail is linked to, primary first."""
        await self.get_detail(detail_id)
        result = await self.db.execute(
            select(DetailLevel, DetailDetailLevel)
            .join(DetailDetailLevel, DetailDetailLevel.detail_level_id == DetailLevel.id)
            .where(DetailDetailLevel.detail_id == detail_id)
            .order_by(DetailDetailLevel.is_primary.desc(), DetailDetailLevel.position, DetailLevel.code)
        )
        return [(level, link) for level, link in result.all()]

    async def suggest_next_detail_code(self) -> str:
        """Smallest unused code in 0001..9999."""
        sequences = SequenceService(self.db)
        await sequences.lock_detail_codes()
        used = await sequences.used_detail_codes()
        for number in range(1, 10000):
            candidate = f"{number:04d}"
            if candidate not in used:
                return candidate
        raise ConflictException("noFreeCode", resource_type="Detail")

    async def _ensure_unique_detail_code(self, value: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        query = select(Detail.id).where(Detail.code == value)
        if exclude_id:
            query = query.where(Detail.id != exclude_id)
        if (await self.db.execute(query.limit(1))).first():
            raise DuplicateEntryException("Detail", "code", value, message="duplicateCode")

    @staticmethod
    def _normalize_links(
        detail_levels: Optional[List[DetailLevelLinkIn]],
        detail_level_ids: Optional[List[uuid.UUID]],
    ) -> Optional[List[DetailLevelLinkIn]]:
        """Merge both link payload shapes; the first occurrence of an id wins."""
        if detail_levels is None and detail_level_ids is None:
            return None
        merged: List[DetailLevelLinkIn] = list(detail_levels or [])
        merged.extend(DetailLevelLinkIn(id=level_id) for level_id in (detail_level_ids or []))
        seen = set()
        unique: List[DetailLevelLinkIn] = []
        for link in merged:
            if link.id in seen:
                continue
            seen.add(link.id)
            unique.append(link)
        return unique

    async def _ensure_leaf_levels(self, links: List[DetailLevelLinkIn]) -> None:
        for link in links:
            is_leaf = (
                await self._exists(select(DetailLevel.id).where(DetailLevel.id == link.id))
                and not await self._exists(select(DetailLevel.id).where(DetailLevel.parent_id == link.id))
            )
            if not is_leaf:
                raise ValidationException(
                    "linkMustBeLeaf",
                    field="detail_levels",
                    details={"detail_level_id": str(link.id)},
                )

    @staticmethod
    def _apply_links(detail: Detail, links: List[DetailLevelLinkIn]) -> None:
        """Make detail.level_links match ``links`` in place."""
        current = {link.detail_level_id: link for link in detail.level_links}
        wanted = {link.id for link in links}
        for link in list(detail.level_links):
            if link.detail_level_id not in wanted:
                detail.level_links.remove(link)
        for link in links:
            row = current.get(link.id)
            if row is None:
                detail.level_links.append(DetailDetailLevel(
                    detail_level_id=link.id,
                    is_primary=link.is_primary,
                    position=link.position,
                ))
            else:
                row.is_primary = link.is_primary
                row.position = link.position

    async def create_detail(self, data: DetailCreate) -> Detail:
        code_value = data.code.strip()
        if not DETAIL_CODE_RE.match(code_value):
            raise ValidationException("invalidWidth", field="code")

        await SequenceService(self.db).lock_detail_codes()
        await self._ensure_unique_detail_code(code_value)

        links = self._normalize_links(data.detail_levels, data.detail_level_ids) or []
        await self._ensure_leaf_levels(links)

        detail = Detail(
            code=code_value,
            title=data.title.strip(),
            is_active=data.is_active,
            kind=DetailKind.USER_MANAGED,
            level_links=[],
        )
        self._apply_links(detail, links)
        self.db.add(detail)
        await self.db.flush()
        logger.info(f"Detail {detail.code} created with {len(links)} level links")
        return detail

    async def update_detail(self, detail_id: uuid.UUID, data: DetailUpdate) -> Detail:
        detail = await self.get_detail(detail_id)
        if detail.is_system_managed:
            raise ForbiddenException("systemManagedCannotEdit")

        if data.code is not None:
            code_value = data.code.strip()
            if not DETAIL_CODE_RE.match(code_value):
                raise ValidationException("invalidWidth", field="code")
            if code_value != detail.code:
                await SequenceService(self.db).lock_detail_codes()
                await self._ensure_unique_detail_code(code_value, exclude_id=detail.id)
            detail.code = code_value
        if data.title is not None:
            detail.title = data.title.strip()
        if data.is_active is not None:
            detail.is_active = data.is_active

        links = self._normalize_links(data.detail_levels, data.detail_level_ids)
        if links is not None:
            await self._ensure_leaf_levels(links)
            self._apply_links(detail, links)

        await self.db.flush()
        return detail

    async def delete_detail(self, detail_id: uuid.UUID) -> None:
        detail = await self.get_detail(detail_id)
        if detail.is_system_managed:
            raise ForbiddenException("systemManagedCannotDelete")
        if detail.level_links:
            raise ConflictException("linkedExists", resource_type="Detail")
        await self.db.delete(detail)
        await self.db.flush()
        logger.info(f"Detail {detail.code} deleted")

    # =========================================================================
    # DETAIL LEVELS
    # =========================================================================

    async def list_detail_levels(self, is_active: Optional[bool] = None) -> List[DetailLevel]:
        query = select(DetailLevel)
        if is_active is not None:
            query = query.where(DetailLevel.is_active == is_active)
        result = await self.db.execute(query.order_by(DetailLevel.code))
        return list(result.scalars().all())

    async def list_detail_level_children(self, parent_id: Optional[uuid.UUID]) -> List[DetailLevel]:
        """Children of ``parent_id``, or the roots when it is None."""
        condition = DetailLevel.parent_id == parent_id if parent_id else DetailLevel.parent_id.is_(None)
        result = await self.db.execute(select(DetailLevel).where(condition).order_by(DetailLevel.code))
        return list(result.scalars().all())

    async def get_detail_level_tree(self) -> List[DetailLevelTreeNode]:
        levels = await self.list_detail_levels()
        nodes = {
            level.id: DetailLevelTreeNode(**DetailLevelResponse.model_validate(level).model_dump())
            for level in levels
        }
        children_of: Dict[Optional[uuid.UUID], List[DetailLevelTreeNode]] = defaultdict(list)
        for level in levels:
            parent_key = level.parent_id if level.parent_id in nodes else None
            children_of[parent_key].append(nodes[level.id])
        for level_id, node in nodes.items():
            node.children = children_of.get(level_id, [])
        return children_of.get(None, [])

    async def get_detail_level(self, level_id: uuid.UUID) -> DetailLevel:
        result = await self.db.execute(select(DetailLevel).where(DetailLevel.id == level_id))
        level = result.scalar_one_or_none()
        if not level:
            raise NotFoundException("DetailLevel", level_id)
        return level

    async def _ensure_unique_level_code(self, value: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        query = select(DetailLevel.id).where(DetailLevel.code == value)
        if exclude_id:
            query = query.where(DetailLevel.id != exclude_id)
        if (await self.db.execute(query.limit(1))).first():
            raise DuplicateEntryException("DetailLevel", "code", value, message="duplicateCode")

    async def _load_specific_codes(self, code_ids: List[uuid.UUID]) -> List[Code]:
        unique_ids = list(dict.fromkeys(code_ids))
        if not unique_ids:
            return []
        result = await self.db.execute(select(Code).where(Code.id.in_(unique_ids)))
        codes = {code.id: code for code in result.scalars().all()}
        for code_id in unique_ids:
            code = codes.get(code_id)
            if code is None or code.kind != CodeKind.SPECIFIC:
                raise ValidationException(
                    "specificRequired",
                    field="specific_code_ids",
                    details={"code_id": str(code_id)},
                )
        return [codes[code_id] for code_id in unique_ids]

    async def _would_create_cycle(self, level_id: uuid.UUID, candidate_parent_id: Optional[uuid.UUID]) -> bool:
        if candidate_parent_id is None:
            return False
        if candidate_parent_id == level_id:
            return True
        current = candidate_parent_id
        for _ in range(MAX_TREE_DEPTH):
            result = await self.db.execute(
                select(DetailLevel.parent_id).where(DetailLevel.id == current)
            )
            row = result.first()
            if row is None or row[0] is None:
                return False
            if row[0] == level_id:
                return True
            current = row[0]
        return False

    async def create_detail_level(self, data: DetailLevelCreate) -> DetailLevel:
        await self._ensure_unique_level_code(data.code.strip())
        if data.parent_id:
            await self.get_detail_level(data.parent_id)
        specific_codes = await self._load_specific_codes(data.specific_code_ids)

        level = DetailLevel(
            code=data.code.strip(),
            title=data.title.strip(),
            parent_id=data.parent_id,
            is_active=data.is_active,
            specific_codes=specific_codes,
        )
        self.db.add(level)
        await self.db.flush()
        logger.info(f"Detail level {level.code} created")
        return level

    async def update_detail_level(self, level_id: uuid.UUID, data: DetailLevelUpdate) -> DetailLevel:
        level = await self.get_detail_level(level_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("code") is not None and changes["code"].strip() != level.code:
            await self._ensure_unique_level_code(changes["code"].strip(), exclude_id=level.id)
            level.code = changes["code"].strip()
        if "parent_id" in changes:
            parent_id = changes["parent_id"]
            if parent_id is not None:
                if await self._would_create_cycle(level.id, parent_id):
                    raise ValidationException("cycle", field="parent_id")
                await self.get_detail_level(parent_id)
            level.parent_id = parent_id
        if changes.get("title") is not None:
            level.title = changes["title"].strip()
        if changes.get("is_active") is not None:
            level.is_active = changes["is_active"]
        if changes.get("specific_code_ids") is not None:
            level.specific_codes = await self._load_specific_codes(changes["specific_code_ids"])

        await self.db.flush()
        return level

    async def delete_detail_level(self, level_id: uuid.UUID) -> None:
        level = await self.get_detail_level(level_id)
        if await self._exists(select(DetailLevel.id).where(DetailLevel.parent_id == level.id)):
            raise ConflictException("hasChildren", resource_type="DetailLevel")
        if await self._exists(
            select(DetailDetailLevel.detail_id).where(DetailDetailLevel.detail_level_id == level.id)
        ):
            raise ConflictException("linkedExists", resource_type="DetailLevel")
        await self.db.delete(level)
        await self.db.flush()
        logger.info(f"Detail level {level.code} deleted")

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _exists(self, query) -> bool:
        result = await self.db.execute(query.limit(1))
        return result.first() is not None
