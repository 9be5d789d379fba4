"""
Work-context and PRD storage tools.

KV layout (namespace ``agentprd-main`` by default):

    context:<id>                 WorkContext
    user:<owner>:active_context  id of the active context
    user:<owner>:contexts        context ids, most recent first
    prd:<id>                     StoredPRD
    user:<owner>:prds            PRD ids, most recent first

``owner`` is the request's user id, or ``default``.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from agentprd.protocol.frames import WireModel, utc_now
from agentprd.storage.kv import get_or_default
from agentprd.tools.base import ToolContext, ToolRegistry, new_record_id
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)

ContextStatus = Literal["active", "paused", "completed"]
PRDStatus = Literal["draft", "review", "approved"]


class WorkContext(WireModel):
    id: str
    title: str
    description: str
    goals: List[str] = Field(default_factory=list)
    status: ContextStatus = "active"
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    user_id: Optional[str] = None
    related_prds: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class StoredPRD(WireModel):
    id: str
    title: str
    content: str
    format: Literal["markdown", "json"] = "markdown"
    context_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    user_id: Optional[str] = None
    version: int = 1
    status: PRDStatus = "draft"


class ContextManager:
    """CRUD for work contexts and PRDs on top of the KV store."""

    def __init__(self, ctx: ToolContext):
        self.ctx = ctx

    async def _get(self, key: str, default=None):
        return await get_or_default(self.ctx.kv, self.ctx.namespace, key, default)

    async def _set(self, key: str, value) -> None:
        await self.ctx.kv.set(self.ctx.namespace, key, value)

    async def _push_index(self, key: str, item_id: str) -> None:
        ids = list(await self._get(key, []) or [])
        if item_id not in ids:
            ids.insert(0, item_id)
            await self._set(key, ids)

    # Work contexts

    async def set_work_context(
        self,
        title: str,
        description: str,
        goals: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
    ) -> WorkContext:
        context = WorkContext(
            id=new_record_id("ctx"),
            title=title,
            description=description,
            goals=goals or [],
            tags=tags or [],
            user_id=self.ctx.user_id,
        )
        await self._set(f"context:{context.id}", context.to_wire())
        await self._set(f"user:{self.ctx.owner}:active_context", context.id)
        await self._push_index(f"user:{self.ctx.owner}:contexts", context.id)
        logger.info("Work context set", context_id=context.id)
        return context

    async def get_work_context(self, context_id: Optional[str] = None) -> Optional[WorkContext]:
        target = context_id or await self._get(f"user:{self.ctx.owner}:active_context")
        if not target:
            return None
        data = await self._get(f"context:{target}")
        return WorkContext.model_validate(data) if data else None

    async def list_work_contexts(self, status: str = "all", limit: int = 10) -> List[WorkContext]:
        contexts: List[WorkContext] = []
        for context_id in await self._get(f"user:{self.ctx.owner}:contexts", []) or []:
            if len(contexts) >= limit:
                break
            context = await self.get_work_context(context_id)
            if context and (status == "all" or context.status == status):
                contexts.append(context)
        return contexts

    async def switch_work_context(self, context_id: str) -> Optional[WorkContext]:
        context = await self.get_work_context(context_id)
        if context is None:
            return None

        await self._set(f"user:{self.ctx.owner}:active_context", context_id)
        context.status = "active"
        context.updated_at = utc_now()
        await self._set(f"context:{context_id}", context.to_wire())
        return context

    # PRDs

    async def store_prd(
        self,
        title: str,
        content: str,
        context_id: Optional[str] = None,
        status: PRDStatus = "draft",
    ) -> StoredPRD:
        prd = StoredPRD(
            id=new_record_id("prd"),
            title=title,
            content=content,
            context_id=context_id,
            user_id=self.ctx.user_id,
            status=status,
        )
        await self._set(f"prd:{prd.id}", prd.to_wire())

        try:
            await self._push_index(f"user:{self.ctx.owner}:prds", prd.id)
        except Exception as e:
            # The PRD itself is stored; only the listing is stale
            logger.warning(f"Could not update PRD index: {e}", prd_id=prd.id)

        if context_id:
            context = await self.get_work_context(context_id)
            if context:
                context.related_prds.append(prd.id)
                context.updated_at = utc_now()
                await self._set(f"context:{context_id}", context.to_wire())

        logger.info("PRD stored", prd_id=prd.id)
        return prd

    async def get_prd(self, prd_id: Optional[str] = None, title: Optional[str] = None) -> Optional[StoredPRD]:
        if prd_id:
            data = await self._get(f"prd:{prd_id}")
            return StoredPRD.model_validate(data) if data else None

        if title:
            needle = title.lower()
            for candidate in await self._get(f"user:{self.ctx.owner}:prds", []) or []:
                prd = await self.get_prd(candidate)
                if prd and needle in prd.title.lower():
                    return prd
        return None

    async def list_prds(
        self,
        context_id: Optional[str] = None,
        status: str = "all",
        limit: int = 10,
    ) -> List[StoredPRD]:
        if context_id:
            context = await self.get_work_context(context_id)
            prd_ids = context.related_prds if context else []
        else:
            prd_ids = await self._get(f"user:{self.ctx.owner}:prds", []) or []

        prds: List[StoredPRD] = []
        for prd_id in prd_ids[:limit]:
            prd = await self.get_prd(prd_id)
            if prd and (status == "all" or prd.status == status):
                prds.append(prd)
        return prds

    async def delete_prd(self, prd_id: str) -> dict:
        prd = await self.get_prd(prd_id)
        if prd is None:
            return {"success": False, "message": f"PRD {prd_id} not found"}

        await self.ctx.kv.delete(self.ctx.namespace, f"prd:{prd_id}")

        index_key = f"user:{self.ctx.owner}:prds"
        ids = [i for i in await self._get(index_key, []) or [] if i != prd_id]
        await self._set(index_key, ids)

        if prd.context_id:
            context = await self.get_work_context(prd.context_id)
            if context and prd_id in context.related_prds:
                context.related_prds.remove(prd_id)
                context.updated_at = utc_now()
                await self._set(f"context:{context.id}", context.to_wire())

        logger.info("PRD deleted", prd_id=prd_id)
        return {"success": True, "message": f"PRD '{prd.title}' deleted"}


# Tool parameter models

class SetWorkContextParams(BaseModel):
    title: str = Field(description="Brief title for the work context")
    description: str = Field(description="Detailed description of what we're working on")
    goals: List[str] = Field(default_factory=list, description="List of specific goals or tasks")
    tags: List[str] = Field(default_factory=list, description="Optional tags for categorization")


class GetWorkContextParams(BaseModel):
    context_id: str = Field("", description="Optional specific context ID to retrieve")


class ListWorkContextsParams(BaseModel):
    status: Literal["active", "paused", "completed", "all"] = "all"
    limit: int = Field(10, ge=1, le=100)


class SwitchWorkContextParams(BaseModel):
    context_id: str = Field(description="ID of the context to switch to")


class StorePRDParams(BaseModel):
    title: str = Field(description="Title of the PRD")
    content: str = Field(description="Full PRD content in markdown format")
    context_id: str = Field("", description="Associated work context ID")
    status: PRDStatus = "draft"


class GetPRDParams(BaseModel):
    prd_id: str = Field("", description="ID of the PRD to retrieve")
    title: str = Field("", description="Search by PRD title (alternative to ID)")


class ListPRDsParams(BaseModel):
    context_id: str = Field("", description="Filter PRDs by work context")
    status: Literal["draft", "review", "approved", "all"] = "all"
    limit: int = Field(10, ge=1, le=100)


class DeletePRDParams(BaseModel):
    prd_id: str = Field(description="ID of the PRD to delete")
    confirm: bool = Field(False, description="Must be true to delete permanently")


def register_context_tools(registry: ToolRegistry) -> None:
    manager = ContextManager(registry.context)

    @registry.tool("set_work_context", "Set or update the current work context and goals", SetWorkContextParams)
    async def set_work_context(ctx: ToolContext, p: SetWorkContextParams):
        return await manager.set_work_context(p.title, p.description, p.goals, p.tags)

    @registry.tool("get_work_context", "Get the current active work context", GetWorkContextParams)
    async def get_work_context(ctx: ToolContext, p: GetWorkContextParams):
        return await manager.get_work_context(p.context_id or None)

    @registry.tool("list_work_contexts", "List work contexts for the user", ListWorkContextsParams)
    async def list_work_contexts(ctx: ToolContext, p: ListWorkContextsParams):
        return await manager.list_work_contexts(p.status, p.limit)

    @registry.tool("switch_work_context", "Switch to a different work context", SwitchWorkContextParams)
    async def switch_work_context(ctx: ToolContext, p: SwitchWorkContextParams):
        return await manager.switch_work_context(p.context_id)

    @registry.tool("store_prd", "Store a PRD document for future reference", StorePRDParams)
    async def store_prd(ctx: ToolContext, p: StorePRDParams):
        return await manager.store_prd(p.title, p.content, p.context_id or None, p.status)

    @registry.tool("get_prd", "Retrieve a stored PRD document", GetPRDParams)
    async def get_prd(ctx: ToolContext, p: GetPRDParams):
        return await manager.get_prd(p.prd_id or None, p.title or None)

    @registry.tool("list_prds", "List stored PRD documents", ListPRDsParams)
    async def list_prds(ctx: ToolContext, p: ListPRDsParams):
        return await manager.list_prds(p.context_id or None, p.status, p.limit)

    @registry.tool("delete_prd", "Delete a PRD permanently", DeletePRDParams)
    async def delete_prd(ctx: ToolContext, p: DeletePRDParams):
        if not p.confirm:
            return {
                "error": "Deletion requires confirmation. Please confirm you want to delete this PRD permanently.",
                "requiresConfirmation": True,
            }
        return await manager.delete_prd(p.prd_id)


__all__ = [
    "WorkContext",
    "StoredPRD",
    "ContextManager",
    "register_context_tools",
]
