"""
Notes and full-text search over stored PRDs and notes.

Matching is case-insensitive substring search. PRDs score 2 for a title
hit plus 0.1 per occurrence in title and content; notes score 0.5 per
occurrence.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from agentprd.protocol.frames import WireModel, utc_now
from agentprd.storage.kv import get_or_default
from agentprd.tools.base import ToolContext, ToolRegistry, new_record_id
from agentprd.tools.context_tools import ContextManager, StoredPRD

EXCERPT_RADIUS = 50


class Note(WireModel):
    id: str
    content: str
    context_id: Optional[str] = None
    prd_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    user_id: Optional[str] = None


class SearchResult(WireModel):
    type: Literal["prd", "context", "note"]
    id: str
    title: str
    excerpt: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def excerpt_around(text: str, query: str) -> str:
    index = text.lower().find(query.lower())
    if index < 0:
        return text[:100] + "..."
    start = max(0, index - EXCERPT_RADIUS)
    end = min(len(text), index + len(query) + EXCERPT_RADIUS)
    return "..." + text[start:end] + "..."


class SearchManager:
    def __init__(self, ctx: ToolContext):
        self.ctx = ctx
        self.contexts = ContextManager(ctx)

    async def _get(self, key: str, default=None):
        return await get_or_default(self.ctx.kv, self.ctx.namespace, key, default)

    @property
    def _notes_key(self) -> str:
        return f"user:{self.ctx.owner}:notes"

    @property
    def _tags_key(self) -> str:
        return f"user:{self.ctx.owner}:tags"

    async def add_note(
        self,
        content: str,
        context_id: Optional[str] = None,
        prd_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Note:
        note = Note(
            id=new_record_id("note"),
            content=content,
            context_id=context_id,
            prd_id=prd_id,
            tags=tags or [],
            user_id=self.ctx.user_id,
        )
        await self.ctx.kv.set(self.ctx.namespace, f"note:{note.id}", note.to_wire())

        note_ids = list(await self._get(self._notes_key, []) or [])
        note_ids.insert(0, note.id)
        await self.ctx.kv.set(self.ctx.namespace, self._notes_key, note_ids)

        await self._update_tag_index(note.tags)
        return note

    async def _update_tag_index(self, tags: List[str]) -> None:
        if not tags:
            return
        known = list(await self._get(self._tags_key, []) or [])
        known.extend(tag for tag in tags if tag not in known)
        await self.ctx.kv.set(self.ctx.namespace, self._tags_key, known)

    async def _notes(self) -> List[Note]:
        notes = []
        for note_id in await self._get(self._notes_key, []) or []:
            data = await self._get(f"note:{note_id}")
            if data:
                notes.append(Note.model_validate(data))
        return notes

    async def list_notes(
        self,
        context_id: Optional[str] = None,
        prd_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
        limit: int = 20,
    ) -> List[Note]:
        selected: List[Note] = []
        for note in await self._notes():
            if len(selected) >= limit:
                break
            if context_id and note.context_id != context_id:
                continue
            if prd_id and note.prd_id != prd_id:
                continue
            if tags and not any(tag in note.tags for tag in tags):
                continue
            selected.append(note)
        return selected

    async def search_prds(
        self,
        query: str,
        status: str = "all",
        context_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 10,
    ) -> List[SearchResult]:
        needle = query.lower()
        results: List[SearchResult] = []
        date_from, date_to = _aware(date_from), _aware(date_to)

        for prd_id in await self._get(f"user:{self.ctx.owner}:prds", []) or []:
            prd: Optional[StoredPRD] = await self.contexts.get_prd(prd_id)
            if prd is None:
                continue
            if status != "all" and prd.status != status:
                continue
            if context_id and prd.context_id != context_id:
                continue
            if date_from and prd.created_at < date_from:
                continue
            if date_to and prd.created_at > date_to:
                continue

            searchable = f"{prd.title} {prd.content}".lower()
            if needle not in searchable:
                continue

            score = (2 if needle in prd.title.lower() else 0) + searchable.count(needle) * 0.1
            results.append(
                SearchResult(
                    type="prd",
                    id=prd.id,
                    title=prd.title,
                    excerpt=excerpt_around(prd.content, query),
                    score=round(score, 3),
                    metadata={
                        "status": prd.status,
                        "createdAt": prd.created_at.isoformat(),
                        "updatedAt": prd.updated_at.isoformat(),
                    },
                )
            )

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    async def search_notes(self, query: str, limit: int = 10) -> List[SearchResult]:
        needle = query.lower()
        results: List[SearchResult] = []

        for note in await self._notes():
            occurrences = note.content.lower().count(needle)
            if not occurrences:
                continue
            title = note.content[:50] + ("..." if len(note.content) > 50 else "")
            results.append(
                SearchResult(
                    type="note",
                    id=note.id,
                    title=title,
                    excerpt=excerpt_around(note.content, query),
                    score=occurrences * 0.5,
                    metadata={
                        "tags": note.tags,
                        "createdAt": note.created_at.isoformat(),
                        "updatedAt": note.updated_at.isoformat(),
                    },
                )
            )

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    async def search_contexts(self, query: str, limit: int = 10) -> List[SearchResult]:
        needle = query.lower()
        results: List[SearchResult] = []

        for context in await self.contexts.list_work_contexts(limit=100):
            searchable = f"{context.title} {context.description}".lower()
            if needle not in searchable:
                continue
            score = (2 if needle in context.title.lower() else 0) + searchable.count(needle) * 0.1
            results.append(
                SearchResult(
                    type="context",
                    id=context.id,
                    title=context.title,
                    excerpt=excerpt_around(context.description, query),
                    score=round(score, 3),
                    metadata={"status": context.status, "tags": context.tags},
                )
            )
        return results[:limit]

    async def search_all(self, query: str, types: List[str], limit: int = 10) -> List[SearchResult]:
        results: List[SearchResult] = []
        if "prd" in types:
            results.extend(await self.search_prds(query, limit=limit))
        if "context" in types:
            results.extend(await self.search_contexts(query, limit=limit))
        if "note" in types:
            results.extend(await self.search_notes(query, limit=limit))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    async def get_suggestions(self, prefix: str, kind: str = "all", limit: int = 5) -> List[str]:
        needle = prefix.lower()
        suggestions: List[str] = []

        if kind in ("all", "tag"):
            tags = await self._get(self._tags_key, []) or []
            suggestions.extend(f"#{tag}" for tag in tags if tag.lower().startswith(needle))

        if kind in ("all", "prd"):
            for prd_id in (await self._get(f"user:{self.ctx.owner}:prds", []) or [])[:20]:
                if len(suggestions) >= limit:
                    break
                prd = await self.contexts.get_prd(prd_id)
                if prd and needle in prd.title.lower():
                    suggestions.append(prd.title)

        if kind in ("all", "context"):
            for context in await self.contexts.list_work_contexts(limit=20):
                if len(suggestions) >= limit:
                    break
                if needle in context.title.lower():
                    suggestions.append(context.title)

        return suggestions[:limit]


class SearchPRDsParams(BaseModel):
    query: str = Field(description="Search query string")
    status: Literal["draft", "review", "approved", "all"] = "all"
    context_id: Optional[str] = None
    date_from: Optional[datetime] = Field(None, description="ISO date for range start")
    date_to: Optional[datetime] = Field(None, description="ISO date for range end")
    limit: int = Field(10, ge=1, le=100)


class SearchAllParams(BaseModel):
    query: str = Field(description="Search query string")
    types: List[Literal["prd", "context", "note"]] = Field(default_factory=lambda: ["prd", "context", "note"])
    limit: int = Field(10, ge=1, le=100)


class AddNoteParams(BaseModel):
    content: str = Field(description="Note content")
    context_id: Optional[str] = Field(None, description="Associated work context")
    prd_id: Optional[str] = Field(None, description="Associated PRD")
    tags: List[str] = Field(default_factory=list, description="Tags for categorization")


class ListNotesParams(BaseModel):
    context_id: Optional[str] = None
    prd_id: Optional[str] = None
    tags: Optional[List[str]] = None
    limit: int = Field(20, ge=1, le=100)


class GetSuggestionsParams(BaseModel):
    prefix: str = Field(description="Partial query to get suggestions for")
    type: Literal["prd", "context", "tag", "all"] = "all"
    limit: int = Field(5, ge=1, le=50)


def register_search_tools(registry: ToolRegistry) -> None:
    manager = SearchManager(registry.context)

    @registry.tool("search_prds", "Search across all PRDs using full-text search", SearchPRDsParams)
    async def search_prds(ctx: ToolContext, p: SearchPRDsParams):
        return await manager.search_prds(p.query, p.status, p.context_id, p.date_from, p.date_to, p.limit)

    @registry.tool("search_all", "Search across PRDs, contexts, and notes", SearchAllParams)
    async def search_all(ctx: ToolContext, p: SearchAllParams):
        return await manager.search_all(p.query, list(p.types), p.limit)

    @registry.tool("add_note", "Add a quick note or thought", AddNoteParams)
    async def add_note(ctx: ToolContext, p: AddNoteParams):
        return await manager.add_note(p.content, p.context_id, p.prd_id, p.tags)

    @registry.tool("list_notes", "List notes with optional filtering", ListNotesParams)
    async def list_notes(ctx: ToolContext, p: ListNotesParams):
        return await manager.list_notes(p.context_id, p.prd_id, p.tags, p.limit)

    @registry.tool("get_suggestions", "Get auto-suggestions based on past work", GetSuggestionsParams)
    async def get_suggestions(ctx: ToolContext, p: GetSuggestionsParams):
        return await manager.get_suggestions(p.prefix, p.type, p.limit)


__all__ = ["Note", "SearchResult", "SearchManager", "register_search_tools", "excerpt_around"]
