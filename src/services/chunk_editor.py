"""Chunk mutation engine -- user edits to a draft session's chunk list.

Every operation is a pure ``Session -> Session`` function run through
:meth:`DraftSessionStore.mutate`, so the DRAFT guard and the chunk lookups
are evaluated against the version actually being replaced.

Invariants kept by every operation:

* mutation is only legal while ``status == DRAFT``;
* chunks touched by update, merge or split are ``is_dirty``;
* unselected chunks keep their relative order.
"""

from __future__ import annotations

import structlog

from src.models.chunk import Chunk, ChunkingOptions
from src.models.session import PreviewReport, Session, SessionStatus, UserRole
from src.services.chunking.chunking_service import ChunkingService
from src.services.draft_store import DraftSessionStore, candidates_to_chunks, new_chunk_id
from src.utils.errors import (
    ChunkNotFoundError,
    ForbiddenError,
    InputValidationError,
    StateConflictError,
)

logger = structlog.get_logger(logger_name=__name__)

MERGE_SEPARATOR = "\n\n"


def _require_draft(session: Session) -> None:
    if session.status is not SessionStatus.DRAFT:
        raise StateConflictError(
            "Cannot modify chunks in non-DRAFT status",
            context={"session_id": session.session_id, "status": session.status.value},
        )


def _chunk_index(session: Session, chunk_id: str) -> int:
    index = session.find_chunk(chunk_id)
    if index == -1:
        raise ChunkNotFoundError(chunk_id, session.session_id)
    return index


def split_text(text: str, split_points: list[int]) -> list[str]:
    """Cut *text* at sorted, clamped offsets; strip pieces and drop empties."""
    points = sorted(min(max(point, 0), len(text)) for point in split_points)
    bounds = [0, *points, len(text)]
    pieces = (text[start:end].strip() for start, end in zip(bounds, bounds[1:]))
    return [piece for piece in pieces if piece]


def validate_session(session: Session) -> list[str]:
    """Return publish warnings for *session* (empty list when valid)."""
    warnings: list[str] = []
    if not session.chunks:
        warnings.append("No chunks to publish")
    empty = sum(1 for chunk in session.chunks if not chunk.text.strip())
    if empty:
        warnings.append(f"{empty} empty chunks found")
    return warnings


class ChunkMutationEngine:
    """Edit, merge, split and (re)generate chunks of draft sessions."""

    def __init__(self, drafts: DraftSessionStore, chunking: ChunkingService) -> None:
        self._drafts = drafts
        self._chunking = chunking

    async def update_chunk(self, session_id: str, chunk_id: str, text: str) -> Session:
        """Replace one chunk's text and mark it dirty."""

        def _apply(session: Session) -> Session:
            _require_draft(session)
            index = _chunk_index(session, chunk_id)
            chunks = list(session.chunks)
            chunks[index] = chunks[index].model_copy(update={"text": text, "is_dirty": True})
            return session.model_copy(update={"chunks": chunks})

        updated = await self._drafts.mutate(session_id, _apply)
        logger.info("chunk_updated", session_id=session_id, chunk_id=chunk_id)
        return updated

    async def merge_chunks(self, session_id: str, chunk_ids: list[str]) -> Session:
        """Replace the selected chunks with one dirty chunk.

        Texts are joined with a blank line in the order the ids are given;
        the merged chunk takes the position of the earliest selected chunk.
        """
        if len(chunk_ids) < 2:
            raise InputValidationError("At least two chunk IDs are required to merge")
        if len(set(chunk_ids)) != len(chunk_ids):
            raise InputValidationError("Duplicate chunk IDs in merge request")

        def _apply(session: Session) -> Session:
            _require_draft(session)
            by_id = {chunk.id: chunk for chunk in session.chunks}
            missing = [chunk_id for chunk_id in chunk_ids if chunk_id not in by_id]
            if missing:
                raise InputValidationError(
                    "Some chunk IDs not found in session",
                    context={"session_id": session.session_id, "missing": missing},
                )

            selected = [by_id[chunk_id] for chunk_id in chunk_ids]
            merged = Chunk(
                id=new_chunk_id(),
                text=MERGE_SEPARATOR.join(chunk.text for chunk in selected),
                is_dirty=True,
                heading_path=list(selected[0].heading_path),
                type=selected[0].type,
            )
            position = min(session.find_chunk(chunk_id) for chunk_id in chunk_ids)
            chosen = set(chunk_ids)
            chunks: list[Chunk] = []
            for index, chunk in enumerate(session.chunks):
                if index == position:
                    chunks.append(merged)
                if chunk.id not in chosen:
                    chunks.append(chunk)
            return session.model_copy(update={"chunks": chunks})

        updated = await self._drafts.mutate(session_id, _apply)
        logger.info("chunks_merged", session_id=session_id, merged=len(chunk_ids))
        return updated

    async def split_chunk(
        self,
        session_id: str,
        chunk_id: str,
        role: UserRole,
        split_points: list[int] | None = None,
        new_text_blocks: list[str] | None = None,
    ) -> Session:
        """Replace one chunk with several dirty chunks.

        Exactly one of *split_points* (character offsets into the original
        text) or *new_text_blocks* must be given.  Blank pieces are dropped.

        Raises
        ------
        ForbiddenError
            If *role* is the restricted Simple Mode role.
        InputValidationError
            If neither or both split modes are given, or nothing non-empty
            would remain.
        """
        if not role.is_elevated:
            raise ForbiddenError("Split operation is not available in Simple Mode")
        if bool(split_points) == bool(new_text_blocks):
            raise InputValidationError("Exactly one of splitPoints or newTextBlocks must be provided")

        def _apply(session: Session) -> Session:
            _require_draft(session)
            index = _chunk_index(session, chunk_id)
            original = session.chunks[index]

            if new_text_blocks:
                pieces = [block for block in new_text_blocks if block.strip()]
            else:
                pieces = split_text(original.text, split_points or [])
            if not pieces:
                raise InputValidationError(
                    "Split produced no non-empty blocks",
                    context={"session_id": session.session_id, "chunk_id": chunk_id},
                )

            replacements = [
                Chunk(
                    id=new_chunk_id(),
                    text=piece,
                    is_dirty=True,
                    heading_path=list(original.heading_path),
                    type=original.type,
                )
                for piece in pieces
            ]
            chunks = [*session.chunks[:index], *replacements, *session.chunks[index + 1 :]]
            return session.model_copy(update={"chunks": chunks})

        updated = await self._drafts.mutate(session_id, _apply)
        logger.info(
            "chunk_split",
            session_id=session_id,
            chunk_id=chunk_id,
            chunk_count=len(updated.chunks),
        )
        return updated

    async def generate_chunks(self, session_id: str, options: ChunkingOptions | None = None) -> Session:
        """Chunk the session's content when it has no chunks yet."""
        session = await self._drafts.get(session_id)
        self._check_generatable(session)

        candidates = await self._chunking.chunk(session.content, options, session.source_type)
        chunks = candidates_to_chunks(candidates)

        def _apply(current: Session) -> Session:
            self._check_generatable(current)
            return current.model_copy(update={"chunks": chunks})

        updated = await self._drafts.mutate(session_id, _apply)
        logger.info("chunks_generated", session_id=session_id, chunk_count=len(chunks))
        return updated

    async def preview(self, session_id: str) -> PreviewReport:
        """Move the session to PREVIEW and report publish warnings.

        Warnings never block the transition.
        """
        updated = await self._drafts.mutate(
            session_id,
            lambda session: session.model_copy(update={"status": SessionStatus.PREVIEW}),
        )
        warnings = validate_session(updated)
        logger.info("session_previewed", session_id=session_id, warnings=len(warnings))
        return PreviewReport(
            session_id=session_id,
            status=updated.status,
            is_valid=not warnings,
            warnings=warnings,
            chunk_count=len(updated.chunks),
        )

    async def return_to_draft(self, session_id: str) -> Session:
        """Re-enter DRAFT from PREVIEW; a DRAFT session is returned unchanged."""
        session = await self._drafts.get(session_id)
        if session.status is SessionStatus.DRAFT:
            return session
        updated = await self._drafts.mutate(
            session_id,
            lambda current: current.model_copy(update={"status": SessionStatus.DRAFT}),
        )
        logger.info("session_returned_to_draft", session_id=session_id)
        return updated

    @staticmethod
    def _check_generatable(session: Session) -> None:
        _require_draft(session)
        if session.chunks:
            raise StateConflictError(
                "Session already has chunks",
                context={"session_id": session.session_id, "chunk_count": len(session.chunks)},
            )
        if not session.content.strip():
            raise InputValidationError(
                "Session has no content to chunk",
                context={"session_id": session.session_id},
            )
