# -----------------------------------------------------------------------------
# Author: Frank Campbell Bogle
# Created: 2026-02-08
# Description: ContextAssembler
# -----------------------------------------------------------------------------
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Dict, List, Sequence

from chunking.DocumentChunker import estimate_tokens
from config.Config import CONTEXT_ORDERS, Config
from similarity.QueryResult import QueryResult
from utility.logging_utils import get_class_logger


@dataclass
class AssembledContext:
    context_text: str = ""
    used_record_ids: List[str] = field(default_factory=list)
    estimated_tokens: int = 0
    truncated: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.context_text


class ContextAssembler:
    """
    Turns ranked QueryResults into one grounding string for the generator.

    - order="score": best hit first. order="document": documents ranked by
      their best hit, chunks within a document in reading order.
    - Chunks overlapping an already-included chunk by more than
      `dedup_overlap_ratio` (of the shorter chunk) are dropped.
    - The budget is token_budget * chars_per_token characters; the last chunk
      that does not fit is truncated.
    """

    def __init__(
            self,
            *,
            chars_per_token: int = 4,
            dedup_overlap_ratio: float = 0.8,
            order: str = "score",
            source_tags: bool = False,
            separator: str = "\n\n",
            logger=None,
    ):
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be > 0")
        if not 0.0 < dedup_overlap_ratio <= 1.0:
            raise ValueError("dedup_overlap_ratio must be in (0, 1]")
        if order not in CONTEXT_ORDERS:
            raise ValueError(f"order must be one of {CONTEXT_ORDERS}")

        self.chars_per_token = chars_per_token
        self.dedup_overlap_ratio = dedup_overlap_ratio
        self.order = order
        self.source_tags = source_tags
        self.separator = separator
        self.logger = logger or get_class_logger(self.__class__)

    @classmethod
    def from_config(cls, cfg: Config, **overrides) -> "ContextAssembler":
        params = dict(
            chars_per_token=cfg.chars_per_token,
            dedup_overlap_ratio=cfg.dedup_overlap_ratio,
            order=cfg.context_order,
        )
        params.update(overrides)
        return cls(**params)

    def assemble(self, results: Sequence[QueryResult], token_budget: int) -> AssembledContext:
        if not results or token_budget <= 0:
            return AssembledContext()

        budget = token_budget * self.chars_per_token
        parts: List[str] = []
        used: List[QueryResult] = []
        length = 0
        truncated = False

        for result in self._ordered(results):
            if any(self._is_duplicate(result, kept) for kept in used):
                self.logger.debug("Skipping near-duplicate chunk %s", result.record_id)
                continue

            sep = self.separator if parts else ""
            piece = self._render(result)
            remaining = budget - length - len(sep)
            if remaining <= 0:
                truncated = True
                break

            if len(piece) > remaining:
                parts.append(sep + piece[:remaining])
                used.append(result)
                length = budget
                truncated = True
                break

            parts.append(sep + piece)
            used.append(result)
            length += len(sep) + len(piece)

        text = "".join(parts)
        context = AssembledContext(
            context_text=text,
            used_record_ids=[r.record_id for r in used],
            estimated_tokens=estimate_tokens(text, self.chars_per_token),
            truncated=truncated,
        )
        self.logger.debug(
            "Assembled context: %d/%d chunks, %d chars, ~%d tokens (truncated=%s)",
            len(used),
            len(results),
            len(text),
            context.estimated_tokens,
            truncated,
        )
        return context

    def _render(self, result: QueryResult) -> str:
        if self.source_tags:
            return f"[{result.record_id}]: {result.text}"
        return result.text

    def _ordered(self, results: Sequence[QueryResult]) -> List[QueryResult]:
        by_score = sorted(results, key=lambda r: (-r.score, r.chunk_index, r.record_id))
        if self.order == "score":
            return by_score

        doc_rank: Dict[str, int] = {}
        for r in by_score:
            doc_rank.setdefault(r.source_document_id, len(doc_rank))
        return sorted(by_score, key=lambda r: (doc_rank[r.source_document_id], r.chunk_index))

    def _is_duplicate(self, a: QueryResult, b: QueryResult) -> bool:
        shorter = min(len(a.text), len(b.text))
        if shorter == 0:
            return a.text == b.text
        return self._overlap_chars(a, b) / shorter > self.dedup_overlap_ratio

    @staticmethod
    def _overlap_chars(a: QueryResult, b: QueryResult) -> int:
        if (
            a.source_document_id == b.source_document_id
            and None not in (a.start_offset, a.end_offset, b.start_offset, b.end_offset)
        ):
            return max(0, min(a.end_offset, b.end_offset) - max(a.start_offset, b.start_offset))

        matcher = SequenceMatcher(None, a.text, b.text, autojunk=False)
        return matcher.find_longest_match(0, len(a.text), 0, len(b.text)).size
