"""
FUZZY ENTITY MATCHER

Maps free text ("zobo", "shoe", "mrs adeyemi") to a product or customer of ONE
merchant, with a confidence score in [0, 1].

Architecture:
1. EntityMatcher: pure scorer, given a query and candidate names
   - SimilarityMatcher: local string similarity (default, used in tests)
   - LLMEntityMatcher: Groq-backed, falls back to SimilarityMatcher
2. EntityResolver: loads the merchant's candidates from the store, asks the
   matcher, then applies the per-kind threshold and the ambiguity rule

Confidence scale (SimilarityMatcher):
- 1.0  = exact (case-insensitive)
- 0.98 = same after normalization ("Bottles of Zobo" vs "bottle of zobo")
- 0.8+ = typo or partial name covering the important words
- <0.5 = a query word has no counterpart in the candidate
"""
import asyncio
import json
import logging
import re
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Any, List, Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from nlu.groq_client import GroqClient, get_groq_client
from stockline.core.config import settings
from stockline.models.customer import Customer
from stockline.models.product import Product

logger = logging.getLogger(__name__)

KIND_PRODUCT = "product"
KIND_CUSTOMER = "customer"

TOKEN_MATCH_THRESHOLD = 0.75


@dataclass
class MatchResult:
    name: str
    confidence: float
    entity: Any = None
    # Top two too close to call: entity stays None, name is only a suggestion
    ambiguous: bool = False


class EntityMatcher(Protocol):
    async def match(self, query: str, candidates: Sequence[str]) -> List[MatchResult]:
        """All candidates scored against the query, best first."""
        ...


# ==============================================================================
# LOCAL SIMILARITY
# ==============================================================================

def normalize_name(text: str) -> str:
    """
    Lowercase, drop punctuation, singularize each word.

    Examples:
        "Zobo-Delight!"  -> "zobo delight"
        "Red Shoes"      -> "red shoe"
    """
    if not text:
        return ""
    text = re.sub(r"[^\w\s]", " ", text.lower())
    return " ".join(_singular(word) for word in text.split())


def _singular(word: str) -> str:
    if len(word) > 3 and word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def _ratio(a: str, b: str) -> float:
    return SequenceMatcher(None, a, b).ratio()


def similarity_score(query: str, candidate: str) -> float:
    if not query or not candidate:
        return 0.0
    if query.strip().lower() == candidate.strip().lower():
        return 1.0

    q_norm = normalize_name(query)
    c_norm = normalize_name(candidate)
    if not q_norm or not c_norm:
        return 0.0
    if q_norm == c_norm:
        return 0.98

    q_tokens = q_norm.split()
    c_tokens = c_norm.split()

    best_ratios = []
    covered = set()
    for q in q_tokens:
        best, best_index = 0.0, None
        for index, c in enumerate(c_tokens):
            r = _ratio(q, c)
            if r > best:
                best, best_index = r, index
        best_ratios.append(best)
        if best >= TOKEN_MATCH_THRESHOLD and best_index is not None:
            covered.add(best_index)

    matched = sum(1 for r in best_ratios if r >= TOKEN_MATCH_THRESHOLD)
    if matched < len(q_tokens):
        # "red shoes" vs "black shoes": one word has nothing to pair with
        return _ratio(q_norm, c_norm) * matched / len(q_tokens)

    average = sum(best_ratios) / len(best_ratios)
    coverage = len(covered) / len(c_tokens)
    return round(average * (0.6 + 0.4 * coverage), 4)


class SimilarityMatcher:
    """Pure, local matcher. No network, deterministic."""

    async def match(self, query: str, candidates: Sequence[str]) -> List[MatchResult]:
        results = [MatchResult(name=c, confidence=similarity_score(query, c)) for c in candidates]
        results.sort(key=lambda r: r.confidence, reverse=True)
        return results


# ==============================================================================
# LLM-BACKED
# ==============================================================================

LLM_MATCH_PROMPT = """You are a name matching assistant for a shop's records.
Given a list of names and a search term, score how well each name matches the search.

Rules:
1. Exact matches (ignoring case) have confidence 1.0
2. Minor typos or word order changes: 0.8-0.9
3. Partial names: 0.5-0.7
4. Only return names with confidence above 0.3, highest first

Return ONLY JSON: {"matches": [{"name": "<name from the list>", "confidence": <0-1>}]}"""


class LLMEntityMatcher:
    """Groq-scored matcher. Names the LLM invents are dropped."""

    def __init__(self, client: Optional[GroqClient] = None, fallback: Optional[EntityMatcher] = None):
        self.client = client or get_groq_client()
        self.fallback = fallback or SimilarityMatcher()

    async def match(self, query: str, candidates: Sequence[str]) -> List[MatchResult]:
        if not candidates:
            return []
        if not self.client.is_available():
            return await self.fallback.match(query, candidates)

        # Blocking HTTP call; keep it off the event loop
        content = await asyncio.to_thread(
            self.client.complete_json,
            LLM_MATCH_PROMPT,
            json.dumps({"names": list(candidates), "search": query}),
        )
        results = self._parse(content, candidates)
        if results is None:
            logger.debug(f"[EntityMatcher] LLM output unusable for '{query}' - using similarity")
            return await self.fallback.match(query, candidates)
        return results

    @staticmethod
    def _parse(content: Optional[str], candidates: Sequence[str]) -> Optional[List[MatchResult]]:
        if not content:
            return None
        try:
            data = json.loads(content)
            by_lower = {c.lower(): c for c in candidates}
            results = []
            for entry in data.get("matches", []):
                name = by_lower.get(str(entry.get("name", "")).lower())
                if name is None:
                    continue
                confidence = max(0.0, min(1.0, float(entry.get("confidence", 0))))
                results.append(MatchResult(name=name, confidence=confidence))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"[EntityMatcher] Invalid LLM match output: {e}")
            return None
        results.sort(key=lambda r: r.confidence, reverse=True)
        return results


def build_matcher() -> EntityMatcher:
    if settings.USE_LLM_MATCHER:
        return LLMEntityMatcher()
    return SimilarityMatcher()


# ==============================================================================
# RESOLVER: store + matcher + thresholds
# ==============================================================================

class EntityResolver:
    """Resolve free text to a merchant's product or customer."""

    def __init__(
        self,
        matcher: Optional[EntityMatcher] = None,
        ambiguity_margin: float = settings.MATCH_AMBIGUITY_MARGIN,
    ):
        self.matcher = matcher or SimilarityMatcher()
        self.ambiguity_margin = ambiguity_margin

    @staticmethod
    def _candidates(db: Session, merchant_id: int, kind: str) -> list:
        model = Product if kind == KIND_PRODUCT else Customer
        return db.query(model).filter(model.merchant_id == merchant_id).all()

    async def match(self, db: Session, merchant_id: int, query: str, kind: str) -> Optional[MatchResult]:
        """
        Best candidate for `query` with its confidence, before any threshold.

        Returns None when there are no candidates. When the top two are too
        close to call and the best isn't exact, the best is returned with
        ambiguous=True and no entity.
        """
        if not query or not query.strip():
            return None

        entities = self._candidates(db, merchant_id, kind)
        if not entities:
            return None

        by_name = {e.name: e for e in entities}
        ranked = await self.matcher.match(query, list(by_name))
        if not ranked:
            return None

        best = ranked[0]
        second = ranked[1] if len(ranked) > 1 else None
        if second and best.confidence < 1.0 and (best.confidence - second.confidence) < self.ambiguity_margin:
            logger.warning(
                f"[EntityMatcher] AMBIGUOUS {kind} match for '{query}': "
                f"'{best.name}' ({best.confidence:.2f}) vs '{second.name}' ({second.confidence:.2f})"
            )
            best.ambiguous = True
            return best

        best.entity = by_name.get(best.name)
        return best

    async def resolve(
        self, db: Session, merchant_id: int, query: str, kind: str, threshold: float,
    ) -> Optional[MatchResult]:
        result = await self.match(db, merchant_id, query, kind)
        if result is None or result.confidence < threshold:
            logger.info(
                f"[EntityMatcher] No {kind} above {threshold} for '{query}' "
                f"(best: {result.name if result else 'None'} {result.confidence if result else 0:.2f})"
            )
            return None
        if result.ambiguous:
            logger.info(f"[EntityMatcher] '{query}' is ambiguous ({kind}), best guess '{result.name}'")
        else:
            logger.info(f"[EntityMatcher] '{query}' -> '{result.name}' ({kind}, {result.confidence:.2f})")
        return result

    async def resolve_product(
        self, db: Session, merchant_id: int, query: str, threshold: Optional[float] = None,
    ) -> Optional[Product]:
        threshold = settings.PRODUCT_MATCH_THRESHOLD if threshold is None else threshold
        result = await self.resolve(db, merchant_id, query, KIND_PRODUCT, threshold)
        return result.entity if result else None

    async def resolve_customer(
        self, db: Session, merchant_id: int, query: str, threshold: Optional[float] = None,
    ) -> Optional[Customer]:
        threshold = settings.CUSTOMER_MATCH_THRESHOLD if threshold is None else threshold
        result = await self.resolve(db, merchant_id, query, KIND_CUSTOMER, threshold)
        return result.entity if result else None

    async def suggest(self, db: Session, merchant_id: int, query: str, kind: str) -> Optional[str]:
        """Closest name worth offering as 'did you mean', if any is remotely close."""
        entities = self._candidates(db, merchant_id, kind)
        if not entities:
            return None
        ranked = await self.matcher.match(query, [e.name for e in entities])
        if ranked and ranked[0].confidence >= 0.4:
            return ranked[0].name
        return None
