import logging
import re
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, Query

from coursepath.models.course_model import Course, CourseModule, TranscriptSegment
from coursepath.models.chat_model import ChatInteraction
from coursepath.models.user_model import User
from coursepath.schemas.ai_schema import TranscriptSegmentHit
from coursepath.services import ai_service

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-z0-9]+")
_STOPWORDS = {
    "a", "an", "and", "are", "as", "at", "be", "by", "can", "do", "does", "for", "from", "how",
    "i", "in", "is", "it", "of", "on", "or", "the", "this", "to", "what", "when", "where", "which",
    "who", "why", "with", "you",
}


def _tokens(text: str) -> set:
    return {w for w in _WORD_RE.findall(text.lower()) if w not in _STOPWORDS}

def keyword_score(query_tokens: set, text: str) -> float:
    """Share of query terms present in the segment. Not a semantic measure."""
    if not query_tokens:
        return 0.0
    return len(query_tokens & _tokens(text)) / len(query_tokens)

def format_timestamp(seconds: float) -> str:
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"

def format_segment(hit: TranscriptSegmentHit) -> str:
    return f"[{format_timestamp(hit.start_time)} - {format_timestamp(hit.end_time)}] {hit.text}"

def _to_hit(segment: TranscriptSegment, score: float) -> TranscriptSegmentHit:
    return TranscriptSegmentHit(
        module_id=segment.module_id,
        segment_id=segment.segment_key,
        text=segment.text,
        start_time=segment.start_time,
        end_time=segment.end_time,
        score=round(score, 4),
    )


def _segments_in_scope(db: Session, course_id: int, module_id: Optional[int] = None) -> Query:
    q = (
        db.query(TranscriptSegment)
        .join(CourseModule, CourseModule.id == TranscriptSegment.module_id)
        .filter(CourseModule.course_id == course_id)
    )
    if module_id is not None:
        q = q.filter(TranscriptSegment.module_id == module_id)
    return q

def vector_search_query(
    db: Session,
    query_vector: List[float],
    course_id: int,
    module_id: Optional[int] = None,
    limit: int = 5,
) -> Query:
    """Nearest segments by cosine distance (pgvector `<=>`), closest first. Postgres only."""
    distance = TranscriptSegment.embedding.cosine_distance(query_vector).label("distance")
    return (
        _segments_in_scope(db, course_id, module_id)
        .add_columns(distance)
        .filter(TranscriptSegment.embedding.isnot(None))
        .order_by(distance)
        .limit(limit)
    )

def supports_vector_search(db: Session) -> bool:
    return db.get_bind().dialect.name == "postgresql"


def _vector_hits(
    db: Session, query: str, course_id: int, module_id: Optional[int], limit: int
) -> Optional[List[TranscriptSegmentHit]]:
    """Hits ranked by the database, or None when semantic ranking is not possible."""
    if not supports_vector_search(db) or not ai_service.is_configured():
        return None
    indexed = _segments_in_scope(db, course_id, module_id).filter(TranscriptSegment.embedding.isnot(None))
    if indexed.first() is None:
        return None
    try:
        vectors = ai_service.embed_texts([query])
    except Exception as e:
        # Ranking still works on keywords
        logger.warning(f"Query embedding failed, using keyword ranking: {e}")
        return None
    if not vectors:
        return None

    rows = vector_search_query(db, vectors[0], course_id, module_id, limit).all()
    return [_to_hit(segment, 1.0 - distance) for segment, distance in rows if 1.0 - distance > 0]

def _keyword_hits(
    db: Session, query: str, course_id: int, module_id: Optional[int], limit: int
) -> List[TranscriptSegmentHit]:
    query_tokens = _tokens(query)
    if not query_tokens:
        return []
    hits = []
    for segment in _segments_in_scope(db, course_id, module_id).order_by(TranscriptSegment.id):
        score = keyword_score(query_tokens, segment.text)
        if score > 0:
            hits.append(_to_hit(segment, score))
    hits.sort(key=lambda h: h.score, reverse=True)
    return hits[:limit]


def search_transcripts(
    db: Session,
    query: str,
    course_id: int,
    module_id: Optional[int] = None,
    limit: int = 5,
) -> List[TranscriptSegmentHit]:
    """
    Ranks transcript segments of a course (or one module) against a query.

    On Postgres with indexed segments and an API key, the database orders
    segments by cosine distance to the query embedding. Otherwise segments
    are ranked by keyword overlap. Segments scoring zero are dropped.
    """
    hits = _vector_hits(db, query, course_id, module_id, limit)
    if hits is None:
        hits = _keyword_hits(db, query, course_id, module_id, limit)
    logger.debug(f"Transcript search in course {course_id} (module {module_id}) returned {len(hits)} hits for '{query[:50]}'")
    return hits


def answer_question(
    db: Session,
    user: User,
    course: Course,
    question: str,
    module: Optional[CourseModule] = None,
) -> Tuple[ChatInteraction, List[TranscriptSegmentHit]]:
    """
    Answers a learner's question from course context and the most relevant
    transcript segments, and stores the exchange. Returns (interaction, sources).
    """
    sources = search_transcripts(db, question, course.id, module.id if module else None)

    context_parts = [f"Course: {course.title}", course.description or ""]
    if module:
        context_parts += [f"Module: {module.title}", module.description or ""]
    if sources:
        context_parts.append("Relevant Transcript Segments:\n" + "\n".join(format_segment(h) for h in sources))
    context = "\n\n".join(part for part in context_parts if part)

    answer = ai_service.get_ai_chat_response(
        prompt=question,
        course_title=course.title,
        user_query_context=context,
    )

    interaction = ChatInteraction(
        user_id=user.id,
        course_id=course.id,
        module_id=module.id if module else None,
        question=question,
        answer=answer,
    )
    try:
        db.add(interaction)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error saving chat interaction for user {user.id}: {e}", exc_info=True)
        raise
    db.refresh(interaction)
    logger.info(f"AI question answered for user {user.id} in course {course.id} with {len(sources)} transcript sources")
    return interaction, sources

def get_chat_history(db: Session, user_id: int, course_id: int, limit: int = 50) -> List[ChatInteraction]:
    return (
        db.query(ChatInteraction)
        .filter(ChatInteraction.user_id == user_id, ChatInteraction.course_id == course_id)
        .order_by(ChatInteraction.created_at.desc(), ChatInteraction.id.desc())
        .limit(limit)
        .all()
    )
