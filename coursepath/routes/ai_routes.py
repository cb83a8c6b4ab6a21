from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List
import logging

from coursepath.core.database import get_db
from coursepath.core.dependencies import get_current_active_user
from coursepath.models.user_model import User
from coursepath.schemas import ai_schema
from coursepath.crud import course_crud
from coursepath.services import ai_service, transcript_search

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ai", tags=["AI Services"])


@router.post("/ask", response_model=ai_schema.AIAnswerResponse)
def ask_course_question(
    request_data: ai_schema.AIQuestionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Answer a question about a course (optionally one module) using the most
    relevant transcript segments as context. The exchange is kept in the user's history.
    """
    course = course_crud.get_course(db, request_data.course_id)
    if not course or not course.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")

    module = None
    if request_data.module_id is not None:
        module = course_crud.get_module(db, request_data.module_id)
        if not module or module.course_id != course.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Module not found")

    logger.info(f"User {current_user.email} asking about course {course.id}: '{request_data.question[:50]}...'")
    try:
        interaction, sources = transcript_search.answer_question(db, current_user, course, request_data.question, module)
    except ai_service.AIServiceUnavailable as e:
        logger.warning(f"AI question from user {current_user.id} not answered: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return ai_schema.AIAnswerResponse(answer=interaction.answer, sources=sources)


@router.get("/history", response_model=List[ai_schema.ChatInteractionDisplay])
def read_chat_history(
    course_id: int = Query(...),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return transcript_search.get_chat_history(db, current_user.id, course_id, limit=limit)
