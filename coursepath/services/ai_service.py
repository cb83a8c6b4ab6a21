import json
import logging
from typing import List, Dict, Optional, Any
from openai import OpenAI, APIError, APITimeoutError, RateLimitError

from coursepath.core.config import settings # To get API key and default models

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_MESSAGE = (
    "You are an expert educational assistant for a learning management system. "
    "Provide helpful, accurate and concise answers to questions about the course content. "
    "Use the context provided to inform your answers, and stay professional and supportive in tone."
)

OPTION_IDS = ["A", "B", "C", "D", "E", "F"]


class AIServiceUnavailable(RuntimeError):
    """The AI provider is not configured or did not answer."""


# Initialize OpenAI client once and reuse it.
if not settings.OPENAI_API_KEY:
    logger.warning("OPENAI_API_KEY not set. AI answers and embeddings are disabled.")
    client = None
else:
    try:
        client = OpenAI(api_key=settings.OPENAI_API_KEY)
    except Exception as e:
        logger.error(f"Failed to initialize OpenAI client: {e}", exc_info=True)
        client = None

def is_configured() -> bool:
    return client is not None

def get_ai_chat_response(
    prompt: str,
    system_message: Optional[str] = DEFAULT_SYSTEM_MESSAGE,
    course_title: Optional[str] = None,
    user_query_context: Optional[str] = None,
    chat_history: Optional[List[Dict[str, str]]] = None
) -> str:
    """
    Gets a chat response from OpenAI's ChatCompletion API.

    Args:
        prompt: The user's current message/query.
        system_message: The system prompt to guide AI behavior.
        course_title: Optional title of the course for context.
        user_query_context: Optional course material relevant to the query.
        chat_history: Optional list of previous messages in the conversation.

    Returns:
        The text response from the AI.

    Raises:
        AIServiceUnavailable: no API key is configured, or the provider call failed.
    """
    if not client:
        raise AIServiceUnavailable("AI service is not configured.")

    messages = []
    if system_message:
        messages.append({"role": "system", "content": system_message})

    context_parts = []
    if course_title:
        context_parts.append(f"The user is currently studying a course titled '{course_title}'.")
    if user_query_context:
        context_parts.append(f"Relevant course material:\n{user_query_context}")
    if context_parts:
        messages.append({"role": "system", "content": "\n\n".join(context_parts)})

    if chat_history:
        messages.extend(chat_history)

    messages.append({"role": "user", "content": prompt})

    try:
        logger.debug(f"Sending chat completion request to OpenAI. Model: {settings.OPENAI_MODEL_NAME}. Messages count: {len(messages)}")
        completion = client.chat.completions.create(
            model=settings.OPENAI_MODEL_NAME,
            messages=messages,
            temperature=0.7,
            max_tokens=1000,
        )
    except APITimeoutError as e:
        logger.error("OpenAI API request timed out.", exc_info=True)
        raise AIServiceUnavailable("The AI service request timed out. Please try again.") from e
    except RateLimitError as e:
        logger.error("OpenAI API rate limit exceeded.", exc_info=True)
        raise AIServiceUnavailable("AI service is busy. Please try again later.") from e
    except APIError as e:
        logger.error(f"OpenAI API error: {e}", exc_info=True)
        raise AIServiceUnavailable("The AI service returned an error.") from e

    response_message = completion.choices[0].message.content
    logger.info(f"Received chat response from OpenAI. Finish reason: {completion.choices[0].finish_reason}")
    return response_message.strip() if response_message else "Sorry, I couldn't generate a response."


def _normalize_generated_question(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Turns one model-produced question into {text, options:[{id,text}], correct_option_id}, or None."""
    text = (raw.get("text") or raw.get("question_text") or "").strip()
    options = raw.get("options")
    if not text or not isinstance(options, list) or len(options) < 2:
        return None

    normalized_options = []
    for idx, opt in enumerate(options[:len(OPTION_IDS)]):
        if isinstance(opt, dict):
            opt_id = str(opt.get("id") or OPTION_IDS[idx])
            opt_text = str(opt.get("text") or "").strip()
        else:
            opt_id, opt_text = OPTION_IDS[idx], str(opt).strip()
        if not opt_text:
            return None
        normalized_options.append({"id": opt_id, "text": opt_text})

    correct_option_id = raw.get("correct_option_id") or raw.get("correctOptionId")
    if correct_option_id not in {opt["id"] for opt in normalized_options}:
        logger.warning(f"Skipping generated question with invalid correct option: {correct_option_id}")
        return None
    return {"text": text, "options": normalized_options, "correct_option_id": correct_option_id}

def generate_quiz_questions_from_text(
    text_content: str,
    num_questions: int = 5,
    topic: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Generates multiple-choice questions from a transcript using OpenAI.

    Returns a list of {"text", "options": [{"id", "text"}], "correct_option_id"},
    or an empty list when the response cannot be used.
    Raises AIServiceUnavailable when no API key is configured.
    """
    if not client:
        raise AIServiceUnavailable("AI service is not configured. Cannot generate quiz questions.")

    prompt_lines = [
        f"Generate {num_questions} multiple-choice quiz questions based on the following text"
        + (f" from a lesson titled '{topic}'." if topic else "."),
        "For each question, generate 4 options with exactly one correct answer.",
        "Respond with a JSON list only. Each item has keys 'text' (string), 'options' (a list of objects "
        "with 'id' of A, B, C or D and 'text') and 'correct_option_id' (the id of the correct option).",
        "Example item:",
        '{"text": "What is the capital of France?", "options": [{"id": "A", "text": "Berlin"}, '
        '{"id": "B", "text": "Paris"}, {"id": "C", "text": "Madrid"}, {"id": "D", "text": "Rome"}], '
        '"correct_option_id": "B"}',
        "\nText Content to use:\n---\n",
        text_content,
        "\n---\nGenerated JSON questions:"
    ]

    try:
        logger.debug(f"Sending quiz generation request to OpenAI. Model: {settings.OPENAI_MODEL_NAME}.")
        completion = client.chat.completions.create(
            model=settings.OPENAI_MODEL_NAME,
            messages=[
                {"role": "system", "content": "You are an AI assistant that generates quiz questions in valid JSON format based on provided text."},
                {"role": "user", "content": "\n".join(prompt_lines)}
            ],
            temperature=0.5, # Lower temperature for more deterministic JSON structure
            max_tokens=2000,
        )
    except (APIError, APITimeoutError, RateLimitError) as e:
        logger.error(f"OpenAI API error during quiz generation: {e}", exc_info=True)
        raise AIServiceUnavailable("The AI service could not generate questions.") from e

    raw_response = completion.choices[0].message.content
    logger.info(f"Received quiz generation response from OpenAI. Finish reason: {completion.choices[0].finish_reason}")
    if not raw_response:
        logger.error("OpenAI returned an empty response for quiz generation.")
        return []

    json_start_index = raw_response.find('[')
    json_end_index = raw_response.rfind(']')
    if json_start_index == -1 or json_end_index <= json_start_index:
        logger.error(f"Could not find valid JSON list in OpenAI response: {raw_response}")
        return []

    try:
        generated = json.loads(raw_response[json_start_index:json_end_index + 1])
    except json.JSONDecodeError as e:
        logger.error(f"Failed to decode JSON from OpenAI response: {e}. Response was: {raw_response}")
        return []
    if not isinstance(generated, list):
        logger.error("Generated JSON is not a list.")
        return []

    questions = [q for q in (_normalize_generated_question(item) for item in generated if isinstance(item, dict)) if q]
    logger.info(f"Parsed {len(questions)} of {len(generated)} generated questions.")
    return questions[:num_questions]


def embed_texts(texts: List[str]) -> Optional[List[List[float]]]:
    """
    Embeds texts with the configured OpenAI embedding model, EMBEDDING_BATCH_SIZE inputs per request.
    Returns None when no API key is configured; provider errors propagate.
    """
    if not client:
        logger.debug("Embeddings skipped: AI service not configured.")
        return None
    if not texts:
        return []

    batch_size = max(1, settings.EMBEDDING_BATCH_SIZE)
    embeddings: List[List[float]] = []
    for start in range(0, len(texts), batch_size):
        batch = texts[start:start + batch_size]
        logger.debug(f"Requesting {len(batch)} embeddings ({start + len(batch)}/{len(texts)}). Model: {settings.OPENAI_EMBEDDING_MODEL}")
        response = client.embeddings.create(
            model=settings.OPENAI_EMBEDDING_MODEL,
            input=batch,
            dimensions=settings.EMBEDDING_DIMENSIONS,
        )
        embeddings.extend(item.embedding for item in sorted(response.data, key=lambda d: d.index))
    return embeddings
