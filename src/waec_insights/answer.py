from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaValidationError
from openai import AsyncOpenAI, OpenAIError
import os
import logging

logger = logging.getLogger(__name__)


WAEC_SYSTEM_PROMPT = (
    "You are an AI assistant that has access to WAEC (West African "
    "Examinations Council) data from 2016-2021.\n"
    "Use this data to answer the following question as accurately as possible:"
)

INVALID_QUESTION_ANSWER = "Invalid question provided."

FALLBACK_ANSWER = (
    "I'm sorry, but I encountered an issue while trying to answer your "
    "question. The dataset might not contain the information you're "
    "looking for, or there might be a temporary problem. Please try "
    "rephrasing your question or ask something different."
)

DEFAULT_MODEL = "gpt-4o-mini"


class AnswerQuestionInput(BaseModel):
    question: str = Field(min_length=1, description="The question about WAEC data.")


class AnswerQuestionOutput(BaseModel):
    answer: str = Field(description="The answer to the question about WAEC data.")


def build_messages(question: str) -> list[dict]:
    return [
        {"role": "system", "content": WAEC_SYSTEM_PROMPT},
        {"role": "user", "content": f"Question: {question}"},
    ]


class AnswerProvider:
    """Turns a question about the WAEC dataset into an answer."""

    async def answer(self, data: AnswerQuestionInput) -> AnswerQuestionOutput:
        raise NotImplementedError


class OpenAIAnswerProvider(AnswerProvider):

    def __init__(self, api_key: str | None = None, model: str | None = None):
        if not api_key:
            api_key = os.getenv("OPENAI_API_KEY")
        self.model = model or os.getenv("WAEC_ANSWER_MODEL", DEFAULT_MODEL)
        self.client = AsyncOpenAI(
            api_key=api_key,
            max_retries=5,
            timeout=600.0
        )

    async def answer(self, data: AnswerQuestionInput) -> AnswerQuestionOutput:
        response = await self.client.responses.parse(
            model=self.model,
            input=build_messages(data.question),
            text_format=AnswerQuestionOutput,
        )
        return response.output_parsed


async def ask_question(question: str, provider: AnswerProvider) -> str:
    """Answer *question*, never raising.

    Empty questions and provider failures come back as fixed messages;
    the cause is logged.
    """
    try:
        data = AnswerQuestionInput(question=question)
    except SchemaValidationError as e:
        logger.error(f"Error in ask_question: {e}")
        return INVALID_QUESTION_ANSWER
    try:
        output = await provider.answer(data)
    except OpenAIError as e:
        logger.error(f"Error in ask_question: {e}")
        return FALLBACK_ANSWER
    if output is None:
        logger.error("Error in ask_question: provider returned no parsed answer")
        return FALLBACK_ANSWER
    return output.answer
