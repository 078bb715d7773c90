from typing import Dict, Iterable

from openai import OpenAIError

from documind.core.config import settings
from documind.core.openai_client import get_openai_client
from documind.guardrails.errors import TransientServiceError
from documind.prompts.loader import bind, get_system_prompt, get_user_prompt
from documind.utils.retry import with_retry

COMPONENT = "rag_answer"


def complete(instruction_template: str, variables: Dict[str, str], system_prompt: str = "") -> str:
    """Bind variables into the instruction template and return the model's reply text. Raises TransientServiceError if the LLM cannot be reached."""
    oc = get_openai_client()
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": bind(instruction_template, variables)})
    try:
        resp = with_retry(
            lambda: oc.chat.completions.create(
                model=settings.chat_model,
                messages=messages,
                temperature=settings.chat_temperature,
                max_tokens=settings.chat_max_tokens,
            ),
            retries=2,
        )
    except OpenAIError as e:
        raise TransientServiceError("LLM service unavailable. Please try again later.") from e
    return (resp.choices[0].message.content or "").strip()


def generate_answer(question: str, context: str, source_types: Iterable[str]) -> str:
    """Answer question from context using the versioned grounding prompt. Returns the model output verbatim."""
    return complete(
        get_user_prompt(COMPONENT),
        {
            "CONTEXT": context,
            "QUESTION": question,
            "SOURCE_TYPES": ", ".join(source_types) or "none",
        },
        system_prompt=get_system_prompt(COMPONENT),
    )
