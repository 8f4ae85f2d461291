from __future__ import annotations

import asyncio
import logging

from openai import OpenAI, OpenAIError

import messenger_crm.config.config as configs

logger = logging.getLogger(__name__)


def build_client(api_key: str | None = None) -> OpenAI:
    return OpenAI(api_key=api_key or configs.OPENAI_API_KEY)


def call_llm(client: OpenAI, system_prompt: str, message: str, model: str | None = None) -> str:
    response = client.chat.completions.create(
        model=model or configs.MODEL,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": message},
        ],
        temperature=0.7,
    )
    return response.choices[0].message.content or ""


class ChatGPTDrafter:
    """Prompt in, trimmed text out. Returns None on any API failure."""

    system_prompt = "You write short follow-up messages for a small business inbox."

    def __init__(self, client: OpenAI, model: str | None = None) -> None:
        self.client = client
        self.model = model or configs.MODEL

    async def __call__(self, prompt: str) -> str | None:
        try:
            raw = await asyncio.to_thread(call_llm, self.client, self.system_prompt, prompt, self.model)
        except OpenAIError:
            logger.exception("follow-up generation failed")
            return None
        text = raw.strip()
        return text or None
