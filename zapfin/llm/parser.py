import json

from loguru import logger
from openai import OpenAI
from pydantic import ValidationError

from zapfin.llm.prompts import SYSTEM_PROMPT
from zapfin.models.schemas import Intent


class IntentParser:
    def __init__(self, api_key: str, model: str):
        self.client = OpenAI(
            base_url="https://openrouter.ai/api/v1",
            api_key=api_key,
        )
        self.model = model

    def parse(self, user_message: str | None, image_url: str | None = None) -> Intent:
        """Extract a structured intent from a message and an optional image.

        ``image_url`` may be an https URL or a ``data:`` URL. Failures never
        raise; they come back as an intent with ``intencao="erro"``.
        """
        text = (user_message or "").strip()
        if image_url:
            content = [
                {"type": "text", "text": text or "Identifique o produto desta foto."},
                {"type": "image_url", "image_url": {"url": image_url}},
            ]
        else:
            content = text

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": content},
        ]

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0.1,
            )

            raw = response.choices[0].message.content.strip()
            logger.debug("LLM raw response: {}", raw)

            # Strip markdown code fences if present
            if raw.startswith("```"):
                lines = raw.split("\n")
                lines = [l for l in lines if not l.startswith("```")]
                raw = "\n".join(lines)

            intent = Intent.model_validate(json.loads(raw))
            return intent.model_copy(update={"texto_original": text or None})

        except (json.JSONDecodeError, ValidationError) as e:
            logger.error("Failed to parse LLM response: {}", e)
            return Intent(
                intencao="erro",
                texto_original=text or None,
                resposta="Não consegui entender. Pode reformular?",
            )
        except Exception as e:
            logger.error("LLM request failed: {}", e)
            return Intent(
                intencao="erro",
                texto_original=text or None,
                resposta="Algo deu errado. Tente novamente em instantes.",
            )
