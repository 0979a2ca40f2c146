"""Category corrections for the last transaction a user registered.

After an expense or income is written, the user has a few minutes to say
"foi alimentação" or "era transporte" and have the category fixed.
"""

import re
import threading
import time
import unicodedata
from collections.abc import Callable

from loguru import logger
from pydantic import BaseModel

from zapfin.models.schemas import Intent

DEFAULT_TIMEOUT_SECONDS = 5 * 60

CATEGORY_MAPPINGS = {
    "utilitarios": "casa", "utilidades": "casa", "casa": "casa", "domestico": "casa",
    "lar": "casa", "residencia": "casa", "moradia": "casa",
    "comida": "alimentacao", "alimentacao": "alimentacao", "restaurante": "alimentacao",
    "lanche": "alimentacao",
    "mercado": "supermercado", "supermercado": "supermercado",
    "transporte": "transporte", "uber": "transporte", "taxi": "transporte",
    "onibus": "transporte", "metro": "transporte", "gasolina": "transporte",
    "combustivel": "transporte",
    "lazer": "lazer", "diversao": "lazer", "entretenimento": "lazer", "cinema": "lazer",
    "show": "lazer", "festa": "lazer",
    "roupas": "roupas", "roupa": "roupas", "vestuario": "roupas", "calcado": "roupas",
    "sapato": "roupas",
    "saude": "saude", "medico": "saude", "farmacia": "saude", "remedio": "saude",
    "hospital": "saude",
    "educacao": "educacao", "escola": "educacao", "curso": "educacao", "livro": "educacao",
    "material": "educacao",
    "tecnologia": "tecnologia", "celular": "tecnologia", "computador": "tecnologia",
    "software": "tecnologia",
    "servicos": "servicos", "servico": "servicos", "manutencao": "servicos",
    "reparo": "servicos", "consultoria": "servicos",
    "outros": "outros", "diverso": "outros", "variado": "outros",
}

# Matched against accent-free lowercase text
CORRECTION_PATTERN = re.compile(
    r"^(?:na verdade,?\s+)?"
    r"(?:foi|era|e|categoria|corrige para|corrigir para|muda para|mudar para)\s+"
    r"(?:(?:em|de|com|para)\s+)?"
    r"([a-z]+)$"
)
SINGLE_WORD = re.compile(r"^[a-z]+$")


def normalize(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text.strip().lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c)).rstrip(".!")


def map_category(word: str | None) -> str | None:
    if not word:
        return None
    return CATEGORY_MAPPINGS.get(normalize(word))


def extract_correction(text: str | None) -> str | None:
    """Return the category word of a correction phrase, or None.

    A bare word counts only when it is a known category.
    """
    if not text:
        return None
    normalized = normalize(text)
    match = CORRECTION_PATTERN.match(normalized)
    if match:
        return match.group(1)
    if SINGLE_WORD.match(normalized) and normalized in CATEGORY_MAPPINGS:
        return normalized
    return None


def is_correction(intent: Intent) -> bool:
    if (intent.tipo or "").lower() == "correcao":
        return True
    # A new transaction carries an amount; a correction never does
    if intent.valor:
        return False
    return extract_correction(intent.texto_original) is not None


class LastRecord(BaseModel):
    model_config = {"frozen": True}

    kind: str
    record_id: int
    category: str
    amount: float
    created_at: float


class CorrectionTracker:
    """The last correctable record per user, kept for ``timeout`` seconds."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.timeout = timeout
        self._clock = clock
        self._records: dict[str, LastRecord] = {}
        self._lock = threading.Lock()

    def remember(
        self, user_id: str, kind: str, record_id: int, category: str, amount: float
    ) -> None:
        with self._lock:
            self._records[user_id] = LastRecord(
                kind=kind,
                record_id=record_id,
                category=category,
                amount=amount,
                created_at=self._clock(),
            )

    def peek(self, user_id: str) -> LastRecord | None:
        with self._lock:
            record = self._records.get(user_id)
            if record is None:
                return None
            if self._clock() - record.created_at > self.timeout:
                del self._records[user_id]
                logger.info("Correction window closed for {}", user_id)
                return None
            return record

    def discard(self, user_id: str) -> None:
        with self._lock:
            self._records.pop(user_id, None)
