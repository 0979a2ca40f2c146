from loguru import logger

from zapfin.bot import formatting, handlers
from zapfin.bot.corrections import CorrectionTracker, is_correction
from zapfin.confirmation.cache import ConfirmationCache, Resolution
from zapfin.db.repository import LedgerRepository
from zapfin.llm.parser import IntentParser
from zapfin.models.schemas import Intent

GOAL_ACTIONS = {
    "criar_meta", "nova_meta",
    "listar_metas", "minhas_metas", "ver_metas",
    "progresso_meta", "status_meta",
    "atualizar_meta", "adicionar_progresso",
}
GOAL_TYPES = {"meta", "objetivo"}
GOAL_KEYWORDS = (
    "meta", "objetivo", "juntar", "economizar", "poupar", "guardar dinheiro",
    "limite de gasto", "atingir", "progresso",
)

DEBT_ACTIONS = {
    "registrar_divida", "nova_divida", "criar_divida",
    "listar_dividas", "minhas_dividas", "ver_dividas",
    "pagar_divida", "pagamento_divida",
    "status_dividas", "resumo_dividas",
}
DEBT_TYPES = {"divida", "dívida", "debt"}
DEBT_KEYWORDS = (
    "dívida", "divida", "devo", "quitar", "empréstimo", "emprestimo",
    "financiamento", "credor", "parcela", "prestação", "prestacao",
    "juros", "vencimento", "saldo devedor",
)

# Handlers that write a record the user can correct afterwards
RECORD_HANDLERS = {
    "receita": handlers.handle_income,
    "receita_pessoal": handlers.handle_personal_income,
    "despesa_fixa": handlers.handle_expense,
    "despesa_variavel": handlers.handle_expense,
    "gasto_pessoal": handlers.handle_personal_expense,
    "despesa_pessoal": handlers.handle_personal_expense,
    "investimento": handlers.handle_investment,
}
TYPE_HANDLERS = {**RECORD_HANDLERS, "consulta": handlers.handle_query}
SALE_TYPES = {"venda", "produto"}

KIND_LABELS = {
    "receita": "receita",
    "receita_pessoal": "receita pessoal",
    "despesa_fixa": "despesa",
    "despesa_variavel": "despesa",
    "gasto_pessoal": "gasto pessoal",
    "despesa_pessoal": "gasto pessoal",
    "investimento": "investimento",
    "consulta": "consulta",
    "venda": "venda",
    "produto": "venda",
    "correcao": "correção",
}


def _known_type(tipo: str) -> bool:
    return tipo in TYPE_HANDLERS or tipo in SALE_TYPES or tipo == "correcao"


def is_goal_command(intent: Intent) -> bool:
    if (intent.intencao or "").lower() in GOAL_ACTIONS:
        return True
    tipo = (intent.tipo or "").lower()
    if tipo in GOAL_TYPES:
        return True
    if _known_type(tipo) or tipo in DEBT_TYPES:
        return False
    text = (intent.texto_original or "").lower()
    return any(keyword in text for keyword in GOAL_KEYWORDS)


def is_debt_command(intent: Intent) -> bool:
    if (intent.intencao or "").lower() in DEBT_ACTIONS:
        return True
    tipo = (intent.tipo or "").lower()
    if tipo in DEBT_TYPES:
        return True
    # Keywords only decide when the model gave no usable type
    if _known_type(tipo):
        return False
    text = (intent.texto_original or "").lower()
    return any(keyword in text for keyword in DEBT_KEYWORDS)


class MessageRouter:
    """Decide which path handles an inbound message and produce the reply."""

    def __init__(
        self,
        repo: LedgerRepository,
        parser: IntentParser,
        cache: ConfirmationCache,
        corrections: CorrectionTracker | None = None,
    ):
        self.repo = repo
        self.parser = parser
        self.cache = cache
        self.corrections = corrections or CorrectionTracker()

    def handle(self, user_id: str, text: str | None, image_url: str | None = None) -> str:
        """Handle one inbound message and return the reply text.

        A text reply to a pending sale confirmation is consumed by the
        confirmation path before any intent extraction. A new photo is always
        a new identification and goes through the extractor.
        """
        if not image_url:
            resolution = self.cache.consume(user_id, text)
            if resolution is not None:
                return self.reply_to_confirmation(user_id, resolution)

        if not (text and text.strip()) and not image_url:
            return formatting.HELP_TEXT

        intent = self.parser.parse(text, image_url=image_url)
        logger.info(
            "Intent for {}: intencao={} tipo={} valor={}",
            user_id, intent.intencao, intent.tipo, intent.valor,
        )
        return self.dispatch(user_id, intent, identified=bool(image_url))

    def reply_to_confirmation(self, user_id: str, resolution: Resolution) -> str:
        if resolution.outcome == "cancelled":
            return formatting.format_sale_cancelled()
        if resolution.outcome == "awaiting_clarification":
            return formatting.format_clarification(resolution.reason)

        # The context is already consumed; a failed write is reported, not retried
        try:
            reply = handlers.register_confirmed_sale(self.repo, user_id, resolution)
        except Exception as e:
            logger.error("Failed to register confirmed sale for {}: {}", user_id, e)
            return formatting.format_sale_failed()
        self.cache.record_sale(resolution.price, resolution.product.confianca)
        return reply

    def dispatch(self, user_id: str, intent: Intent, identified: bool = False) -> str:
        """Route an extracted intent. ``identified`` is set when a photo came in."""
        if intent.intencao == "erro":
            return intent.resposta or "Não consegui entender. Pode reformular?"

        tipo = (intent.tipo or "").lower()
        label = KIND_LABELS.get(tipo, "transação")
        try:
            if tipo == "correcao" or (
                self.corrections.peek(user_id) is not None and is_correction(intent)
            ):
                label = "correção"
                return handlers.handle_correction(self.repo, self.corrections, user_id, intent)
            if is_goal_command(intent):
                label = "meta"
                return handlers.handle_goal(self.repo, user_id, intent)
            if is_debt_command(intent):
                label = "dívida"
                return handlers.handle_debt(self.repo, user_id, intent)
            if tipo in SALE_TYPES:
                return handlers.handle_sale(
                    self.repo, self.cache, user_id, intent, identified=identified
                )
            if tipo in RECORD_HANDLERS:
                return RECORD_HANDLERS[tipo](
                    self.repo, user_id, intent, corrections=self.corrections
                )
            handler = TYPE_HANDLERS.get(tipo)
            if handler is not None:
                return handler(self.repo, user_id, intent)
        except Exception as e:
            logger.error("Error handling {} for {}: {}", tipo or "message", user_id, e)
            return formatting.format_error(label, intent.valor)

        return intent.resposta or formatting.HELP_TEXT
