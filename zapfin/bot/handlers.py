"""Domain handlers: validate an intent, write one ledger record, build the reply.

Handlers let ledger errors propagate; the router turns them into error replies.
"""

from calendar import monthrange
from datetime import datetime, timedelta

from loguru import logger

from zapfin.bot import formatting
from zapfin.bot.corrections import CorrectionTracker, extract_correction, map_category
from zapfin.bot.dates import parse_date
from zapfin.confirmation.cache import ConfirmationCache, Resolution
from zapfin.db.repository import LedgerRepository
from zapfin.models.schemas import (
    Debt,
    DebtPayment,
    GOAL_TYPES,
    Goal,
    GoalProgress,
    Intent,
    PersonalExpense,
    PersonalIncome,
    Product,
    ProductSnapshot,
)

MAX_EXPENSE = 50_000
MAX_INCOME = 100_000
MIN_INVESTMENT = 1
MAX_INVESTMENT = 1_000_000

ESSENTIAL_CATEGORIES = {
    "moradia", "casa", "aluguel", "financiamento",
    "alimentacao", "alimentação", "supermercado", "mercado",
    "saude", "saúde", "medico", "médico", "farmacia", "farmácia",
    "contas", "luz", "agua", "água", "internet",
    "transporte", "gasolina", "combustivel", "combustível",
    "seguro", "seguros", "imposto", "impostos",
}

PAYMENT_METHODS = {
    "pix": "pix",
    "debito": "debito",
    "débito": "debito",
    "cartao de debito": "debito",
    "cartão de débito": "debito",
    "credito": "credito",
    "crédito": "credito",
    "cartao": "credito",
    "cartão": "credito",
    "cartao de credito": "credito",
    "cartão de crédito": "credito",
    "dinheiro": "dinheiro",
    "especie": "dinheiro",
    "espécie": "dinheiro",
    "transferencia": "transferencia",
    "transferência": "transferencia",
    "boleto": "boleto",
}

MONTHS_PT = [
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
]


def _validate(
    intent: Intent,
    max_amount: float | None = None,
    min_amount: float | None = None,
    label: str = "valor",
) -> list[str]:
    errors = []
    if not intent.valor or intent.valor <= 0:
        errors.append("Valor deve ser maior que zero")
    elif min_amount is not None and intent.valor < min_amount:
        errors.append(f"Valor mínimo para {label}: {formatting.format_brl(min_amount)}")
    elif max_amount is not None and intent.valor > max_amount:
        errors.append(
            f"Valor muito alto para {label}. Máximo permitido: {formatting.format_brl(max_amount)}"
        )
    if not intent.categoria:
        errors.append("Categoria é obrigatória")
    return errors


def _remember(corrections: CorrectionTracker | None, user_id: str, kind: str, record) -> None:
    if corrections is not None:
        corrections.remember(user_id, kind, record.id, record.category, record.amount)


def handle_expense(
    repo: LedgerRepository,
    user_id: str,
    intent: Intent,
    corrections: CorrectionTracker | None = None,
) -> str:
    errors = _validate(intent, max_amount=MAX_EXPENSE, label="uma despesa")
    if errors:
        return formatting.format_validation_errors(errors)

    expense = repo.create_expense(
        user_id,
        intent.valor,
        intent.categoria,
        intent.descricao,
        parse_date(intent.data),
        type=intent.tipo or "other",
    )
    logger.info("Expense #{} registered for {}: {}", expense.id, user_id, expense.amount)
    _remember(corrections, user_id, "expense", expense)
    return formatting.format_record_reply(
        "✅ *Despesa registrada!*", expense.amount, expense.category, expense.description, expense.date
    )


def handle_income(
    repo: LedgerRepository,
    user_id: str,
    intent: Intent,
    corrections: CorrectionTracker | None = None,
) -> str:
    errors = _validate(intent, max_amount=MAX_INCOME, label="uma receita")
    if errors:
        return formatting.format_validation_errors(errors)

    revenue = repo.create_revenue(
        user_id,
        intent.valor,
        intent.categoria,
        intent.descricao,
        parse_date(intent.data),
        source=intent.categoria,
    )
    logger.info("Revenue #{} registered for {}: {}", revenue.id, user_id, revenue.amount)
    _remember(corrections, user_id, "revenue", revenue)
    return formatting.format_record_reply(
        "✅ *Receita registrada!*", revenue.amount, revenue.category, revenue.description, revenue.date
    )


def handle_investment(
    repo: LedgerRepository,
    user_id: str,
    intent: Intent,
    corrections: CorrectionTracker | None = None,
) -> str:
    errors = _validate(
        intent, max_amount=MAX_INVESTMENT, min_amount=MIN_INVESTMENT, label="investimento"
    )
    if errors:
        return formatting.format_validation_errors(errors)

    expense = repo.create_expense(
        user_id,
        intent.valor,
        intent.categoria,
        intent.descricao,
        parse_date(intent.data),
        type="investment",
    )
    logger.info("Investment #{} registered for {}: {}", expense.id, user_id, expense.amount)
    _remember(corrections, user_id, "expense", expense)
    return formatting.format_record_reply(
        "📈 *Investimento registrado!*", expense.amount, expense.category, expense.description,
        expense.date,
    )


def _payment_method(value: str | None) -> str:
    if not value:
        return "dinheiro"
    return PAYMENT_METHODS.get(value.strip().lower(), "dinheiro")


def handle_personal_expense(
    repo: LedgerRepository,
    user_id: str,
    intent: Intent,
    corrections: CorrectionTracker | None = None,
) -> str:
    errors = _validate(intent, max_amount=MAX_EXPENSE, label="um gasto pessoal")
    if errors:
        return formatting.format_validation_errors(errors)

    category = intent.categoria.strip().lower()
    expense = repo.create_personal_expense(
        PersonalExpense(
            user_id=user_id,
            amount=intent.valor,
            category=category,
            description=intent.descricao,
            date=parse_date(intent.data),
            payment_method=_payment_method(intent.metodo_pagamento),
            is_essential=category in ESSENTIAL_CATEGORIES,
        )
    )
    logger.info("Personal expense #{} registered for {}", expense.id, user_id)
    _remember(corrections, user_id, "personal_expense", expense)
    reply = formatting.format_record_reply(
        "✅ *Despesa pessoal registrada!*", expense.amount, expense.category, expense.description, expense.date
    )
    reply += f"\n💳 *Pagamento:* {formatting.format_category(expense.payment_method)}"
    if expense.is_essential:
        reply += "\n🏠 _Gasto essencial_"
    return reply


def handle_personal_income(
    repo: LedgerRepository,
    user_id: str,
    intent: Intent,
    corrections: CorrectionTracker | None = None,
) -> str:
    errors = _validate(intent, max_amount=MAX_INCOME, label="uma receita")
    if errors:
        return formatting.format_validation_errors(errors)

    income = repo.create_personal_income(
        PersonalIncome(
            user_id=user_id,
            amount=intent.valor,
            category=intent.categoria.strip().lower(),
            description=intent.descricao,
            date=parse_date(intent.data),
            source=intent.categoria.strip().lower(),
        )
    )
    logger.info("Personal income #{} registered for {}", income.id, user_id)
    _remember(corrections, user_id, "personal_income", income)
    return formatting.format_record_reply(
        "✅ *Receita pessoal registrada!*", income.amount, income.category, income.description, income.date
    )


# Debts

def _next_month(now: datetime) -> datetime:
    year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
    day = min(now.day, monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def _due_date(value: str | None, now: datetime) -> datetime:
    if not value:
        return now + timedelta(days=30)
    due = parse_date(value, now=now)
    if due.date() < now.date():
        return _next_month(now)
    return due


def _register_debt(repo: LedgerRepository, user_id: str, intent: Intent) -> str:
    errors = []
    if not intent.valor or intent.valor <= 0:
        errors.append("Valor deve ser maior que zero")
    if not intent.credor:
        errors.append("Informe para quem você deve (credor)")
    if errors:
        return formatting.format_validation_errors(errors)

    now = datetime.now()
    debt = repo.create_debt(
        Debt(
            user_id=user_id,
            creditor_name=intent.credor,
            description=intent.descricao or f"Dívida com {intent.credor}",
            original_amount=intent.valor,
            current_amount=intent.valor,
            due_date=_due_date(intent.data, now),
            category=(intent.categoria or "outros").lower(),
        )
    )
    logger.info("Debt #{} registered for {}: {}", debt.id, user_id, debt.original_amount)
    return (
        "💳 *Dívida registrada!*\n\n"
        f"🏦 *Credor:* {debt.creditor_name}\n"
        f"💰 *Valor:* {formatting.format_brl(debt.original_amount)}\n"
        f"📅 *Vencimento:* {formatting.format_date(debt.due_date)}"
    )


def _pay_debt(repo: LedgerRepository, user_id: str, intent: Intent) -> str:
    if not intent.credor:
        return '❌ Informe o credor. Use "minhas dívidas" para ver suas dívidas.'

    pending = repo.get_user_debts(user_id, status="pending")
    debt = next(
        (d for d in pending if intent.credor.lower() in d.creditor_name.lower()), None
    )
    if debt is None:
        return '❌ Dívida não encontrada. Use "minhas dívidas" para ver suas dívidas.'

    if not intent.valor or intent.valor <= 0:
        return "❌ Valor do pagamento deve ser um número positivo."
    if intent.valor > debt.current_amount:
        return (
            f"⚠️ Valor do pagamento ({formatting.format_brl(intent.valor)}) é maior que "
            f"o saldo da dívida ({formatting.format_brl(debt.current_amount)}). Confirme o valor."
        )

    updated = repo.add_debt_payment(
        debt.id,
        DebtPayment(
            amount=intent.valor,
            paid_at=datetime.now(),
            payment_method=_payment_method(intent.metodo_pagamento),
            notes=intent.descricao,
        ),
    )
    logger.info("Payment of {} on debt #{} for {}", intent.valor, debt.id, user_id)
    if updated.status == "paid":
        return f"🎉 *Dívida com {updated.creditor_name} quitada!*"
    return (
        f"✅ *Pagamento registrado!*\n\n"
        f"🏦 *Credor:* {updated.creditor_name}\n"
        f"💰 *Pago:* {formatting.format_brl(intent.valor)}\n"
        f"📉 *Saldo restante:* {formatting.format_brl(updated.current_amount)}"
    )


def handle_debt(repo: LedgerRepository, user_id: str, intent: Intent) -> str:
    action = (intent.intencao or "").lower()
    if action in ("registrar_divida", "nova_divida", "criar_divida"):
        return _register_debt(repo, user_id, intent)
    if action in ("pagar_divida", "pagamento_divida"):
        return _pay_debt(repo, user_id, intent)
    return formatting.format_debt_list(repo.get_user_debts(user_id, status="pending"))


# Sales

def _find_product(repo: LedgerRepository, user_id: str, intent: Intent) -> Product | None:
    products = repo.get_user_products(user_id, limit=100)
    if intent.produto_id is not None:
        for product in products:
            if product.id == intent.produto_id:
                return product
    name = (intent.produto_nome or "").lower()
    if not name:
        return None
    return next((p for p in products if name in p.name.lower()), None)


def handle_image_sale(
    repo: LedgerRepository, cache: ConfirmationCache, user_id: str, intent: Intent
) -> str:
    """Ask the user to confirm the price of a product recognised in a photo."""
    product = _find_product(repo, user_id, intent)
    if product is None:
        return formatting.format_product_not_found(intent.produto_nome, intent.confianca)

    snapshot = ProductSnapshot(
        produto_nome=product.name,
        produto_id=product.id,
        confianca=intent.confianca or 0.0,
        valor=product.selling_price or product.price or intent.valor,
        preco=product.price,
        categoria=product.category,
        similaridade=intent.similaridade,
        custo=product.cost_price,
        raw=intent.model_dump(exclude_none=True),
    )
    cache.save(user_id, snapshot)
    return formatting.format_sale_prompt(snapshot, product.name)


def register_confirmed_sale(
    repo: LedgerRepository, user_id: str, resolution: Resolution
) -> str:
    product = resolution.product
    name = product.produto_nome or "Produto não identificado"
    revenue = repo.create_revenue(
        user_id,
        resolution.price,
        "vendas",
        f"Venda: {name} (identificado por IA)",
        datetime.now(),
        source="vendas_ai",
    )
    logger.info(
        "Image sale #{} registered for {}: {} at {:.2f}",
        revenue.id, user_id, name, resolution.price,
    )
    return formatting.format_sale_registered(
        name, resolution.price, product.confianca, product.custo, revenue.date
    )


def handle_sale(
    repo: LedgerRepository,
    cache: ConfirmationCache,
    user_id: str,
    intent: Intent,
    identified: bool = False,
) -> str:
    """Register a sale.

    Only a product recognised in a photo (``identified``) opens a price
    confirmation. A typed sale with an amount is always written as stated.
    """
    if identified and intent.produto_nome:
        return handle_image_sale(repo, cache, user_id, intent)

    if intent.valor and intent.valor > 0:
        revenue = repo.create_revenue(
            user_id,
            intent.valor,
            "vendas",
            intent.descricao or intent.produto_nome,
            parse_date(intent.data),
            source="vendas",
        )
        logger.info("Sale #{} registered for {}: {}", revenue.id, user_id, revenue.amount)
        return formatting.format_record_reply(
            "✅ *Venda registrada!*", revenue.amount, revenue.category, revenue.description, revenue.date
        )

    return (
        "🛒 *Vendas*\n\n"
        '• Digite "vendi <produto> por <valor>" para registrar uma venda\n'
        "• Envie a foto de um produto cadastrado para registrar pela imagem"
    )


# Queries

def handle_query(repo: LedgerRepository, user_id: str, intent: Intent) -> str:
    now = datetime.now()
    revenues = repo.get_user_monthly_revenues(user_id, now.year, now.month)
    expenses = repo.get_user_monthly_expenses(user_id, now.year, now.month)

    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    top = repo.get_category_totals(user_id, "expense", start=start)
    return formatting.format_summary(
        f"{MONTHS_PT[now.month - 1]}/{now.year}",
        sum(r.amount for r in revenues),
        sum(e.amount for e in expenses),
        top,
    )


# Goals

def _find_goal(repo: LedgerRepository, user_id: str, intent: Intent) -> Goal | None:
    if intent.meta_id is not None:
        goal = repo.get_goal(intent.meta_id)
        return goal if goal is not None and goal.user_id == user_id else None
    name = (intent.titulo or intent.descricao or intent.categoria or "").lower()
    if not name:
        return None
    goals = repo.get_user_goals(user_id, status="active")
    return next((g for g in goals if name in g.title.lower()), None)


def _create_goal(repo: LedgerRepository, user_id: str, intent: Intent) -> str:
    title = (intent.titulo or intent.descricao or "").strip()
    goal_type = intent.tipo_meta or "saving"
    errors = []
    if not title:
        errors.append("Título da meta é obrigatório")
    if not intent.valor or intent.valor <= 0:
        errors.append("Valor da meta deve ser maior que zero")
    if goal_type not in GOAL_TYPES:
        errors.append("Tipo de meta inválido. Use: " + ", ".join(GOAL_TYPES))
    if errors:
        return formatting.format_validation_errors(errors)

    target_date = None
    if intent.data:
        now = datetime.now()
        target_date = parse_date(intent.data, now=now)
        if target_date.date() < now.date():
            return "❌ A data limite não pode ser no passado. Escolha uma data futura."

    goal = repo.create_goal(
        Goal(
            user_id=user_id,
            title=title,
            description=intent.descricao if intent.titulo else None,
            target_amount=intent.valor,
            category=(intent.categoria or "outros").lower(),
            goal_type=goal_type,
            target_date=target_date,
        )
    )
    logger.info("Goal #{} created for {}: {}", goal.id, user_id, goal.target_amount)
    return formatting.format_goal_created(goal)


def _update_goal(repo: LedgerRepository, user_id: str, intent: Intent) -> str:
    goal = _find_goal(repo, user_id, intent)
    if goal is None:
        return '❌ Meta não encontrada. Use "minhas metas" para ver suas metas.'
    if not intent.valor or intent.valor <= 0:
        return "❌ Valor deve ser um número positivo."

    mode = "set" if (intent.tipo_atualizacao or "").lower() == "definir" else "add"
    updated = repo.update_goal_progress(goal.id, GoalProgress(amount=intent.valor, mode=mode))
    logger.info("Goal #{} progress {} {} for {}", goal.id, mode, intent.valor, user_id)
    return formatting.format_goal_update(updated, intent.valor, mode)


def handle_goal(repo: LedgerRepository, user_id: str, intent: Intent) -> str:
    action = (intent.intencao or "").lower()
    if action in ("criar_meta", "nova_meta"):
        return _create_goal(repo, user_id, intent)
    if action in ("atualizar_meta", "adicionar_progresso"):
        return _update_goal(repo, user_id, intent)
    if action in ("progresso_meta", "status_meta"):
        goal = _find_goal(repo, user_id, intent)
        if goal is None:
            return '❌ Meta não encontrada. Use "minhas metas" para ver suas metas.'
        return formatting.format_goal_progress(goal)
    if action in ("listar_metas", "minhas_metas", "ver_metas"):
        return formatting.format_goal_list(repo.get_user_goals(user_id, status="active"))
    return formatting.GOAL_HELP


# Corrections

def handle_correction(
    repo: LedgerRepository, corrections: CorrectionTracker, user_id: str, intent: Intent
) -> str:
    """Change the category of the user's last registered record."""
    last = corrections.peek(user_id)
    if last is None:
        return "❌ Não há transação recente para corrigir. Registre uma nova transação."

    word = extract_correction(intent.texto_original) or intent.categoria
    category = map_category(word)
    if category is None:
        return formatting.CORRECTION_HELP

    repo.update_record_category(last.kind, last.record_id, category)
    corrections.discard(user_id)
    logger.info(
        "Category of {} #{} corrected for {}: {} -> {}",
        last.kind, last.record_id, user_id, last.category, category,
    )
    return formatting.format_correction(last.category, category, last.amount)
