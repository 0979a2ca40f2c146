"""Reply text for WhatsApp. Uses WhatsApp markup (*bold*, _italic_)."""

from datetime import datetime

from zapfin.models.schemas import Debt, Goal, ProductSnapshot

ACCEPTED_REPLIES = (
    "Responda com:\n"
    '• "sim" ou "ok" para confirmar o preço\n'
    "• O valor da venda (ex: 85.00)\n"
    '• "não" para cancelar'
)


def format_brl(amount: float) -> str:
    """Format amount as Brazilian currency: R$ 1.234,56."""
    return f"R$ {amount:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def format_date(when: datetime) -> str:
    return when.strftime("%d/%m/%Y")


def format_category(category: str | None) -> str:
    return category.replace("_", " ").capitalize() if category else "Outros"


def format_percent(ratio: float | None) -> str:
    return f"{(ratio or 0) * 100:.0f}%"


def format_validation_errors(errors: list[str]) -> str:
    lines = ["⚠️ *Não consegui registrar:*"]
    lines.extend(f"• {e}" for e in errors)
    return "\n".join(lines)


def format_record_reply(
    heading: str, amount: float, category: str | None,
    description: str | None, when: datetime,
) -> str:
    lines = [
        f"{heading}\n",
        f"💰 *Valor:* {format_brl(amount)}",
        f"📂 *Categoria:* {format_category(category)}",
    ]
    if description:
        lines.append(f"📝 *Descrição:* {description}")
    lines.append(f"📅 *Data:* {format_date(when)}")
    return "\n".join(lines)


def format_error(kind: str, amount: float | None = None) -> str:
    if amount:
        return f"❌ Erro ao registrar {kind} de {format_brl(amount)}. Tente novamente."
    return f"❌ Erro ao registrar {kind}. Tente novamente."


# Image sale confirmation

def format_sale_prompt(product: ProductSnapshot, display_name: str) -> str:
    lines = [
        f"✅ *{display_name}* identificado!\n",
        f"📊 *Confiança:* {format_percent(product.confianca)}",
    ]
    price = product.valor or product.preco
    if price:
        lines += [
            f"💰 *Preço cadastrado:* {format_brl(price)}\n",
            f"❓ *Foi vendido por {format_brl(price)}?*\n",
            '• Digite "sim" ou "ok" para confirmar',
            "• Digite o valor real da venda (ex: 85.00)",
            '• Digite "não" para cancelar',
        ]
    else:
        lines += [
            "\n💰 *Qual foi o valor da venda?*",
            "_Digite o valor em reais (ex: 89.90)_",
        ]
    return "\n".join(lines)


def format_product_not_found(product_name: str, confidence: float | None) -> str:
    return (
        "❌ *Produto não encontrado no cadastro*\n\n"
        f"📸 Identifiquei: *{product_name}*\n"
        f"⚠️ Confiança: {format_percent(confidence)}\n\n"
        "_O produto precisa estar cadastrado para registrar vendas._"
    )


def format_sale_cancelled() -> str:
    return "❌ *Venda cancelada*\n\n_Envie uma nova foto quando quiser registrar uma venda._"


def format_clarification(reason: str) -> str:
    if reason == "missing_price":
        return (
            "💰 *Este produto não tem preço cadastrado.*\n\n"
            "Digite o valor da venda (ex: 89.90) ou \"não\" para cancelar."
        )
    if reason == "invalid_amount":
        return "❌ *Valor inválido*\n\n_Digite um valor maior que zero (ex: 89.90)_"
    if reason == "no_active_context":
        return (
            "❌ *Contexto perdido*\n\n"
            "_Envie a foto do produto novamente para registrar a venda._"
        )
    return "❓ *Não entendi sua resposta*\n\n" + ACCEPTED_REPLIES


def format_sale_registered(
    product_name: str, price: float, confidence: float | None,
    cost_price: float | None, when: datetime,
) -> str:
    lines = [
        "✅ *Venda registrada com sucesso!*\n",
        f"🛒 *Produto:* {product_name}",
        f"💰 *Valor:* {format_brl(price)}",
        f"📊 *Confiança IA:* {format_percent(confidence)}",
    ]
    if cost_price:
        profit = price - cost_price
        lines += [
            "\n💹 *Análise financeira:*",
            f"• *Custo:* {format_brl(cost_price)}",
            f"• *Lucro:* {format_brl(profit)}",
            f"• *Margem:* {profit / price * 100:.1f}%",
        ]
    lines += [
        f"\n📅 *Data:* {format_date(when)}",
        "🤖 *Método:* Reconhecimento por IA",
    ]
    return "\n".join(lines)


def format_sale_failed() -> str:
    return (
        "❌ *Erro ao registrar venda*\n\n"
        "Ocorreu um erro ao salvar a transação. "
        "Envie a foto novamente ou registre a venda manualmente."
    )


# Debts

def format_debt_line(index: int, debt: Debt) -> str:
    line = (
        f"{index}. *{debt.creditor_name}* — {format_brl(debt.current_amount)}"
        f" (vence {format_date(debt.due_date)})"
    )
    if debt.description:
        line += f" — {debt.description}"
    return line


def format_debt_list(debts: list[Debt]) -> str:
    if not debts:
        return "🎉 Você não tem dívidas pendentes!"
    lines = ["💳 *Dívidas pendentes:*\n"]
    lines.extend(format_debt_line(i, d) for i, d in enumerate(debts, 1))
    total = sum(d.current_amount for d in debts)
    lines.append(f"\n*Total devido: {format_brl(total)}*")
    return "\n".join(lines)


def format_summary(
    month_label: str, revenues: float, expenses: float, top_categories: dict[str, float]
) -> str:
    lines = [
        f"📊 *Resumo de {month_label}*\n",
        f"💰 *Receitas:* {format_brl(revenues)}",
        f"💸 *Despesas:* {format_brl(expenses)}",
        f"📈 *Saldo:* {format_brl(revenues - expenses)}",
    ]
    if top_categories:
        lines.append("\n*Maiores gastos:*")
        for category, total in list(top_categories.items())[:5]:
            lines.append(f"• {format_category(category)}: {format_brl(total)}")
    return "\n".join(lines)


# Goals

GOAL_TYPE_EMOJI = {
    "saving": "💰",
    "expense_limit": "🚫",
    "income_target": "📈",
    "investment": "📊",
    "debt_payment": "💳",
}


def format_progress_bar(percent: float) -> str:
    filled = max(0, min(10, round(percent / 10)))
    return "▓" * filled + "░" * (10 - filled)


def _goal_heading(goal: Goal) -> str:
    return f"{GOAL_TYPE_EMOJI.get(goal.goal_type, '🎯')} *{goal.title}*"


def format_goal_created(goal: Goal) -> str:
    lines = [
        "✅ *Meta criada com sucesso!*\n",
        _goal_heading(goal),
        f"💰 *Valor:* {format_brl(goal.target_amount)}",
        f"📂 *Categoria:* {format_category(goal.category)}",
        f"📊 *Progresso:* {format_brl(0)} (0%)",
    ]
    if goal.target_date:
        lines.append(f"📅 *Data limite:* {format_date(goal.target_date)}")
    return "\n".join(lines)


def format_goal_list(goals: list[Goal]) -> str:
    if not goals:
        return '🎯 Você ainda não tem metas ativas.\n\n_Crie uma: "quero juntar 5000 para viagem"_'
    lines = ["🎯 *Suas metas ativas:*\n"]
    for i, goal in enumerate(goals, 1):
        lines += [
            f"{i}. {_goal_heading(goal)}",
            f"💰 {format_brl(goal.current_amount)} / {format_brl(goal.target_amount)}",
            f"{format_progress_bar(goal.percent)} {goal.percent:.1f}%\n",
        ]
    lines.append('💡 _Para ver detalhes: "progresso meta <nome>"_')
    return "\n".join(lines)


def format_goal_progress(goal: Goal) -> str:
    remaining = max(goal.target_amount - goal.current_amount, 0)
    lines = [
        f"{_goal_heading(goal)}\n",
        f"💰 *Progresso:* {format_brl(goal.current_amount)} / {format_brl(goal.target_amount)}",
        f"{format_progress_bar(goal.percent)} *{goal.percent:.1f}%*",
        f"💸 *Faltam:* {format_brl(remaining)}",
    ]
    if goal.target_date:
        lines.append(f"📅 *Data limite:* {format_date(goal.target_date)}")
    if goal.description:
        lines.append(f"📝 *Descrição:* {goal.description}")
    if goal.progress:
        lines.append("\n📈 *Últimas atualizações:*")
        for entry in goal.progress[-3:][::-1]:
            sign = "=" if entry.mode == "set" else "+"
            lines.append(f"• {entry.at.strftime('%d/%m')}: {sign}{format_brl(entry.amount)}")
    return "\n".join(lines)


def format_goal_update(goal: Goal, amount: float, mode: str) -> str:
    action = f"definido para {format_brl(amount)}" if mode == "set" else f"adicionado {format_brl(amount)}"
    lines = [
        f"✅ *Progresso {action}!*\n",
        _goal_heading(goal),
        f"💰 {format_brl(goal.current_amount)} / {format_brl(goal.target_amount)}",
        f"{format_progress_bar(goal.percent)} *{goal.percent:.1f}%*",
    ]
    if goal.status == "completed":
        lines.append(f'\n🎉 *PARABÉNS! Meta atingida!* Você alcançou "{goal.title}"! 🏆')
    else:
        remaining = goal.target_amount - goal.current_amount
        lines.append(f"\n💸 Faltam {format_brl(remaining)}")
    return "\n".join(lines)


GOAL_HELP = (
    "🎯 *Metas*\n\n"
    '• "Quero juntar 5000 para viagem até 31/12/2026"\n'
    '• "Minhas metas"\n'
    '• "Progresso da meta viagem"\n'
    '• "Guardei 300 na meta viagem"'
)


# Corrections

def format_correction(old_category: str, new_category: str, amount: float) -> str:
    return (
        "✅ *Categoria corrigida!*\n\n"
        f"📝 *Antes:* {format_category(old_category)}\n"
        f"🎯 *Agora:* {format_category(new_category)}\n"
        f"💰 *Valor:* {format_brl(amount)}"
    )


CORRECTION_HELP = (
    "🤔 *Não entendi a correção.*\n\n"
    "💡 _Tente algo como:_\n"
    '• "Foi alimentação"\n'
    '• "Era transporte"\n'
    '• "Categoria casa"'
)


HELP_TEXT = (
    "Olá! Sou seu assistente financeiro. 💬\n\n"
    "Exemplos do que você pode me mandar:\n"
    '• "Gastei 45 no mercado hoje"\n'
    '• "Recebi 3000 de salário"\n'
    '• "Investi 500 no tesouro"\n'
    '• "Devo 1200 pro Banco X, vence 10/12"\n'
    '• "Vendi um fone por 89,90"\n'
    '• "Quero juntar 5000 para viagem"\n'
    "• Uma foto de um produto cadastrado para registrar a venda\n"
    '• "Resumo do mês"'
)
