from datetime import datetime

import pytest

from zapfin.bot import handlers
from zapfin.bot.corrections import CorrectionTracker
from zapfin.models.schemas import Goal, Intent


def test_expense_registered(repo):
    reply = handlers.handle_expense(
        repo, "u1", Intent(tipo="despesa_fixa", valor=1200, categoria="aluguel", descricao="Sala")
    )

    assert "Despesa registrada" in reply
    assert "R$ 1.200,00" in reply
    assert "Sala" in reply
    [expense] = repo.get_user_expenses("u1")
    assert expense.type == "despesa_fixa"
    assert expense.category == "aluguel"


@pytest.mark.parametrize(
    "handler, intent, message",
    [
        (handlers.handle_expense, Intent(valor=60_000, categoria="obra"), "Valor muito alto"),
        (handlers.handle_expense, Intent(valor=0, categoria="obra"), "maior que zero"),
        (handlers.handle_income, Intent(valor=150_000, categoria="salario"), "Valor muito alto"),
        (handlers.handle_investment, Intent(valor=0.5, categoria="cdb"), "Valor mínimo"),
        (handlers.handle_investment, Intent(valor=2_000_000, categoria="cdb"), "Valor muito alto"),
        (handlers.handle_personal_expense, Intent(valor=30), "Categoria é obrigatória"),
    ],
)
def test_validation_rejects_without_writing(repo, handler, intent, message):
    reply = handler(repo, "u1", intent)

    assert reply.startswith("⚠️ *Não consegui registrar:*")
    assert message in reply
    assert repo.get_user_expenses("u1") == []
    assert repo.get_user_revenues("u1") == []


def test_income_uses_category_as_source(repo):
    handlers.handle_income(repo, "u1", Intent(tipo="receita", valor=3000, categoria="salario"))

    assert repo.get_user_revenues("u1")[0].source == "salario"


def test_personal_expense_payment_and_essential_flag(repo):
    reply = handlers.handle_personal_expense(
        repo, "u1", Intent(valor=45, categoria="Mercado", metodo_pagamento="cartão")
    )

    assert "Pagamento:* Credito" in reply
    assert "Gasto essencial" in reply
    [doc] = repo.personal_expenses.all()
    assert doc["category"] == "mercado"
    assert doc["payment_method"] == "credito"
    assert doc["is_essential"] is True


def test_personal_expense_defaults_to_cash(repo):
    reply = handlers.handle_personal_expense(
        repo, "u1", Intent(valor=80, categoria="lazer", metodo_pagamento="cheque")
    )

    assert "Gasto essencial" not in reply
    assert repo.personal_expenses.all()[0]["payment_method"] == "dinheiro"


def test_personal_income(repo):
    reply = handlers.handle_personal_income(
        repo, "u1", Intent(valor=500, categoria="Freelance")
    )

    assert "Receita pessoal registrada" in reply
    assert repo.personal_incomes.all()[0]["source"] == "freelance"


def _register(repo, amount=1000, creditor="Banco X", due="2099-01-10"):
    return handlers.handle_debt(
        repo, "u1",
        Intent(intencao="registrar_divida", valor=amount, credor=creditor, data=due),
    )


def test_register_debt(repo):
    reply = _register(repo)

    assert "Dívida registrada" in reply
    assert "10/01/2099" in reply
    [debt] = repo.get_user_debts("u1")
    assert debt.current_amount == 1000
    assert debt.description == "Dívida com Banco X"


def test_register_debt_requires_creditor(repo):
    reply = handlers.handle_debt(repo, "u1", Intent(intencao="registrar_divida", valor=100))

    assert "credor" in reply
    assert repo.get_user_debts("u1") == []


def test_past_due_date_moves_to_next_month(repo):
    _register(repo, due="2000-01-01")

    [debt] = repo.get_user_debts("u1")
    assert debt.due_date > datetime.now()


def test_missing_due_date_defaults_to_thirty_days(repo):
    _register(repo, due=None)

    [debt] = repo.get_user_debts("u1")
    assert 29 <= (debt.due_date - datetime.now()).days <= 30


def test_partial_then_full_payment(repo):
    _register(repo)

    reply = handlers.handle_debt(
        repo, "u1", Intent(intencao="pagar_divida", valor=400, credor="banco")
    )
    assert "Saldo restante:* R$ 600,00" in reply

    reply = handlers.handle_debt(
        repo, "u1", Intent(intencao="pagar_divida", valor=600, credor="banco")
    )
    assert "quitada" in reply
    [debt] = repo.get_user_debts("u1")
    assert debt.status == "paid"
    assert len(debt.payments) == 2


def test_overpayment_is_refused(repo):
    _register(repo)

    reply = handlers.handle_debt(
        repo, "u1", Intent(intencao="pagar_divida", valor=1500, credor="Banco X")
    )

    assert "maior que o saldo" in reply
    assert repo.get_user_debts("u1")[0].payments == []


def test_payment_to_unknown_creditor(repo):
    _register(repo)

    reply = handlers.handle_debt(
        repo, "u1", Intent(intencao="pagar_divida", valor=100, credor="Maria")
    )

    assert "Dívida não encontrada" in reply


def test_debt_list(repo):
    _register(repo)
    _register(repo, amount=250.5, creditor="Loja Y", due="2098-05-01")

    reply = handlers.handle_debt(repo, "u1", Intent(intencao="minhas_dividas"))

    assert reply.index("Loja Y") < reply.index("Banco X")
    assert "Total devido: R$ 1.250,50" in reply


def test_text_sale_without_amount_shows_help(repo, cache):
    reply = handlers.handle_sale(repo, cache, "u1", Intent(tipo="venda"))

    assert "Vendas" in reply
    assert repo.get_user_revenues("u1") == []


def test_month_summary(repo):
    repo.create_revenue("u1", 3000, "salario")
    repo.create_expense("u1", 1200, "aluguel")
    repo.create_expense("u1", 300, "mercado")
    repo.create_expense("u1", 100, "mercado")

    reply = handlers.handle_query(repo, "u1", Intent(tipo="consulta"))

    assert "Receitas:* R$ 3.000,00" in reply
    assert "Despesas:* R$ 1.600,00" in reply
    assert "Saldo:* R$ 1.400,00" in reply
    assert reply.index("Aluguel") < reply.index("Mercado: R$ 400,00")


def _goal(repo, title="Viagem", target=5000):
    return repo.create_goal(Goal(user_id="u1", title=title, target_amount=target))


def test_goal_created_with_deadline(repo):
    reply = handlers.handle_goal(
        repo, "u1",
        Intent(intencao="criar_meta", titulo="Reserva", valor=10_000,
               tipo_meta="saving", data="31/12/2099"),
    )

    assert "Meta criada com sucesso" in reply
    assert "R$ 10.000,00" in reply
    assert "31/12/2099" in reply
    [goal] = repo.get_user_goals("u1")
    assert goal.target_date == datetime(2099, 12, 31)


@pytest.mark.parametrize(
    "intent, message",
    [
        (Intent(intencao="criar_meta", valor=100), "Título da meta é obrigatório"),
        (Intent(intencao="criar_meta", titulo="Carro", valor=0), "maior que zero"),
        (Intent(intencao="criar_meta", titulo="Carro", valor=100, tipo_meta="luxo"), "Tipo de meta inválido"),
        (Intent(intencao="criar_meta", titulo="Carro", valor=100, data="01/01/2001"), "não pode ser no passado"),
    ],
)
def test_goal_validation(repo, intent, message):
    assert message in handlers.handle_goal(repo, "u1", intent)
    assert repo.get_user_goals("u1") == []


def test_goal_list_and_progress(repo):
    assert "ainda não tem metas" in handlers.handle_goal(repo, "u1", Intent(intencao="listar_metas"))

    _goal(repo)
    _goal(repo, title="Notebook", target=4000)
    handlers.handle_goal(
        repo, "u1", Intent(intencao="atualizar_meta", titulo="viagem", valor=1250)
    )

    listing = handlers.handle_goal(repo, "u1", Intent(intencao="minhas_metas"))
    assert listing.index("Viagem") < listing.index("Notebook")
    assert "25.0%" in listing

    progress = handlers.handle_goal(repo, "u1", Intent(intencao="progresso_meta", titulo="viagem"))
    assert "Faltam:* R$ 3.750,00" in progress
    assert "+R$ 1.250,00" in progress


def test_goal_update_set_completes_goal(repo):
    goal = _goal(repo, target=1000)

    reply = handlers.handle_goal(
        repo, "u1",
        Intent(intencao="atualizar_meta", meta_id=goal.id, valor=1000, tipo_atualizacao="definir"),
    )

    assert "Progresso definido para R$ 1.000,00" in reply
    assert "PARABÉNS! Meta atingida!" in reply
    assert repo.get_goal(goal.id).status == "completed"


def test_goal_update_errors(repo):
    goal = _goal(repo)
    other = repo.create_goal(Goal(user_id="u2", title="Viagem", target_amount=100))

    missing = handlers.handle_goal(repo, "u1", Intent(intencao="atualizar_meta", titulo="casa", valor=10))
    foreign = handlers.handle_goal(repo, "u1", Intent(intencao="atualizar_meta", meta_id=other.id, valor=10))
    negative = handlers.handle_goal(repo, "u1", Intent(intencao="atualizar_meta", meta_id=goal.id, valor=-5))

    assert "Meta não encontrada" in missing
    assert "Meta não encontrada" in foreign
    assert "Valor deve ser um número positivo" in negative
    assert repo.get_goal(other.id).current_amount == 0


def test_correction_of_personal_expense(repo, clock):
    corrections = CorrectionTracker(clock=clock)
    handlers.handle_personal_expense(
        repo, "u1", Intent(valor=35, categoria="outros"), corrections=corrections
    )

    reply = handlers.handle_correction(
        repo, corrections, "u1", Intent(tipo="correcao", texto_original="na verdade foi farmácia")
    )

    assert "*Antes:* Outros" in reply
    assert "*Agora:* Saude" in reply
    assert "R$ 35,00" in reply
    assert corrections.peek("u1") is None


def test_correction_without_recent_record(repo):
    reply = handlers.handle_correction(
        repo, CorrectionTracker(), "u1", Intent(tipo="correcao", categoria="casa")
    )

    assert "Não há transação recente" in reply
