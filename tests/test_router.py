import pytest

from zapfin.bot.router import is_debt_command, is_goal_command
from zapfin.db.repository import LedgerError
from zapfin.models.schemas import Intent

PHOTO = "data:image/jpeg;base64,AAAA"


def _identified(name="fone", confidence=0.92, **extra) -> Intent:
    return Intent(
        intencao="venda_imagem", tipo="venda", produto_nome=name, confianca=confidence, **extra
    )


@pytest.fixture
def fone(repo):
    return repo.create_product(
        "u1", "Fone Bluetooth", category="eletronicos", price=79.0,
        selling_price=89.90, cost_price=50.0,
    )


def test_image_sale_confirmed_with_registered_price(message_router, parser, repo, cache, fone):
    parser.queue(_identified())

    prompt = message_router.handle("u1", None, image_url=PHOTO)

    assert "Fone Bluetooth" in prompt
    assert "R$ 89,90" in prompt
    assert cache.peek("u1").product.produto_id == fone.id

    reply = message_router.handle("u1", "sim")

    assert "Venda registrada com sucesso" in reply
    assert "R$ 89,90" in reply
    assert "Margem:* 44.4%" in reply
    assert cache.peek("u1") is None

    [revenue] = repo.get_user_revenues("u1")
    assert revenue.amount == pytest.approx(89.90)
    assert revenue.category == "vendas"
    assert revenue.source == "vendas_ai"
    assert revenue.description == "Venda: Fone Bluetooth (identificado por IA)"


def test_pending_context_takes_priority_over_extraction(message_router, parser, repo, fone):
    parser.queue(_identified())
    message_router.handle("u1", "vendi esse", image_url=PHOTO)

    reply = message_router.handle("u1", "85.00")

    # Only the photo went through the extractor
    assert len(parser.calls) == 1
    assert "R$ 85,00" in reply
    assert repo.get_user_expenses("u1") == []
    assert repo.get_user_revenues("u1")[0].amount == 85.0


def test_cancel_reply(message_router, parser, repo, cache, fone):
    parser.queue(_identified())
    message_router.handle("u1", None, image_url=PHOTO)

    reply = message_router.handle("u1", "não")

    assert "Venda cancelada" in reply
    assert cache.peek("u1") is None
    assert repo.get_user_revenues("u1") == []


def test_unrecognized_reply_lists_options(message_router, parser, cache, fone):
    parser.queue(_identified())
    message_router.handle("u1", None, image_url=PHOTO)

    reply = message_router.handle("u1", "gastei 50 no mercado")

    assert "Não entendi sua resposta" in reply
    assert cache.peek("u1") is not None
    assert len(parser.calls) == 1


def test_product_without_price_asks_for_amount(message_router, parser, repo, cache):
    repo.create_product("u1", "Caneca", category="casa")
    parser.queue(_identified(name="caneca"))

    prompt = message_router.handle("u1", None, image_url=PHOTO)
    assert "Qual foi o valor da venda" in prompt

    reply = message_router.handle("u1", "sim")
    assert "não tem preço cadastrado" in reply
    assert cache.peek("u1") is not None

    reply = message_router.handle("u1", "30 reais")
    assert "Venda registrada com sucesso" in reply
    assert repo.get_user_revenues("u1")[0].amount == 30.0


def test_unknown_product_saves_no_context(message_router, parser, cache):
    parser.queue(_identified(name="relógio"))

    reply = message_router.handle("u1", None, image_url=PHOTO)

    assert "Produto não encontrado" in reply
    assert cache.peek("u1") is None


def test_product_found_by_id(message_router, parser, cache, fone):
    parser.queue(_identified(name="headphone", produto_id=fone.id))

    message_router.handle("u1", None, image_url=PHOTO)

    assert cache.peek("u1").product.produto_nome == "Fone Bluetooth"


def test_new_photo_replaces_pending_context(message_router, parser, repo, cache, fone):
    repo.create_product("u1", "Capa de celular", selling_price=25.0)
    parser.queue(_identified())
    parser.queue(_identified(name="capa"))

    message_router.handle("u1", None, image_url=PHOTO)
    message_router.handle("u1", None, image_url=PHOTO)

    assert cache.peek("u1").product.produto_nome == "Capa de celular"


def test_ledger_failure_still_consumes_context(message_router, parser, repo, cache, fone, monkeypatch):
    parser.queue(_identified())
    message_router.handle("u1", None, image_url=PHOTO)

    def fail(*args, **kwargs):
        raise LedgerError("disk full")

    monkeypatch.setattr(repo, "create_revenue", fail)

    reply = message_router.handle("u1", "sim")

    assert "Erro ao registrar venda" in reply
    assert cache.peek("u1") is None


def test_expired_context_falls_through_to_intent(message_router, parser, repo, clock, fone):
    parser.queue(_identified())
    message_router.handle("u1", None, image_url=PHOTO)
    clock.advance(6 * 60)
    parser.queue(Intent(tipo="despesa_pessoal", valor=89.90, categoria="lazer"))

    reply = message_router.handle("u1", "89.90")

    assert len(parser.calls) == 2
    assert "Despesa pessoal registrada" in reply
    assert repo.get_user_revenues("u1") == []


def test_dispatch_by_type(message_router, parser, repo):
    parser.queue(Intent(tipo="despesa_variavel", valor=120, categoria="material", data="ontem"))
    parser.queue(Intent(tipo="receita", valor=1500, categoria="servicos"))
    parser.queue(Intent(tipo="investimento", valor=500, categoria="tesouro"))

    assert "Despesa registrada" in message_router.handle("u1", "comprei material 120 ontem")
    assert "Receita registrada" in message_router.handle("u1", "recebi 1500")
    assert "Investimento registrado" in message_router.handle("u1", "investi 500")

    types = sorted(e.type for e in repo.get_user_expenses("u1"))
    assert types == ["despesa_variavel", "investment"]


def test_text_sale_registers_revenue(message_router, parser, repo):
    parser.queue(Intent(tipo="venda", valor=89.90, descricao="Fone"))

    reply = message_router.handle("u1", "vendi um fone por 89,90")

    assert "Venda registrada" in reply
    assert repo.get_user_revenues("u1")[0].source == "vendas"


def test_debt_keywords_route_to_debt_handler(message_router, parser):
    parser.queue(Intent(intencao="outro"))

    reply = message_router.handle("u1", "quais minhas dívidas?")

    assert "não tem dívidas pendentes" in reply


def test_extractor_error_is_relayed(message_router, parser):
    parser.queue(Intent(intencao="erro", resposta="Não consegui entender. Pode reformular?"))

    assert message_router.handle("u1", "???") == "Não consegui entender. Pode reformular?"


def test_chitchat_relays_model_reply(message_router, parser):
    parser.queue(Intent(intencao="outro", resposta="Oi! Como posso ajudar?"))

    assert message_router.handle("u1", "oi") == "Oi! Como posso ajudar?"


def test_empty_message_gets_help(message_router, parser):
    reply = message_router.handle("u1", "   ")

    assert "assistente financeiro" in reply
    assert parser.calls == []


def test_handler_failure_becomes_error_reply(message_router, parser, repo, monkeypatch):
    def fail(*args, **kwargs):
        raise LedgerError("connection lost")

    monkeypatch.setattr(repo, "create_expense", fail)
    parser.queue(Intent(tipo="despesa_fixa", valor=300, categoria="aluguel"))

    reply = message_router.handle("u1", "paguei aluguel 300")

    assert reply == "❌ Erro ao registrar despesa de R$ 300,00. Tente novamente."


@pytest.mark.parametrize(
    "intent, expected",
    [
        (Intent(intencao="pagar_divida"), True),
        (Intent(tipo="dívida"), True),
        (Intent(texto_original="quero quitar meu empréstimo"), True),
        (Intent(tipo="despesa_pessoal", texto_original="parcela do sofá"), False),
        (Intent(tipo="receita", texto_original="recebi 100"), False),
        (Intent(texto_original="bom dia"), False),
    ],
)
def test_is_debt_command(intent, expected):
    assert is_debt_command(intent) is expected


def test_confirmed_image_sale_updates_metrics(message_router, parser, cache, fone):
    parser.queue(_identified(confidence=0.9))
    message_router.handle("u1", None, image_url=PHOTO)
    message_router.handle("u1", "sim")

    metrics = cache.metrics()
    assert metrics.total_image_sales == 1
    assert metrics.total_image_revenue == pytest.approx(89.90)
    assert metrics.average_confidence == pytest.approx(0.9)


def test_cancelled_image_sale_is_not_counted(message_router, parser, cache, fone):
    parser.queue(_identified())
    message_router.handle("u1", None, image_url=PHOTO)
    message_router.handle("u1", "cancelar")

    assert cache.metrics().total_image_sales == 0


@pytest.mark.parametrize("catalog", [False, True])
def test_typed_sale_with_product_name_registers_stated_amount(
    message_router, parser, repo, cache, catalog
):
    if catalog:
        repo.create_product("u1", "Fone Bluetooth", selling_price=89.90)
    parser.queue(Intent(tipo="venda", valor=120, produto_nome="fone"))

    reply = message_router.handle("u1", "vendi um fone por 120")

    assert "Venda registrada" in reply
    assert cache.peek("u1") is None
    [revenue] = repo.get_user_revenues("u1")
    assert revenue.amount == 120
    assert revenue.source == "vendas"


def test_goal_created_from_text(message_router, parser, repo):
    parser.queue(Intent(intencao="criar_meta", tipo="meta", titulo="Viagem", valor=5000))

    reply = message_router.handle("u1", "quero juntar 5000 para viagem")

    assert "Meta criada com sucesso" in reply
    [goal] = repo.get_user_goals("u1")
    assert goal.title == "Viagem"
    assert goal.goal_type == "saving"


def test_goal_keyword_without_action_gets_goal_help(message_router, parser):
    parser.queue(Intent(intencao="outro"))

    reply = message_router.handle("u1", "como funciona meta?")

    assert "🎯 *Metas*" in reply


@pytest.mark.parametrize(
    "intent, expected",
    [
        (Intent(intencao="listar_metas"), True),
        (Intent(tipo="meta"), True),
        (Intent(texto_original="quero economizar para o carro"), True),
        (Intent(tipo="despesa_pessoal", texto_original="economizar no mercado"), False),
        (Intent(tipo="divida", texto_original="meta de quitar a dívida"), False),
        (Intent(texto_original="bom dia"), False),
    ],
)
def test_is_goal_command(intent, expected):
    assert is_goal_command(intent) is expected


def test_correction_changes_last_record_category(message_router, parser, repo):
    parser.queue(Intent(tipo="despesa_variavel", valor=42, categoria="outros"))
    parser.queue(Intent(intencao="outro"))
    message_router.handle("u1", "gastei 42")

    reply = message_router.handle("u1", "foi alimentação")

    assert "Categoria corrigida" in reply
    assert "*Agora:* Alimentacao" in reply
    assert repo.get_user_expenses("u1")[0].category == "alimentacao"


def test_correction_window_is_used_once(message_router, parser, repo):
    parser.queue(Intent(tipo="receita_pessoal", valor=3000, categoria="salario"))
    parser.queue(Intent(tipo="correcao", categoria="servicos"))
    parser.queue(Intent(tipo="correcao", categoria="lazer"))
    message_router.handle("u1", "recebi 3000")

    message_router.handle("u1", "era serviços")
    reply = message_router.handle("u1", "era lazer")

    assert "Não há transação recente" in reply


def test_correction_window_expires(message_router, parser, repo, clock):
    parser.queue(Intent(tipo="despesa_pessoal", valor=18, categoria="outros"))
    message_router.handle("u1", "gastei 18")
    clock.advance(5 * 60 + 1)

    reply = message_router.handle("u1", "foi transporte")

    assert "Categoria corrigida" not in reply
    assert len(parser.calls) == 2


def test_new_amount_is_not_taken_as_correction(message_router, parser, repo):
    parser.queue(Intent(tipo="despesa_variavel", valor=42, categoria="outros"))
    parser.queue(Intent(tipo="despesa_variavel", valor=15, categoria="transporte"))
    message_router.handle("u1", "gastei 42")

    reply = message_router.handle("u1", "transporte 15")

    assert "Despesa registrada" in reply
    assert len(repo.get_user_expenses("u1")) == 2


def test_unknown_correction_word_asks_again(message_router, parser, repo):
    parser.queue(Intent(tipo="despesa_variavel", valor=42, categoria="outros"))
    parser.queue(Intent(tipo="correcao", categoria="xyz"))
    message_router.handle("u1", "gastei 42")

    reply = message_router.handle("u1", "foi xyz")

    assert "Não entendi a correção" in reply
    assert repo.get_user_expenses("u1")[0].category == "outros"
