from datetime import datetime
from typing import Any, Literal, get_args

from pydantic import BaseModel, Field


class User(BaseModel):
    id: int | None = None
    whatsapp_number: str
    name: str | None = None
    email: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class Expense(BaseModel):
    id: int | None = None
    user_id: str
    amount: float
    category: str
    description: str | None = None
    date: datetime = Field(default_factory=datetime.now)
    type: str = "other"


class Revenue(BaseModel):
    id: int | None = None
    user_id: str
    amount: float
    category: str
    description: str | None = None
    date: datetime = Field(default_factory=datetime.now)
    source: str = "other"


class Product(BaseModel):
    id: int | None = None
    user_id: str
    name: str
    category: str | None = None
    price: float | None = None
    selling_price: float | None = None
    cost_price: float | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class DebtPayment(BaseModel):
    amount: float
    paid_at: datetime
    payment_method: str = "other"
    notes: str | None = None


class Debt(BaseModel):
    id: int | None = None
    user_id: str
    creditor_name: str
    description: str
    original_amount: float
    current_amount: float
    due_date: datetime
    category: str = "outros"
    status: Literal["pending", "paid"] = "pending"
    created_at: datetime = Field(default_factory=datetime.now)
    payments: list[DebtPayment] = []


class PersonalExpense(BaseModel):
    id: int | None = None
    user_id: str
    amount: float
    category: str
    description: str | None = None
    date: datetime = Field(default_factory=datetime.now)
    payment_method: str = "dinheiro"
    is_essential: bool = False


class PersonalIncome(BaseModel):
    id: int | None = None
    user_id: str
    amount: float
    category: str
    description: str | None = None
    date: datetime = Field(default_factory=datetime.now)
    source: str = "outros"


GoalType = Literal["saving", "expense_limit", "income_target", "investment", "debt_payment"]
GOAL_TYPES = get_args(GoalType)


class GoalProgress(BaseModel):
    amount: float
    mode: Literal["add", "set"] = "add"
    at: datetime = Field(default_factory=datetime.now)


class Goal(BaseModel):
    id: int | None = None
    user_id: str
    title: str
    description: str | None = None
    target_amount: float
    current_amount: float = 0.0
    category: str = "outros"
    goal_type: GoalType = "saving"
    target_date: datetime | None = None
    status: Literal["active", "completed"] = "active"
    created_at: datetime = Field(default_factory=datetime.now)
    progress: list[GoalProgress] = []

    @property
    def percent(self) -> float:
        if self.target_amount <= 0:
            return 0.0
        return self.current_amount / self.target_amount * 100


class Intent(BaseModel):
    """Structured result of the intent extractor.

    Field names follow the Portuguese keys the model is prompted to emit.
    """

    intencao: str = "outro"
    tipo: str | None = None
    valor: float | None = None
    categoria: str | None = None
    descricao: str | None = None
    data: str | None = None
    produto_nome: str | None = None
    produto_id: int | None = None
    confianca: float | None = None
    similaridade: float | None = None
    credor: str | None = None
    metodo_pagamento: str | None = None
    titulo: str | None = None
    tipo_meta: str | None = None
    meta_id: int | None = None
    tipo_atualizacao: str | None = None
    texto_original: str | None = None
    resposta: str | None = None


class ProductSnapshot(BaseModel):
    """Frozen copy of the product data captured when an image was identified."""

    model_config = {"frozen": True}

    produto_nome: str
    produto_id: int | None = None
    confianca: float = 0.0
    valor: float | None = None
    preco: float | None = None
    categoria: str | None = None
    similaridade: float | None = None
    custo: float | None = None
    raw: dict[str, Any] = {}


class InboundMessage(BaseModel):
    user_id: str
    text: str | None = None
    image_url: str | None = None


class MessageReply(BaseModel):
    reply: str


class ConfirmationStatus(BaseModel):
    active_contexts: int
    timeout_seconds: float
    max_contexts: int
    total_image_sales: int
    total_image_revenue: float
    average_confidence: float
