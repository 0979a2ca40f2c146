from calendar import monthrange
from collections import defaultdict
from datetime import datetime

from tinydb import Query, TinyDB

from zapfin.models.schemas import (
    Debt,
    DebtPayment,
    Expense,
    Goal,
    GoalProgress,
    PersonalExpense,
    PersonalIncome,
    Product,
    Revenue,
    User,
)

USER_UPDATABLE_FIELDS = {"name", "email", "whatsapp_number"}


class LedgerError(Exception):
    """Raised when a ledger read or write cannot be completed."""


def _in_window(value: str, start: datetime | None, end: datetime | None) -> bool:
    when = datetime.fromisoformat(value)
    if start and when < start:
        return False
    if end and when > end:
        return False
    return True


def month_window(year: int, month: int) -> tuple[datetime, datetime]:
    last_day = monthrange(year, month)[1]
    return datetime(year, month, 1), datetime(year, month, last_day, 23, 59, 59, 999999)


class LedgerRepository:
    def __init__(self, db_path: str = "zapfin_ledger.json"):
        self.db = TinyDB(db_path)
        self.users = self.db.table("users")
        self.expenses = self.db.table("expenses")
        self.revenues = self.db.table("revenues")
        self.products = self.db.table("products")
        self.debts = self.db.table("debts")
        self.personal_expenses = self.db.table("personal_expenses")
        self.personal_incomes = self.db.table("personal_incomes")
        self.goals = self.db.table("goals")
        self.record_tables = {
            "expense": self.expenses,
            "revenue": self.revenues,
            "personal_expense": self.personal_expenses,
            "personal_income": self.personal_incomes,
        }

    def close(self) -> None:
        self.db.close()

    @staticmethod
    def _insert(table, record):
        data = record.model_dump(mode="json")
        data.pop("id", None)
        record.id = table.insert(data)
        return record

    # Users

    def create_user(
        self, whatsapp_number: str, name: str | None = None, email: str | None = None
    ) -> User:
        if self.get_user_by_whatsapp(whatsapp_number) is not None:
            raise LedgerError(f"User with number {whatsapp_number} already exists")
        return self._insert(
            self.users, User(whatsapp_number=whatsapp_number, name=name, email=email)
        )

    def get_user(self, id: int) -> User | None:
        doc = self.users.get(doc_id=id)
        if doc is None:
            return None
        return User(id=doc.doc_id, **doc)

    def get_user_by_whatsapp(self, whatsapp_number: str) -> User | None:
        U = Query()
        doc = self.users.get(U.whatsapp_number == whatsapp_number)
        if doc is None:
            return None
        return User(id=doc.doc_id, **doc)

    def get_or_create_user(self, whatsapp_number: str) -> User:
        return self.get_user_by_whatsapp(whatsapp_number) or self.create_user(
            whatsapp_number
        )

    def update_user(self, id: int, **fields) -> User:
        if self.users.get(doc_id=id) is None:
            raise LedgerError(f"User #{id} not found")
        rejected = set(fields) - USER_UPDATABLE_FIELDS
        if rejected:
            raise LedgerError(f"Fields not updatable: {', '.join(sorted(rejected))}")
        updates = {k: v for k, v in fields.items() if v is not None}
        if updates:
            self.users.update(updates, doc_ids=[id])
        return self.get_user(id)

    def delete_user(self, id: int) -> User:
        user = self.get_user(id)
        if user is None:
            raise LedgerError(f"User #{id} not found")
        self.users.remove(doc_ids=[id])
        return user

    # Expenses and revenues

    def create_expense(
        self,
        user_id: str,
        amount: float,
        category: str,
        description: str | None = None,
        date: datetime | None = None,
        type: str = "other",
    ) -> Expense:
        expense = Expense(
            user_id=user_id,
            amount=amount,
            category=category,
            description=description,
            date=date or datetime.now(),
            type=type,
        )
        return self._insert(self.expenses, expense)

    def create_revenue(
        self,
        user_id: str,
        amount: float,
        category: str,
        description: str | None = None,
        date: datetime | None = None,
        source: str = "other",
    ) -> Revenue:
        revenue = Revenue(
            user_id=user_id,
            amount=amount,
            category=category,
            description=description,
            date=date or datetime.now(),
            source=source,
        )
        return self._insert(self.revenues, revenue)

    def _user_docs(self, table, user_id: str, category: str | None = None,
                   start: datetime | None = None, end: datetime | None = None):
        R = Query()
        cond = R.user_id == user_id
        if category:
            cond &= R.category.test(lambda val: val.lower() == category.lower())
        if start or end:
            cond &= R.date.test(_in_window, start, end)
        docs = table.search(cond)
        return sorted(docs, key=lambda d: d["date"], reverse=True)

    def get_user_expenses(self, user_id: str, limit: int = 50, offset: int = 0) -> list[Expense]:
        docs = self._user_docs(self.expenses, user_id)[offset:offset + limit]
        return [Expense(id=d.doc_id, **d) for d in docs]

    def get_user_revenues(self, user_id: str, limit: int = 50, offset: int = 0) -> list[Revenue]:
        docs = self._user_docs(self.revenues, user_id)[offset:offset + limit]
        return [Revenue(id=d.doc_id, **d) for d in docs]

    def get_user_expenses_by_category(
        self, user_id: str, category: str,
        start: datetime | None = None, end: datetime | None = None,
    ) -> list[Expense]:
        docs = self._user_docs(self.expenses, user_id, category, start, end)
        return [Expense(id=d.doc_id, **d) for d in docs]

    def get_user_revenues_by_category(
        self, user_id: str, category: str,
        start: datetime | None = None, end: datetime | None = None,
    ) -> list[Revenue]:
        docs = self._user_docs(self.revenues, user_id, category, start, end)
        return [Revenue(id=d.doc_id, **d) for d in docs]

    def get_user_monthly_expenses(self, user_id: str, year: int, month: int) -> list[Expense]:
        start, end = month_window(year, month)
        docs = self._user_docs(self.expenses, user_id, start=start, end=end)
        return [Expense(id=d.doc_id, **d) for d in docs]

    def get_user_monthly_revenues(self, user_id: str, year: int, month: int) -> list[Revenue]:
        start, end = month_window(year, month)
        docs = self._user_docs(self.revenues, user_id, start=start, end=end)
        return [Revenue(id=d.doc_id, **d) for d in docs]

    def get_category_totals(
        self, user_id: str, kind: str = "expense",
        start: datetime | None = None, end: datetime | None = None,
    ) -> dict[str, float]:
        """Sum amounts per category, largest first."""
        table = self.expenses if kind == "expense" else self.revenues
        totals: dict[str, float] = defaultdict(float)
        for doc in self._user_docs(table, user_id, start=start, end=end):
            totals[doc["category"]] += doc["amount"]
        return dict(sorted(totals.items(), key=lambda item: item[1], reverse=True))

    def update_record_category(self, kind: str, id: int, category: str) -> dict:
        """Change the category of one ledger record and return the updated row."""
        table = self.record_tables.get(kind)
        if table is None:
            raise LedgerError(f"Unknown record kind: {kind}")
        if table.get(doc_id=id) is None:
            raise LedgerError(f"{kind} #{id} not found")
        table.update({"category": category}, doc_ids=[id])
        return dict(table.get(doc_id=id))

    def delete_expense(self, id: int) -> Expense:
        doc = self.expenses.get(doc_id=id)
        if doc is None:
            raise LedgerError(f"Expense #{id} not found")
        self.expenses.remove(doc_ids=[id])
        return Expense(id=doc.doc_id, **doc)

    def delete_revenue(self, id: int) -> Revenue:
        doc = self.revenues.get(doc_id=id)
        if doc is None:
            raise LedgerError(f"Revenue #{id} not found")
        self.revenues.remove(doc_ids=[id])
        return Revenue(id=doc.doc_id, **doc)

    # Products

    def create_product(
        self,
        user_id: str,
        name: str,
        category: str | None = None,
        price: float | None = None,
        selling_price: float | None = None,
        cost_price: float | None = None,
    ) -> Product:
        product = Product(
            user_id=user_id,
            name=name,
            category=category,
            price=price,
            selling_price=selling_price,
            cost_price=cost_price,
        )
        return self._insert(self.products, product)

    def get_user_products(self, user_id: str, limit: int = 50, offset: int = 0) -> list[Product]:
        P = Query()
        docs = self.products.search(P.user_id == user_id)[offset:offset + limit]
        return [Product(id=d.doc_id, **d) for d in docs]

    # Debts

    def create_debt(self, debt: Debt) -> Debt:
        return self._insert(self.debts, debt)

    def get_debt(self, id: int) -> Debt | None:
        doc = self.debts.get(doc_id=id)
        if doc is None:
            return None
        return Debt(id=doc.doc_id, **doc)

    def get_user_debts(self, user_id: str, status: str | None = None) -> list[Debt]:
        D = Query()
        cond = D.user_id == user_id
        if status:
            cond &= D.status == status
        docs = sorted(self.debts.search(cond), key=lambda d: d["due_date"])
        return [Debt(id=d.doc_id, **d) for d in docs]

    def add_debt_payment(self, id: int, payment: DebtPayment) -> Debt:
        doc = self.debts.get(doc_id=id)
        if doc is None:
            raise LedgerError(f"Debt #{id} not found")

        payments = doc.get("payments", [])
        payments.append(payment.model_dump(mode="json"))

        remaining = max(round(doc["current_amount"] - payment.amount, 2), 0)
        updates = {"payments": payments, "current_amount": remaining}
        if remaining == 0:
            updates["status"] = "paid"

        self.debts.update(updates, doc_ids=[id])
        return self.get_debt(id)

    # Goals

    def create_goal(self, goal: Goal) -> Goal:
        return self._insert(self.goals, goal)

    def get_goal(self, id: int) -> Goal | None:
        doc = self.goals.get(doc_id=id)
        if doc is None:
            return None
        return Goal(id=doc.doc_id, **doc)

    def get_user_goals(self, user_id: str, status: str | None = None) -> list[Goal]:
        G = Query()
        cond = G.user_id == user_id
        if status:
            cond &= G.status == status
        return [Goal(id=d.doc_id, **d) for d in self.goals.search(cond)]

    def update_goal_progress(self, id: int, progress: GoalProgress) -> Goal:
        """Add to (or set) a goal's saved amount; reaching the target completes it."""
        doc = self.goals.get(doc_id=id)
        if doc is None:
            raise LedgerError(f"Goal #{id} not found")

        if progress.mode == "set":
            current = progress.amount
        else:
            current = doc["current_amount"] + progress.amount
        current = round(current, 2)

        history = doc.get("progress", [])
        history.append(progress.model_dump(mode="json"))
        updates = {"current_amount": current, "progress": history}
        if current >= doc["target_amount"]:
            updates["status"] = "completed"

        self.goals.update(updates, doc_ids=[id])
        return self.get_goal(id)

    # Personal finance

    def create_personal_expense(self, expense: PersonalExpense) -> PersonalExpense:
        return self._insert(self.personal_expenses, expense)

    def create_personal_income(self, income: PersonalIncome) -> PersonalIncome:
        return self._insert(self.personal_incomes, income)
