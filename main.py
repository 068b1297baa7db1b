import io
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import openpyxl
from fastapi import FastAPI, Depends, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

import crud
from auth import Principal, authenticate_user, get_current_user, issue_token, register_user
from config import CORS_ORIGINS, DEFAULT_SECRET_KEY, LOG_LEVEL, SECRET_KEY
from database import get_db, init_db
from errors import FinanceError
from schemas import (
    CategoryCreated,
    CategoryIn,
    CategoryOut,
    CategorySpending,
    LoginIn,
    LoginOut,
    MessageOut,
    MonthlyTrendsOut,
    RegisterIn,
    RegisterOut,
    SummaryOut,
    TransactionCreated,
    TransactionIn,
    TransactionOut,
    UserOut,
)

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("finance-api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if SECRET_KEY == DEFAULT_SECRET_KEY:
        logger.warning("JWT_SECRET_KEY is not set, using the development default")
    init_db()
    logger.info("Database initialized")
    yield


app = FastAPI(title="Finance Tracker API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===== ERRORS =====
@app.exception_handler(FinanceError)
async def finance_error_handler(request: Request, exc: FinanceError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message}, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request."
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # details stay in the server log
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error."})


# ===== ROUTES =====
@app.get("/")
def home():
    return {"message": "Finance Tracker API running"}


@app.get("/test-db")
def test_db(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database connection failed")
        return JSONResponse(status_code=500, content={"message": "Database connection failed."})
    return {"message": "Database connected successfully!"}


# ---------- Auth ----------
@app.post("/auth/register", response_model=RegisterOut, status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    user = register_user(db, payload.username, payload.email, payload.password)
    return {"message": "User registered successfully!", "userId": user.id}


@app.post("/auth/login", response_model=LoginOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = authenticate_user(db, payload.email, payload.password)
    return {
        "message": "Login successful!",
        "token": issue_token(user),
        "user": UserOut.model_validate(user),
    }


# ---------- Categories ----------
@app.get("/categories", response_model=List[CategoryOut])
def get_categories(db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    return crud.list_categories(db, user.id)


@app.post("/categories", response_model=CategoryCreated, status_code=201)
def add_category(payload: CategoryIn, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    category = crud.create_category(db, user.id, payload.name, payload.type)
    return {"message": "Category added successfully!", "categoryId": category.id}


@app.put("/categories/{category_id}", response_model=MessageOut)
def update_category(
    category_id: int,
    payload: CategoryIn,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    crud.update_category(db, category_id, user.id, payload.name, payload.type)
    return {"message": "Category updated successfully!"}


@app.delete("/categories/{category_id}", response_model=MessageOut)
def delete_category(category_id: int, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    crud.delete_category(db, category_id, user.id)
    return {"message": "Category deleted successfully!"}


# ---------- Transactions ----------
@app.get("/transactions", response_model=List[TransactionOut])
def get_transactions(db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    return crud.list_transactions(db, user.id)


@app.post("/transactions", response_model=TransactionCreated, status_code=201)
def add_transaction(payload: TransactionIn, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    tx = crud.create_transaction(
        db,
        user.id,
        amount=payload.amount,
        type_=payload.type,
        transaction_date=payload.transaction_date,
        description=payload.description,
        category_id=payload.category_id,
    )
    return {"message": "Transaction added successfully!", "transactionId": tx.id}


@app.get("/transactions/export")
def export_transactions(
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    rows = crud.transactions_for_period(db, user.id, year=year, month=month)

    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = "Transactions"

    sheet.append(["ID", "Date", "Type", "Amount", "Category", "Description"])

    for row in rows:
        sheet.append([
            row["id"],
            row["transaction_date"].isoformat(),
            row["type"],
            float(row["amount"]),
            row["category_name"] or "Uncategorized",
            row["description"] or "",
        ])

    stream = io.BytesIO()
    workbook.save(stream)
    stream.seek(0)

    filename = "transactions"
    if year:
        filename += f"_{year}"
    if month:
        filename += f"_{month:02d}"

    return StreamingResponse(
        stream,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}.xlsx"},
    )


@app.put("/transactions/{tx_id}", response_model=MessageOut)
def update_transaction(
    tx_id: int,
    payload: TransactionIn,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    crud.update_transaction(
        db,
        tx_id,
        user.id,
        amount=payload.amount,
        type_=payload.type,
        transaction_date=payload.transaction_date,
        description=payload.description,
        category_id=payload.category_id,
    )
    return {"message": "Transaction updated successfully!"}


@app.delete("/transactions/{tx_id}", response_model=MessageOut)
def delete_transaction(tx_id: int, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    crud.delete_transaction(db, tx_id, user.id)
    return {"message": "Transaction deleted successfully!"}


# ---------- Dashboard ----------
@app.get("/dashboard/summary", response_model=SummaryOut)
def dashboard_summary(db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    return crud.summary(db, user.id)


@app.get("/dashboard/monthly-trends", response_model=MonthlyTrendsOut)
def dashboard_monthly_trends(db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    return crud.monthly_trends(db, user.id)


@app.get("/dashboard/category-spending", response_model=List[CategorySpending])
def dashboard_category_spending(db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    return crud.category_spending(db, user.id)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=5000)
