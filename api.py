import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Security
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field

from config import settings
from errors import ConflictGuard, NotFound, PersistenceFailure, RentalShopError, ValidationFailed
from shop import RentalShop

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFound: 404,
    ValidationFailed: 400,
    ConflictGuard: 409,
    PersistenceFailure: 503,
}


# --- Models ---
class BookModel(BaseModel):
    id: int
    title: str
    author: str
    isbn: str
    price_buy: float
    price_rent: float
    stock: int
    status: str
    created_at: str | None = None


class BookCreateModel(BaseModel):
    title: str
    author: str
    isbn: str = ""
    price_buy: float = Field(default=0, ge=0)
    price_rent: float = Field(default=0, ge=0)
    stock: int = Field(default=0, ge=0)
    status: Literal["available", "rented", "sold"] = "available"


class BookUpdateModel(BaseModel):
    title: str | None = None
    author: str | None = None
    isbn: str | None = None
    price_buy: float | None = Field(default=None, ge=0)
    price_rent: float | None = Field(default=None, ge=0)
    stock: int | None = Field(default=None, ge=0)
    status: Literal["available", "rented", "sold"] | None = None


class CustomerModel(BaseModel):
    id: int
    name: str
    phone: str
    email: str = ""
    address: str = ""
    created_at: str | None = None


class CustomerCreateModel(BaseModel):
    name: str
    phone: str
    email: str | None = None
    address: str | None = None


class CustomerUpdateModel(BaseModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None


class RentalCreateModel(BaseModel):
    book_id: int
    customer_id: int
    rental_days: int = Field(default=settings.default_rental_days, ge=1)


class RentalDetailsModel(BaseModel):
    id: int
    book_id: int
    customer_id: int
    rental_date: str
    due_date: str
    return_date: str | None = None
    status: str
    created_at: str | None = None
    book_title: str
    book_author: str
    book_price_rent: float
    customer_name: str
    customer_phone: str
    days_rented: int
    is_overdue: bool


class RentalStatsModel(BaseModel):
    total_rentals: int
    active_rentals: int
    overdue_rentals: int
    returned_rentals: int
    total_revenue: float


class MessageModel(BaseModel):
    message: str


# --- Dependencies ---
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_shop(request: Request) -> RentalShop:
    return request.app.state.shop


def get_api_key(request: Request, api_key: Optional[str] = Security(api_key_header)):
    """Check X-API-Key on mutating routes when the app has a key configured."""
    expected = request.app.state.api_key
    if expected and api_key != expected:
        raise HTTPException(status_code=403, detail="Could not validate credentials")
    return api_key


write_access = [Depends(get_api_key)]


# --- Books ---
books_router = APIRouter(prefix="/api/books", tags=["books"])


@books_router.get("", response_model=List[BookModel])
def list_books(shop: RentalShop = Depends(get_shop)):
    return [b.to_dict() for b in shop.list_books()]


@books_router.get("/{book_id}", response_model=BookModel)
def get_book(book_id: int, shop: RentalShop = Depends(get_shop)):
    return shop.get_book(book_id).to_dict()


@books_router.post("", response_model=BookModel, dependencies=write_access)
def create_book(payload: BookCreateModel, shop: RentalShop = Depends(get_shop)):
    return shop.create_book(payload.model_dump()).to_dict()


@books_router.put("/{book_id}", response_model=BookModel, dependencies=write_access)
def update_book(book_id: int, payload: BookUpdateModel, shop: RentalShop = Depends(get_shop)):
    return shop.update_book(book_id, payload.model_dump(exclude_unset=True)).to_dict()


@books_router.delete("/{book_id}", response_model=MessageModel, dependencies=write_access)
def delete_book(book_id: int, shop: RentalShop = Depends(get_shop)):
    shop.delete_book(book_id)
    return {"message": "Book deleted successfully"}


# --- Customers ---
customers_router = APIRouter(prefix="/api/customers", tags=["customers"])


@customers_router.get("", response_model=List[CustomerModel])
def list_customers(shop: RentalShop = Depends(get_shop)):
    return [c.to_dict() for c in shop.list_customers()]


@customers_router.get("/{customer_id}", response_model=CustomerModel)
def get_customer(customer_id: int, shop: RentalShop = Depends(get_shop)):
    return shop.get_customer(customer_id).to_dict()


@customers_router.post("", response_model=CustomerModel, dependencies=write_access)
def create_customer(payload: CustomerCreateModel, shop: RentalShop = Depends(get_shop)):
    return shop.create_customer(payload.model_dump()).to_dict()


@customers_router.put("/{customer_id}", response_model=CustomerModel, dependencies=write_access)
def update_customer(customer_id: int, payload: CustomerUpdateModel, shop: RentalShop = Depends(get_shop)):
    return shop.update_customer(customer_id, payload.model_dump(exclude_unset=True)).to_dict()


@customers_router.delete("/{customer_id}", response_model=MessageModel, dependencies=write_access)
def delete_customer(customer_id: int, shop: RentalShop = Depends(get_shop)):
    shop.delete_customer(customer_id)
    return {"message": "Customer deleted successfully"}


@customers_router.get("/{customer_id}/rentals", response_model=List[RentalDetailsModel])
def list_customer_rentals(customer_id: int, shop: RentalShop = Depends(get_shop)):
    return shop.list_customer_rentals(customer_id)


# --- Rentals ---
rentals_router = APIRouter(prefix="/api/rentals", tags=["rentals"])


@rentals_router.get("", response_model=List[RentalDetailsModel])
def list_rentals(shop: RentalShop = Depends(get_shop)):
    """All rentals with book and customer details; stale rows are marked overdue."""
    return shop.list_rentals()


@rentals_router.get("/overdue/list", response_model=List[RentalDetailsModel])
def list_overdue_rentals(shop: RentalShop = Depends(get_shop)):
    return shop.list_overdue()


@rentals_router.get("/stats/overview", response_model=RentalStatsModel)
def rental_stats(shop: RentalShop = Depends(get_shop)):
    return shop.rental_stats()


@rentals_router.get("/{rental_id}", response_model=RentalDetailsModel)
def get_rental(rental_id: int, shop: RentalShop = Depends(get_shop)):
    return shop.get_rental(rental_id)


@rentals_router.post("", response_model=RentalDetailsModel, dependencies=write_access)
def create_rental(payload: RentalCreateModel, shop: RentalShop = Depends(get_shop)):
    return shop.create_rental(payload.book_id, payload.customer_id, payload.rental_days)


@rentals_router.put("/{rental_id}/return", response_model=RentalDetailsModel, dependencies=write_access)
def return_rental(rental_id: int, shop: RentalShop = Depends(get_shop)):
    return shop.return_rental(rental_id)


@rentals_router.delete("/{rental_id}", response_model=MessageModel, dependencies=write_access)
def delete_rental(rental_id: int, shop: RentalShop = Depends(get_shop)):
    shop.delete_rental(rental_id)
    return {"message": "Rental deleted successfully"}


# --- Error handling ---
async def handle_shop_error(request: Request, exc: RentalShopError):
    status_code = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


async def handle_http_error(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def handle_validation_error(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": problems or "Invalid request"})


# --- Application ---
def create_app(data_file: Optional[str] = None, shop: Optional[RentalShop] = None,
               api_key: Optional[str] = None) -> FastAPI:
    """Build the HTTP app. The store is opened at startup and flushed on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.shop = shop or RentalShop.open(data_file)
        logger.info(f"Serving data from {app.state.shop.store.data_file}")
        try:
            yield
        finally:
            app.state.shop.close()

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.state.api_key = api_key if api_key is not None else settings.api_key

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_headers=["Content-Type", "X-API-Key"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
    )

    app.add_exception_handler(RentalShopError, handle_shop_error)
    app.add_exception_handler(HTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)

    @app.get("/")
    def read_root():
        return {
            "message": "Bookstore API is running!",
            "database": "JSON File Database",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/health")
    def health(request: Request):
        details = request.app.state.shop.health()
        return {"status": "healthy" if details["last_save_ok"] is not False else "degraded", **details}

    app.include_router(books_router)
    app.include_router(customers_router)
    app.include_router(rentals_router)
    return app


app = create_app()
