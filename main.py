import logging
import os
import time
from datetime import datetime, timezone
from typing import Optional

import socketio
from bson.errors import InvalidId
from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
import database
import factories
import invoices
import sockets
from auth import AuthUser, get_current_user, get_optional_user, require_role
from errors import AppError, ValidationError
from schemas import Category, Comment, InvoiceOrder, Product, Sub, User
from seed import seed_demo_catalog
from services import CategoryService, CommentService, ProductService, SubService, UserService

config.setup_logging()
log = logging.getLogger("storefront.api")

START_TIME = time.monotonic()

app = FastAPI(title="Storefront API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --------------------- Errors ---------------------

@app.exception_handler(AppError)
def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        log.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    else:
        log.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)})


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"] if part != "body")
        errors.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return JSONResponse(status_code=400, content=ValidationError(errors=errors).to_dict())


@app.exception_handler(DuplicateKeyError)
def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return JSONResponse(status_code=400, content={"success": False, "message": "Duplicate field value entered"})


@app.exception_handler(InvalidId)
def invalid_id_handler(request: Request, exc: InvalidId):
    return JSONResponse(status_code=400, content={"success": False, "message": "Invalid ID format"})


@app.exception_handler(Exception)
def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal Server Error"})


def ok(**results):
    return {"success": True, "results": results}


# --------------------- Services ---------------------

def user_service() -> UserService:
    return factories.create_user_service()


def product_service() -> ProductService:
    return factories.create_product_service()


def category_service() -> CategoryService:
    return factories.create_category_service()


def sub_service() -> SubService:
    return factories.create_sub_service()


def comment_service() -> CommentService:
    return factories.create_comment_service()


# --------------------- Models ---------------------

class RateRequest(BaseModel):
    star: int = Field(..., ge=1, le=5)


class InvoiceRequest(BaseModel):
    order: Optional[InvoiceOrder] = None


@app.on_event("startup")
def startup():
    if database.db is None:
        return
    try:
        database.ensure_indexes(database.db)
    except Exception as e:
        log.error("Could not ensure indexes: %s", e)
        return
    if config.SEED_DEMO_DATA:
        seed_demo_catalog()


# --------------------- Routes ---------------------

@app.get("/")
def root():
    return {"message": "Storefront API is running"}


@app.get("/test")
def test_database():
    return {"backend": "✅ Running", **database.database_status()}


@app.get("/api/health")
def health():
    status = database.database_status()
    return {
        "status": "OK",
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": config.ENVIRONMENT,
        "uptime": round(time.monotonic() - START_TIME, 3),
        "mongodb": status["connection_status"],
    }


@app.get("/schema")
def get_schema():
    return {
        "user": User.model_json_schema(),
        "category": Category.model_json_schema(),
        "sub": Sub.model_json_schema(),
        "product": Product.model_json_schema(),
        "comment": Comment.model_json_schema(),
    }


# Products
@app.get("/api/products")
def list_products(
    category: Optional[str] = None,
    sub: Optional[str] = None,
    q: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    limit: int = Query(50, ge=1, le=200),
    service: ProductService = Depends(product_service),
):
    products = service.find_products(category=category, sub=sub, q=q, min_price=min_price,
                                     max_price=max_price, limit=limit)
    return ok(products=products, count=len(products))


@app.get("/api/products/latest")
def latest_products(limit: int = Query(3, ge=1, le=50), service: ProductService = Depends(product_service)):
    return ok(products=service.get_latest_products(limit))


@app.get("/api/products/top-rated")
def top_rated_products(limit: int = Query(5, ge=1, le=50), service: ProductService = Depends(product_service)):
    return ok(products=service.top_rated(limit))


@app.get("/api/products/slug/{slug}")
def get_product_by_slug(slug: str, service: ProductService = Depends(product_service)):
    return ok(product=service.get_product_by_slug(slug))


@app.get("/api/products/id/{product_id}")
def get_product(product_id: str, service: ProductService = Depends(product_service)):
    return ok(product=service.get_product_by_id(product_id))


@app.get("/api/products/{product_id}/rating")
def product_rating(product_id: str, service: ProductService = Depends(product_service)):
    return ok(**service.rating_overview(product_id))


@app.get("/api/products/{product_id}/rate/check")
def check_rating(product_id: str, user: AuthUser = Depends(get_current_user),
                 service: ProductService = Depends(product_service)):
    star = service.get_user_rating(product_id, user.id)
    return ok(rated=star is not None, star=star)


@app.put("/api/products/{product_id}/rate")
def rate_product(product_id: str, body: RateRequest, background_tasks: BackgroundTasks,
                 user: AuthUser = Depends(require_role(["user", "admin"])),
                 service: ProductService = Depends(product_service)):
    result = service.rate_product(product_id, user.id, body.star)
    background_tasks.add_task(sockets.emit_to_user, user.id, "product:rated", {
        "productId": product_id,
        "star": body.star,
        **result["summary"],
    })
    return ok(**result)


# Categories
@app.get("/api/categories")
def list_categories(service: CategoryService = Depends(category_service)):
    return ok(categories=service.get_categories())


@app.get("/api/categories/slug/{slug}")
def get_category(slug: str, service: CategoryService = Depends(category_service),
                 subs: SubService = Depends(sub_service)):
    category = service.get_category_by_slug(slug)
    return ok(category=category, subs=subs.get_subs_by_category(category["id"]))


@app.get("/api/subs")
def list_subs(service: SubService = Depends(sub_service)):
    return ok(subs=service.get_subs())


# Comments
@app.get("/api/comments/product/{product_id}")
def product_comments(product_id: str, service: CommentService = Depends(comment_service)):
    return ok(comments=service.get_comments_by_product(product_id), stats=service.rating_stats(product_id))


@app.get("/api/comments/user/{user_id}")
def user_comments(user_id: str, service: CommentService = Depends(comment_service)):
    return ok(comments=service.get_comments_by_user(user_id))


# Users
@app.get("/api/users/me")
def me(user: AuthUser = Depends(get_current_user), service: UserService = Depends(user_service)):
    return ok(user=service.get_user(user.id))


# Invoices
@app.post("/api/invoice/generate")
def generate_invoice(body: InvoiceRequest, background_tasks: BackgroundTasks,
                     user: Optional[AuthUser] = Depends(get_optional_user)):
    if body.order is None:
        raise ValidationError("Order data required")
    path, rendering = invoices.submit_invoice(body.order)
    invoices.wait_for_invoice(path, rendering)
    filename = os.path.basename(path)
    if user is not None:
        payload = {"filename": filename, "url": f"/api/invoices/{filename}"}
        if user.sid:
            background_tasks.add_task(sockets.emit_to_session, user.sid, "invoice:ready", payload)
        else:
            background_tasks.add_task(sockets.emit_to_user, user.id, "invoice:ready", payload)
    return FileResponse(path, media_type="application/pdf", filename=filename)


@app.get("/api/invoices/{filename}")
def download_invoice(filename: str):
    path = invoices.resolve_invoice(filename)
    return FileResponse(path, media_type="application/pdf", filename=filename)


# Admin
@app.post("/api/admin/seed")
def seed(user: AuthUser = Depends(require_role(["admin"]))):
    return ok(**seed_demo_catalog())


asgi_app = socketio.ASGIApp(sockets.sio, other_asgi_app=app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(asgi_app, host="0.0.0.0", port=config.PORT)
