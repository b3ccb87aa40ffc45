from typing import Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from pymongo.errors import PyMongoError

import config
import database
from app_logging import setup_logging
from auth import Session, auth_events, resolve_session, sign_in, sign_out, sign_up
from database import create_document
from errors import AuthorizationError, ServerError, StoreError
from products import get_product, list_products, normalize_product_id, parse_page
from reviews import add_review, delete_review, list_reviews, sort_reviews, update_review
from schemas import LoginBody, Product, ProductFilter, SignupBody

setup_logging()

app = FastAPI(title="SwiftCart API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

security = HTTPBearer(auto_error=False)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def log_auth_transition(user: Optional[dict]):
    if user:
        logger.info("Signed in: {}", user["email"])
    else:
        logger.info("Signed out")


auth_events.subscribe(log_auth_transition)


# ----------------------- Dependencies -----------------------
def get_db():
    if database.db is None:
        raise ServerError("Database not configured")
    return database.db


def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db=Depends(get_db),
) -> Optional[Session]:
    token = credentials.credentials if credentials else None
    return resolve_session(db, token)


def require_session(session: Optional[Session] = Depends(get_session)) -> Session:
    if session is None:
        raise AuthorizationError("Not signed in")
    return session


# ----------------------- Health -----------------------
@app.get("/")
def root():
    return {"message": "SwiftCart API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_url": "Set" if config.DATABASE_URL else "Not Set",
        "database_name": "Set" if config.DATABASE_NAME else "Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    if database.db is None:
        return response
    try:
        response["collections"] = database.db.list_collection_names()[:10]
        response["database"] = "Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"Error: {str(e)[:80]}"
    return response


# ----------------------- Auth -----------------------
@app.post("/auth/signup")
def signup(body: SignupBody, db=Depends(get_db)):
    return sign_up(db, body)


@app.post("/auth/login")
def login(body: LoginBody, db=Depends(get_db)):
    return sign_in(db, body)


@app.post("/auth/logout")
def logout(session: Session = Depends(require_session), db=Depends(get_db)):
    sign_out(db, session)
    return {"ok": True}


@app.get("/auth/me")
def me(session: Session = Depends(require_session)):
    return {"user": session.user}


# ----------------------- Products -----------------------
@app.get("/api/products")
def list_products_route(
    searchTerm: str = "",
    category: str = "",
    sortByPrice: str = "",
    page: Optional[str] = None,
    db=Depends(get_db),
):
    filt = ProductFilter(
        search_term=searchTerm,
        category=category,
        sort_by_price=sortByPrice,
        page=parse_page(page),
    )
    result = list_products(db, filt)
    if not result.items:
        return {"products": [], "message": result.message}
    return {
        "products": [p.model_dump(mode="json", exclude={"reviews"}) for p in result.items],
        "currentPage": result.current_page,
        "totalPages": result.total_pages,
    }


@app.get("/api/products/{product_id}")
def get_product_route(product_id: str, db=Depends(get_db)):
    product = get_product(db, product_id)
    return {"product": product.model_dump(mode="json")}


# ----------------------- Reviews -----------------------
@app.get("/api/products/{product_id}/reviews")
def list_reviews_route(product_id: str, sortBy: Optional[str] = None, order: str = "desc", db=Depends(get_db)):
    reviews = list_reviews(db, normalize_product_id(product_id))
    if sortBy:
        reviews = sort_reviews(reviews, key=sortBy, order=order)
    return {"reviews": [r.model_dump(mode="json") for r in reviews]}


@app.post("/api/products/{product_id}/reviews")
def add_review_route(
    product_id: str,
    payload: Optional[dict] = Body(None),
    session: Optional[Session] = Depends(get_session),
    db=Depends(get_db),
):
    add_review(db, normalize_product_id(product_id), payload, authenticated=session is not None)
    return PlainTextResponse("Review added successfully", status_code=201)


@app.put("/api/products/{product_id}/reviews/{review_id}")
def update_review_route(
    product_id: str,
    review_id: str,
    payload: Optional[dict] = Body(None),
    session: Optional[Session] = Depends(get_session),
    db=Depends(get_db),
):
    update_review(db, normalize_product_id(product_id), review_id, payload, authenticated=session is not None)
    return {"ok": True}


@app.delete("/api/products/{product_id}/reviews/{review_id}")
def delete_review_route(
    product_id: str,
    review_id: str,
    session: Optional[Session] = Depends(get_session),
    db=Depends(get_db),
):
    delete_review(db, normalize_product_id(product_id), review_id, authenticated=session is not None)
    return {"ok": True}


# ----------------------- Seed Demo Data -----------------------
DEMO_PRODUCTS = [
    {
        "title": "Apple AirPods Pro",
        "description": "Active noise cancellation with transparency mode.",
        "category": "electronics",
        "price": 249.0,
        "rating": 4.7,
        "images": ["https://images.unsplash.com/photo-1600294037681-c80b4cb5b434"],
        "stock": 40,
        "tags": ["audio", "wireless"],
    },
    {
        "title": "Apple Watch Series 9",
        "description": "Fitness tracking and notifications on your wrist.",
        "category": "electronics",
        "price": 399.0,
        "rating": 4.6,
        "images": ["https://images.unsplash.com/photo-1546868871-7041f2a55e12"],
        "stock": 25,
        "tags": ["wearable"],
    },
    {
        "title": "Essence Mascara Lash Princess",
        "description": "Volumizing and lengthening mascara.",
        "category": "beauty",
        "price": 9.99,
        "rating": 4.2,
        "images": ["https://images.unsplash.com/photo-1631214540242-3cd8c4b0b3b8"],
        "stock": 99,
        "tags": ["mascara"],
    },
    {
        "title": "Lenovo ThinkPad X1",
        "description": "Business-class laptop with a legendary keyboard.",
        "category": "laptops",
        "price": 1199.0,
        "rating": 4.5,
        "images": ["https://images.unsplash.com/photo-1517336714731-489689fd1ca8"],
        "stock": 10,
        "tags": ["laptop", "business"],
    },
    {
        "title": "Mechanical Keyboard",
        "description": "Hot-swappable RGB keyboard.",
        "category": "electronics",
        "price": 79.99,
        "rating": 4.3,
        "images": ["https://images.unsplash.com/photo-1516382799247-87df95d790b5"],
        "stock": 30,
        "tags": ["keyboard"],
    },
    {
        "title": "Wooden Bathroom Sink",
        "description": "Solid wood vanity with a ceramic basin.",
        "category": "furniture",
        "price": 799.99,
        "rating": 3.9,
        "images": [],
        "stock": 5,
        "tags": ["bathroom"],
    },
]


@app.post("/seed")
def seed(db=Depends(get_db)):
    if db[config.PRODUCTS].count_documents({}) > 0:
        return {"seeded": False, "message": "Products already exist"}
    for index, data in enumerate(DEMO_PRODUCTS, start=1):
        product = Product(**data)
        create_document(
            config.PRODUCTS,
            product.model_dump(exclude={"id", "reviews"}),
            database=db,
            doc_id=f"{index:03d}",
        )
    return {"seeded": True, "products": db[config.PRODUCTS].count_documents({})}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
