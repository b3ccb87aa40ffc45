import os

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", 7))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR")

PORT = int(os.getenv("PORT", 8000))

# Listing
PAGE_SIZE = 20
# Upper bound for prefix search: titles starting with term sort between term and term + sentinel
SEARCH_SENTINEL = "\uf8ff"

# Collections
PRODUCTS = "products"
REVIEWS = "reviews"
USERS = "user"
REVOKED_TOKENS = "revoked_token"
