import os
from dotenv import load_dotenv

# Load .env from the backend directory
load_dotenv(os.path.join(os.path.dirname(__file__), "..", "..", ".env"))

SECRET_KEY: str = os.getenv("SECRET_KEY", "curriculum-dev-secret-change-in-prod")
ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))  # 24h

# Roles allowed to mutate the curriculum
EDITOR_ROLES = {"admin", "editor"}

# Database: stored in backend/data/
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
BACKEND_DIR = os.path.abspath(os.path.join(BASE_DIR, "..", ".."))
MIGRATIONS_DIR: str = os.path.join(BACKEND_DIR, "migrations")

DATABASE_PATH: str = os.getenv(
    "DATABASE_PATH",
    os.path.join(BACKEND_DIR, "data", "curriculum.db"),
)

# Store selection: "sqlite" (local file) or "supabase" (hosted PostgREST)
STORE_BACKEND: str = os.getenv("STORE_BACKEND", "sqlite").strip().lower()

# Supabase Config
SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY: str = os.getenv("SUPABASE_SERVICE_KEY", "")
SUPABASE_SCHEMA: str = os.getenv("SUPABASE_SCHEMA", "public")
SUPABASE_TIMEOUT: float = float(os.getenv("SUPABASE_TIMEOUT", "15"))

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "console")  # console | json

# Show underlying messages of server-side failures to API callers
EXPOSE_ERROR_DETAILS: bool = os.getenv("EXPOSE_ERROR_DETAILS", "false").lower() in {"1", "true", "yes"}

# Engine limits
MAX_BATCH_SIZE: int = 50
MAX_CODE_LENGTH: int = 64
MAX_SLUG_LENGTH: int = 90
MAX_GENERATION_ATTEMPTS: int = 10_000
MAX_TITLE_LENGTH: int = 240
MAX_SUMMARY_LENGTH: int = 1000
