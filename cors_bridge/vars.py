import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "cors-bridge")
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8080"))

ALLOWED_ORIGIN = os.environ.get("ALLOWED_ORIGIN", "http://localhost:3000")
FIX_COOKIES = os.environ.get("FIX_COOKIES", "true").lower() == "true"
COOKIE_DOMAIN = os.environ.get("COOKIE_DOMAIN", ".example.com")

PROXY_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", "300"))  # 5 minutes default
LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
