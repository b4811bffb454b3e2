import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("SHOPIFY_API_SECRET", "test_secret")
os.environ.setdefault("SHOPIFY_ADMIN_TOKEN", "shpat_test_token")
os.environ.setdefault("SHOPIFY_ADMIN_API_VERSION", "2025-07")
os.environ.setdefault("PROXY_CORS_ORIGINS", "https://example-shop.myshopify.com")
