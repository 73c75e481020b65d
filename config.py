# config.py
import os
from typing import List, Tuple

from dotenv import load_dotenv

from errors import ConfigurationError

load_dotenv()

DEFAULT_OCR_MODELS = ["gpt-4o", "gpt-4o-mini", "gpt-4.1-mini"]

# values shipped in .env.example; treated the same as an unset variable
PLACEHOLDERS = {
    "OPENAI_API_KEY": "your_openai_api_key_here",
    "CLOUDINARY_CLOUD_NAME": "your_cloud_name_here",
    "CLOUDINARY_UPLOAD_PRESET": "your_upload_preset_here",
    "GOOGLE_SCRIPT_URL": "your_google_script_url_here",
}


def _require(name: str, hint: str = "") -> str:
    value = (os.getenv(name) or "").strip()
    if not value or value == PLACEHOLDERS.get(name):
        message = f"{name} is not configured. Please add it to your .env file."
        if hint:
            message += f"\n{hint}"
        raise ConfigurationError(message)
    return value


def openai_api_key() -> str:
    return _require(
        "OPENAI_API_KEY",
        "Get your API key from: https://platform.openai.com/api-keys",
    )


def ocr_models() -> List[str]:
    raw = os.getenv("OCR_MODELS", "")
    models = [m.strip() for m in raw.split(",") if m.strip()]
    return models or list(DEFAULT_OCR_MODELS)


def cloudinary_settings() -> Tuple[str, str]:
    """Return (cloud name, unsigned upload preset)."""
    return _require("CLOUDINARY_CLOUD_NAME"), _require("CLOUDINARY_UPLOAD_PRESET")


def google_script_url() -> str:
    return _require(
        "GOOGLE_SCRIPT_URL",
        "Deploy the Apps Script web app and copy its URL.",
    )


def admin_credentials() -> Tuple[str, str]:
    return _require("ADMIN_USERNAME"), _require("ADMIN_PASSWORD")


def log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()
