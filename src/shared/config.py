"""
Configuração do middleware, lida do ambiente uma vez por container.

Expects env: YAMPI_SECRET_TOKEN, BRASPRESS_CNPJ, BRASPRESS_USER, BRASPRESS_PASSWORD;
optional CEP_ORIGEM, BRASPRESS_API_URL, BRASPRESS_VERIFY_SSL, BRASPRESS_TIMEOUT_SEC,
YAMPI_SIGNATURE_MODE.
"""

import os
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_CEP_ORIGEM = "30720404"
DEFAULT_BRASPRESS_API_URL = "https://api.braspress.com/v1/cotacao/calcular/json"
DEFAULT_TIMEOUT_SEC = 15.0


def only_digits(value) -> str:
    """Remove tudo que não for dígito (CEP, CPF, CNPJ)."""
    if value is None:
        return ""
    return "".join(c for c in str(value) if c.isdigit())


class Settings(BaseModel):
    """Valores somente-leitura usados pelo verificador e pelo serviço de cotação."""

    yampi_secret_token: Optional[str] = Field(default=None, description="Chave HMAC compartilhada com a Yampi")
    signature_mode: Literal["canonical", "raw"] = Field(default="canonical")
    cep_origem: str = Field(default=DEFAULT_CEP_ORIGEM, description="CEP de origem (8 dígitos)")
    braspress_cnpj: str = Field(default="", description="CNPJ do remetente")
    braspress_user: str = ""
    braspress_password: str = ""
    braspress_api_url: str = DEFAULT_BRASPRESS_API_URL
    braspress_verify_ssl: bool = True
    braspress_timeout_sec: float = Field(default=DEFAULT_TIMEOUT_SEC, gt=0)

    @field_validator("cep_origem", "braspress_cnpj", mode="before")
    @classmethod
    def strip_non_digits(cls, v):
        return only_digits(v)

    @field_validator("yampi_secret_token", mode="before")
    @classmethod
    def empty_secret_is_none(cls, v):
        if v is None or not str(v).strip():
            return None
        return str(v)

    @field_validator("signature_mode", mode="before")
    @classmethod
    def normalize_mode(cls, v):
        return str(v or "canonical").strip().lower()

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        values = {
            "yampi_secret_token": env.get("YAMPI_SECRET_TOKEN"),
            "signature_mode": env.get("YAMPI_SIGNATURE_MODE"),
            "cep_origem": env.get("CEP_ORIGEM") or DEFAULT_CEP_ORIGEM,
            "braspress_cnpj": env.get("BRASPRESS_CNPJ"),
            "braspress_user": env.get("BRASPRESS_USER") or "",
            "braspress_password": env.get("BRASPRESS_PASSWORD") or "",
            "braspress_api_url": env.get("BRASPRESS_API_URL") or DEFAULT_BRASPRESS_API_URL,
            "braspress_verify_ssl": env.get("BRASPRESS_VERIFY_SSL") or "true",
            "braspress_timeout_sec": env.get("BRASPRESS_TIMEOUT_SEC") or DEFAULT_TIMEOUT_SEC,
        }
        return cls(**values)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Descarta o cache (usado pelos testes ao alterar variáveis de ambiente)."""
    global _settings
    _settings = None
