"""DTOs do webhook de cotação da Yampi.

O payload vem de terceiros e pode chegar incompleto: nenhum campo aqui é
obrigatório e valores inválidos caem no default em vez de gerar 400.
"""

import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.config import only_digits

# Usado quando a Yampi não envia o documento do cliente.
DOCUMENTO_PADRAO = "00000000000"


def _number_or(value: Any, default: float) -> float:
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        number = float(str(value).replace(",", ".")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number < 0:
        return default
    return number


def _dict_or_none(value: Any) -> Optional[dict]:
    return value if isinstance(value, dict) else None


class YampiSku(BaseModel):
    """Item do carrinho: peso em kg, dimensões em cm."""

    model_config = ConfigDict(extra="ignore")

    weight: float = Field(default=0.0, description="Peso unitário em kg")
    quantity: int = Field(default=1, description="Quantidade")
    length: float = Field(default=0.0, description="Comprimento em cm")
    width: float = Field(default=0.0, description="Largura em cm")
    height: float = Field(default=0.0, description="Altura em cm")

    @field_validator("weight", "length", "width", "height", mode="before")
    @classmethod
    def coerce_measure(cls, v):
        return _number_or(v, 0.0)

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_quantity(cls, v):
        quantity = int(_number_or(v, 1))
        return quantity if quantity > 0 else 1


class YampiCustomer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    document: str = ""

    @field_validator("document", mode="before")
    @classmethod
    def clean_document(cls, v):
        return only_digits(v)


class YampiCart(BaseModel):
    model_config = ConfigDict(extra="ignore")

    customer: Optional[YampiCustomer] = None

    @field_validator("customer", mode="before")
    @classmethod
    def customer_must_be_object(cls, v):
        return _dict_or_none(v)


class YampiQuoteRequest(BaseModel):
    """Webhook de cotação: CEP, valor do carrinho, cliente e itens."""

    model_config = ConfigDict(extra="ignore")

    zipcode: str = Field(default="", description="CEP de destino (somente dígitos)")
    amount: float = Field(default=0.0, description="Valor declarado do carrinho em R$")
    cart: Optional[YampiCart] = None
    skus: List[YampiSku] = Field(default_factory=list)

    @field_validator("zipcode", mode="before")
    @classmethod
    def clean_zipcode(cls, v):
        return only_digits(v)

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return _number_or(v, 0.0)

    @field_validator("cart", mode="before")
    @classmethod
    def cart_must_be_object(cls, v):
        return _dict_or_none(v)

    @field_validator("skus", mode="before")
    @classmethod
    def skus_must_be_list(cls, v):
        if not isinstance(v, list):
            return []
        return [sku for sku in v if isinstance(sku, dict)]

    @property
    def documento_destino(self) -> str:
        document = self.cart.customer.document if self.cart and self.cart.customer else ""
        return document or DOCUMENTO_PADRAO
