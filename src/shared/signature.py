"""
Validação da assinatura HMAC dos webhooks da Yampi (header x-yampi-hmac-sha256).

A Yampi assina o JSON serializado de forma compacta (sem espaços, chaves na
ordem recebida, acentos sem escape). No modo "canonical" o corpo é lido e
reserializado nesse formato antes do HMAC; no modo "raw" os bytes recebidos
são assinados diretamente.
"""

import base64
import hashlib
import hmac
import json
import math
import re
from decimal import Decimal
from typing import Any

from aws_lambda_powertools import Logger

logger = Logger(service="signature")

SIGNATURE_HEADER = "x-yampi-hmac-sha256"
# Fora de 1e-7 < |x| < 1e21 o JavaScript usa notação exponencial.
_MAX_PLAIN_EXPONENT = 21
_MIN_PLAIN_EXPONENT = -6
_MAX_SAFE_INTEGER = 2**53
_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


class SignatureError(Exception):
    """Base das falhas de validação; status_code é o HTTP devolvido à Yampi."""

    status_code = 401


class MissingCredentialsError(SignatureError):
    """Header de assinatura ou chave secreta ausente."""


class InvalidSignatureError(SignatureError):
    """Assinatura calculada não confere com a recebida."""


class MalformedBodyError(SignatureError):
    """Corpo não é JSON válido, impossível calcular a assinatura."""

    status_code = 500


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Constante JSON não suportada: {name}")


def js_number(value: float) -> str:
    """Formata um número como Number.prototype.toString do JavaScript."""
    if not math.isfinite(value):
        return "null"
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    normalized = Decimal(repr(abs(value))).normalize()
    _, digit_tuple, exponent = normalized.as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    k = len(digits)
    n = exponent + k
    if k <= n <= _MAX_PLAIN_EXPONENT:
        text = digits + "0" * (n - k)
    elif 0 < n <= _MAX_PLAIN_EXPONENT:
        text = f"{digits[:n]}.{digits[n:]}"
    elif _MIN_PLAIN_EXPONENT < n <= 0:
        text = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        text = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + text


def _js_string(value: str) -> str:
    # Surrogates soltos saem como \uXXXX, igual ao JSON.stringify.
    text = json.dumps(value, ensure_ascii=False)
    return _LONE_SURROGATE.sub(lambda m: f"\\u{ord(m.group()):04x}", text)


def _js_stringify(value: Any) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, str):
        return _js_string(value)
    if isinstance(value, int):
        if abs(value) <= _MAX_SAFE_INTEGER:
            return str(value)
        return js_number(float(value))
    if isinstance(value, float):
        return js_number(value)
    if isinstance(value, list):
        return "[" + ",".join(_js_stringify(item) for item in value) + "]"
    return "{" + ",".join(f"{_js_string(k)}:{_js_stringify(v)}" for k, v in value.items()) + "}"


def canonicalize(raw_body: bytes) -> str:
    """
    Reconstrói a string que a Yampi assinou a partir dos bytes recebidos.

    Raises:
        MalformedBodyError: Se o corpo não for UTF-8/JSON válido.
    """
    try:
        parsed = json.loads(raw_body.decode("utf-8"), parse_constant=_reject_constant)
        return _js_stringify(parsed)
    except (ValueError, RecursionError) as e:
        raise MalformedBodyError("Corpo da requisição não é JSON válido") from e


def compute_signature(message: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(
    raw_body: bytes,
    signature: str | None,
    secret: str | None,
    mode: str = "canonical",
) -> str:
    """
    Confere a assinatura do webhook.

    Args:
        raw_body: Corpo exatamente como recebido.
        signature: Valor do header x-yampi-hmac-sha256.
        secret: YAMPI_SECRET_TOKEN.
        mode: "canonical" (reserializa o JSON) ou "raw" (bytes recebidos).

    Returns:
        A assinatura calculada.

    Raises:
        MissingCredentialsError: Header ou chave ausente.
        MalformedBodyError: Corpo inválido no modo canonical.
        InvalidSignatureError: Assinatura divergente.
    """
    if not signature or not secret:
        logger.error("Assinatura Yampi ou chave secreta ausente")
        raise MissingCredentialsError("Acesso não autorizado.")

    if mode == "raw":
        message = raw_body
    else:
        message = canonicalize(raw_body).encode("utf-8")

    calculated = compute_signature(message, secret)
    if not hmac.compare_digest(calculated.encode("ascii"), signature.encode("utf-8")):
        logger.error(
            "Assinatura Yampi inválida",
            extra={"assinatura_calculada": calculated, "assinatura_recebida": signature, "modo": mode},
        )
        raise InvalidSignatureError("Acesso não autorizado. Assinatura Yampi inválida.")

    logger.info("Validação de segurança Yampi: sucesso")
    return calculated


def get_header(headers: dict | None, name: str = SIGNATURE_HEADER) -> str | None:
    """Busca um header ignorando maiúsculas/minúsculas (API Gateway pode variar)."""
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if str(key).lower() == wanted:
            return value
    return None
