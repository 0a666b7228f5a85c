"""
Handler do webhook de cotação de frete da Yampi (POST /cotacao).

Header: x-yampi-hmac-sha256 (HMAC-SHA256 base64 do corpo com YAMPI_SECRET_TOKEN)
POST body: { "zipcode": "01310-100", "amount": 150.0, "cart": {"customer": {"document": "..."}},
             "skus": [ { "weight": 2, "quantity": 3, "length": 10, "width": 20, "height": 30 } ] }
Response: { "quotes": [ { "name": "Braspress", "service": "Braspress_Standard", "price": 50.0,
                          "days": 5, "quote_id": "braspress_cotacao" } ] }
"""

import base64
import binascii
import json

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.parser import parse
from aws_lambda_powertools.utilities.typing import LambdaContext

from shared.config import get_settings
from shared.responses import http_response
from shared.signature import SIGNATURE_HEADER, SignatureError, get_header, verify_signature
from quote.schemas import YampiQuoteRequest
from quote.service import QuoteService

logger = Logger(service="quote")


@logger.inject_lambda_context
def lambda_handler(event: dict, context: LambdaContext) -> dict:
    method = event.get("requestContext", {}).get("http", {}).get("method")

    if method == "OPTIONS":
        return http_response(200, {})

    if method != "POST":
        return http_response(405, {"error": "Método não permitido. Use POST."})

    headers = event.get("headers") or {}
    logger.info("Headers recebidos", extra={"headers": headers})

    try:
        settings = get_settings()
    except Exception:
        logger.exception("Configuração inválida do middleware")
        return http_response(500, {"error": "Erro interno no servidor de cotação."})

    try:
        raw_body = _raw_body(event)
        verify_signature(
            raw_body,
            get_header(headers, SIGNATURE_HEADER),
            settings.yampi_secret_token,
            settings.signature_mode,
        )
    except SignatureError as e:
        return http_response(e.status_code, {"error": str(e)})

    try:
        body = json.loads(raw_body.decode("utf-8"))
        logger.info("Payload Yampi recebido", extra={"payload_yampi": body})
        payload = parse(event=body, model=YampiQuoteRequest)

        quotes = QuoteService(settings).quote(payload)
        response = {"quotes": [quote.model_dump() for quote in quotes]}
        logger.info("Resposta final enviada para Yampi", extra={"resposta_yampi": response})
        return http_response(200, response)
    except Exception:
        logger.exception("Erro geral no processamento do webhook")
        return http_response(500, {"error": "Erro interno no servidor de cotação."})


def _raw_body(event: dict) -> bytes:
    """Bytes do corpo como chegaram; API Gateway pode entregar em base64."""
    body = event.get("body")
    if body is None:
        return b""
    if isinstance(body, (dict, list)):
        return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body)
        except (binascii.Error, ValueError):
            logger.warning("Corpo marcado como base64 mas não decodificável")
            return str(body).encode("utf-8")
    return str(body).encode("utf-8")
