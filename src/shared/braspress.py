"""
Braspress API client: monta a cotação, chama /v1/cotacao/calcular/json e
interpreta a resposta.

A resposta da Braspress muda de formato entre versões/ambientes; os matchers
abaixo são testados em ordem e o primeiro que reconhece a resposta decide.
"""

import base64
import json
import math
import ssl
import urllib.error
import urllib.request
from typing import Any, Callable, NamedTuple, Optional

from aws_lambda_powertools import Logger

from shared.carriers import AggregatedShipment, Carrier, CarrierAPIError, QuoteOption
from shared.config import Settings, only_digits

logger = Logger(service="braspress")

CARRIER_NAME = "Braspress"
SERVICE_CODE = "Braspress_Standard"
QUOTE_ID = "braspress_cotacao"
MODAL_RODOVIARIO = "R"
TIPO_FRETE_CIF = "1"

ERROR_KEYS = ("error", "erro", "errors", "erros", "mensagemErro")
FLAT_PRICE_KEYS = ("totalFrete", "valorTotalFrete", "valorFrete")
FLAT_DAYS_KEYS = ("prazo", "prazoEntrega")


class ShapeMatch(NamedTuple):
    price: Optional[float] = None
    days: int = 0
    error: Any = None


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_days(value: Any) -> int:
    number = _to_float(value)
    if number is None or number < 0:
        return 0
    return int(number)


def _first_present(body: dict, keys: tuple) -> Any:
    for key in keys:
        if body.get(key) not in (None, ""):
            return body[key]
    return None


def match_nested_success(body: dict) -> Optional[ShapeMatch]:
    """{"cotacao": {"valorTotalFrete": 50, "prazoEntrega": 5}}"""
    cotacao = body.get("cotacao")
    if not isinstance(cotacao, dict):
        return None
    price = _to_float(cotacao.get("valorTotalFrete"))
    if price is None:
        return None
    return ShapeMatch(price=price, days=_to_days(cotacao.get("prazoEntrega")))


def match_error(body: dict) -> Optional[ShapeMatch]:
    """{"error": ...} / {"erro": ...} / {"errors": [...]}"""
    for key in ERROR_KEYS:
        if body.get(key):
            return ShapeMatch(error=body[key])
    return None


def match_flat_success(body: dict) -> Optional[ShapeMatch]:
    """{"totalFrete": 40, "prazo": 3}"""
    price = _to_float(_first_present(body, FLAT_PRICE_KEYS))
    if price is None:
        return None
    return ShapeMatch(price=price, days=_to_days(_first_present(body, FLAT_DAYS_KEYS)))


RESPONSE_MATCHERS: tuple[Callable[[dict], Optional[ShapeMatch]], ...] = (
    match_nested_success,
    match_error,
    match_flat_success,
)


def interpret_response(body: Any) -> Optional[tuple[float, int]]:
    """
    Extrai (preço, prazo em dias) da resposta da Braspress.

    Returns:
        Tupla (price, days) ou None quando a resposta é erro ou formato desconhecido.
    """
    if isinstance(body, dict):
        for matcher in RESPONSE_MATCHERS:
            match = matcher(body)
            if match is None:
                continue
            if match.error is not None:
                logger.error("Erro retornado pela API da Braspress", extra={"erro_braspress": match.error})
                return None
            return match.price, match.days
    logger.warning(
        "Resposta da Braspress não contém dados de frete esperados",
        extra={"resposta_braspress": body},
    )
    return None


def basic_auth_header(user: str, password: str) -> str:
    token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def _ssl_context(verify: bool) -> ssl.SSLContext:
    context = ssl.create_default_context()
    if not verify:
        # BRASPRESS_VERIFY_SSL=false: aceita certificado inválido (risco de MITM).
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class BraspressCarrier(Carrier):
    """Cotação rodoviária Braspress com autenticação Basic."""

    name = CARRIER_NAME

    def __init__(self, settings: Settings):
        self.settings = settings

    def build_request(self, shipment: AggregatedShipment) -> dict[str, Any]:
        return {
            "cnpjRemetente": only_digits(self.settings.braspress_cnpj),
            "cnpjDestinatario": only_digits(shipment.documento_destino),
            "modal": MODAL_RODOVIARIO,
            "tipoFrete": TIPO_FRETE_CIF,
            "cepOrigem": only_digits(self.settings.cep_origem),
            "cepDestino": only_digits(shipment.cep_destino),
            "vlrMercadoria": shipment.valor_declarado,
            "peso": shipment.peso_total,
            "volumes": shipment.volumes_total,
            "cubagem": [
                {
                    "comprimento": item.comprimento,
                    "largura": item.largura,
                    "altura": item.altura,
                    "volumes": item.volumes,
                }
                for item in shipment.cubagem
            ],
        }

    def call(self, payload: dict[str, Any]) -> Any:
        """
        POST do payload na API de cotação.

        Raises:
            CarrierAPIError: On connection/timeout, non-2xx status or invalid JSON.
        """
        logger.info("Payload Braspress enviado", extra={"payload_braspress": payload})
        if not self.settings.braspress_verify_ssl:
            logger.warning("Validação TLS da Braspress desativada (BRASPRESS_VERIFY_SSL=false)")

        req = urllib.request.Request(
            self.settings.braspress_api_url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Authorization": basic_auth_header(
                    self.settings.braspress_user, self.settings.braspress_password
                ),
            },
        )

        try:
            with urllib.request.urlopen(
                req,
                timeout=self.settings.braspress_timeout_sec,
                context=_ssl_context(self.settings.braspress_verify_ssl),
            ) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
                if not 200 <= resp.status < 300:
                    logger.warning("Braspress API status %s: %s", resp.status, raw[:500])
                    raise CarrierAPIError(f"API Braspress retornou status {resp.status}")
        except urllib.error.HTTPError as e:
            raw = e.read().decode("utf-8", errors="replace") if e.fp else ""
            logger.warning("Braspress HTTP error %s: %s", e.code, raw[:500])
            raise CarrierAPIError(f"API Braspress retornou erro HTTP {e.code}") from e
        except urllib.error.URLError as e:
            reason = getattr(e, "reason", None)
            if isinstance(reason, TimeoutError) or (reason and "timed out" in str(reason).lower()):
                raise CarrierAPIError("Timeout ao conectar na API Braspress") from e
            raise CarrierAPIError("Falha de conexão com a API Braspress") from e
        except TimeoutError as e:
            raise CarrierAPIError("Timeout ao conectar na API Braspress") from e
        except OSError as e:
            raise CarrierAPIError("Falha de conexão com a API Braspress") from e

        try:
            body = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Resposta da Braspress não é JSON válido: %s", raw[:300])
            raise CarrierAPIError("Resposta inválida da API Braspress") from e

        logger.info("Resposta Braspress recebida", extra={"resposta_braspress": body})
        return body

    def to_option(self, body: Any) -> Optional[QuoteOption]:
        result = interpret_response(body)
        if result is None:
            return None
        price, days = result
        return QuoteOption(
            name=CARRIER_NAME,
            service=SERVICE_CODE,
            price=price,
            days=days,
            quote_id=QUOTE_ID,
        )
