"""
Contrato comum das transportadoras e agregação da carga.

Cada transportadora é uma tentativa isolada: monta o próprio payload, chama a
própria API e devolve no máximo uma opção de frete. Falha de uma não afeta as
demais.
"""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Sequence

from aws_lambda_powertools import Logger
from pydantic import BaseModel, ConfigDict, Field

logger = Logger(service="carriers")

MAX_WORKERS = 8


class CarrierAPIError(Exception):
    """Raised when a carrier API returns an error or is unreachable."""

    pass


class CubicDimension(BaseModel):
    """Dimensões de um item em metros e quantas unidades dele seguem."""

    model_config = ConfigDict(frozen=True)

    comprimento: float
    largura: float
    altura: float
    volumes: int


class AggregatedShipment(BaseModel):
    """Carga consolidada de um pedido de cotação (vive só durante a requisição)."""

    model_config = ConfigDict(frozen=True)

    cep_destino: str = ""
    documento_destino: str = ""
    valor_declarado: float = 0.0
    peso_total: float = 0.0
    volumes_total: int = 0
    cubagem: tuple[CubicDimension, ...] = ()


class QuoteOption(BaseModel):
    """Opção de frete no formato esperado pela Yampi."""

    name: str
    service: str
    price: float = Field(allow_inf_nan=False)
    days: int = Field(default=0, ge=0)
    quote_id: str


class Carrier(ABC):
    """Uma integração de transportadora."""

    name: str = "carrier"

    @abstractmethod
    def build_request(self, shipment: AggregatedShipment) -> dict[str, Any]:
        ...

    @abstractmethod
    def call(self, payload: dict[str, Any]) -> Any:
        """Envia o payload; levanta CarrierAPIError em falha de rede/HTTP/JSON."""

    @abstractmethod
    def to_option(self, body: Any) -> Optional[QuoteOption]:
        """Interpreta a resposta; None quando não há cotação aproveitável."""

    def quote(self, shipment: AggregatedShipment) -> Optional[QuoteOption]:
        payload = self.build_request(shipment)
        body = self.call(payload)
        return self.to_option(body)


def _attempt(carrier: Carrier, shipment: AggregatedShipment) -> Optional[QuoteOption]:
    try:
        return carrier.quote(shipment)
    except CarrierAPIError as e:
        logger.error("Erro na requisição %s: %s", carrier.name, e, extra={"carrier": carrier.name})
    except Exception:
        logger.exception("Erro inesperado ao cotar com %s", carrier.name, extra={"carrier": carrier.name})
    return None


def collect_quotes(carriers: Sequence[Carrier], shipment: AggregatedShipment) -> list[QuoteOption]:
    """
    Cota com todas as transportadoras e concatena as opções obtidas.

    Uma transportadora roda direto; várias rodam em paralelo. A ordem do
    resultado segue a ordem de `carriers`.
    """
    if not carriers:
        return []
    if len(carriers) == 1:
        results = [_attempt(carriers[0], shipment)]
    else:
        with ThreadPoolExecutor(max_workers=min(MAX_WORKERS, len(carriers))) as executor:
            results = list(executor.map(lambda c: _attempt(c, shipment), carriers))
    return [option for option in results if option is not None]
