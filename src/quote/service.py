"""
Quote service: consolida os itens do carrinho da Yampi e cota com as
transportadoras configuradas (hoje só Braspress).

Falha de transportadora nunca derruba a cotação: a Yampi recebe as opções que
deram certo, possivelmente nenhuma.
"""

from typing import Optional, Sequence

from aws_lambda_powertools import Logger

from shared.braspress import BraspressCarrier
from shared.carriers import AggregatedShipment, Carrier, CubicDimension, QuoteOption, collect_quotes
from shared.config import Settings

from quote.schemas import YampiQuoteRequest

logger = Logger(service="quote")

CM_PER_M = 100


def aggregate_shipment(request: YampiQuoteRequest) -> AggregatedShipment:
    """Peso total = Σ peso × qtd; volumes = Σ qtd; cubagem por item em metros."""
    peso_total = 0.0
    volumes_total = 0
    cubagem = []
    for sku in request.skus:
        peso_total += sku.weight * sku.quantity
        volumes_total += sku.quantity
        cubagem.append(
            CubicDimension(
                comprimento=sku.length / CM_PER_M,
                largura=sku.width / CM_PER_M,
                altura=sku.height / CM_PER_M,
                volumes=sku.quantity,
            )
        )
    return AggregatedShipment(
        cep_destino=request.zipcode,
        documento_destino=request.documento_destino,
        valor_declarado=request.amount,
        peso_total=peso_total,
        volumes_total=volumes_total,
        cubagem=tuple(cubagem),
    )


class QuoteService:
    def __init__(self, settings: Settings, carriers: Optional[Sequence[Carrier]] = None):
        self.settings = settings
        self.carriers = list(carriers) if carriers is not None else [BraspressCarrier(settings)]

    def quote(self, request: YampiQuoteRequest) -> list[QuoteOption]:
        shipment = aggregate_shipment(request)
        logger.info(
            "Carga consolidada",
            extra={
                "cep_destino": shipment.cep_destino,
                "peso_total": shipment.peso_total,
                "volumes_total": shipment.volumes_total,
                "itens": len(shipment.cubagem),
            },
        )
        if not shipment.cep_destino:
            logger.warning("Webhook sem CEP de destino; cotando mesmo assim")
        return collect_quotes(self.carriers, shipment)
