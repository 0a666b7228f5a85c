"""Health check (GET /): confirma que a Lambda do middleware está de pé."""

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext

from shared.responses import http_response, text_response

logger = Logger(service="health")

HEALTH_MESSAGE = "Middleware da Braspress rodando"


@logger.inject_lambda_context
def lambda_handler(event: dict, context: LambdaContext) -> dict:
    method = event.get("requestContext", {}).get("http", {}).get("method")
    if method not in ("GET", "HEAD"):
        return http_response(405, {"error": "Método não permitido. Use GET."})
    return text_response(200, HEALTH_MESSAGE)
