import json

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Yampi-Hmac-Sha256",
}


def http_response(status_code: int, body: dict) -> dict:
    headers = {"Content-Type": "application/json", **CORS_HEADERS}
    return {
        "statusCode": status_code,
        "headers": headers,
        "body": json.dumps(body, ensure_ascii=False),
    }


def text_response(status_code: int, text: str) -> dict:
    """Resposta texto puro (health check)."""
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "text/plain; charset=utf-8", **CORS_HEADERS},
        "body": text,
    }
