import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

# Garante que src esteja no path (layout da Lambda: shared/, quote/, health/ na raiz do pacote)
_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(_root / "src"))

from shared.config import Settings, reset_settings  # noqa: E402

SECRET = "segredo-yampi-teste"


@dataclass
class FakeLambdaContext:
    function_name: str = "yampi-braspress-cotacao"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = "arn:aws:lambda:sa-east-1:123456789012:function:yampi-braspress-cotacao"
    aws_request_id: str = "52fdfc07-2182-154f-163f-5f0f9a621d72"


@pytest.fixture
def lambda_context() -> FakeLambdaContext:
    return FakeLambdaContext()


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Cada teste lê o ambiente de novo (get_settings guarda cache por container)."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        yampi_secret_token=SECRET,
        cep_origem="30720-404",
        braspress_cnpj="12.345.678/0001-90",
        braspress_user="usuario",
        braspress_password="senha",
        braspress_api_url="https://api.braspress.test/v1/cotacao/calcular/json",
        braspress_timeout_sec=5,
    )
