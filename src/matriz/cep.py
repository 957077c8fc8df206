"""Brazilian postal code (CEP) lookup through ViaCEP."""

import logging
import re
from typing import Any

import httpx

logger = logging.getLogger(__name__)

CEP_PATTERN = re.compile(r"\d{8}")
INVALID_CEP_MESSAGE = "CEP inválido. Forneça 8 dígitos numéricos."


class InvalidCep(ValueError):
    """Raised when a CEP is not exactly 8 digits."""


class CepLookupError(Exception):
    """Raised when ViaCEP cannot answer."""


def validate_cep(cep: str | None) -> str:
    if not cep or not CEP_PATTERN.fullmatch(cep):
        raise InvalidCep(INVALID_CEP_MESSAGE)
    return cep


async def lookup_cep(
    client: httpx.AsyncClient,
    cep: str | None,
    base_url: str = "https://viacep.com.br",
    timeout: float = 15.0,
) -> Any:
    """Fetch address data for a CEP.

    Returns:
        ViaCEP's JSON response, unchanged

    Raises:
        InvalidCep: If the CEP is malformed
        CepLookupError: If the request fails or ViaCEP answers with an error status
    """
    cep = validate_cep(cep)
    url = f"{base_url.rstrip('/')}/ws/{cep}/json/"
    try:
        response = await client.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        raise CepLookupError(f"Erro na API ViaCEP: {e}") from e

    if not response.is_success:
        logger.warning(f"ViaCEP returned HTTP {response.status_code} for {cep}")
        raise CepLookupError(f"Erro na API ViaCEP: {response.reason_phrase}")

    try:
        return response.json()
    except ValueError as e:
        raise CepLookupError("Erro na API ViaCEP: resposta inválida") from e
