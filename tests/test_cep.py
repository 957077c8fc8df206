"""Tests for CEP lookup."""

import httpx
import pytest

from matriz.cep import CepLookupError, InvalidCep, lookup_cep, validate_cep


@pytest.mark.parametrize("cep", ["01310100", "00000000"])
def test_validate_cep_accepts_digits(cep):
    assert validate_cep(cep) == cep


@pytest.mark.parametrize("cep", [None, "", "0131010", "013101000", "01310-100", "abcdefgh", "01310100\n"])
def test_validate_cep_rejects(cep):
    with pytest.raises(InvalidCep, match="CEP inválido"):
        validate_cep(cep)


@pytest.mark.asyncio
async def test_lookup_custom_base_url(mock_http):
    route = mock_http.get("https://cep.internal/ws/01310100/json/").mock(
        return_value=httpx.Response(200, json={"uf": "SP"})
    )

    async with httpx.AsyncClient() as client:
        data = await lookup_cep(client, "01310100", base_url="https://cep.internal/")

    assert data == {"uf": "SP"}
    assert route.called


@pytest.mark.asyncio
async def test_lookup_network_error(mock_http):
    mock_http.get("https://viacep.com.br/ws/01310100/json/").mock(
        side_effect=httpx.ConnectTimeout("timed out")
    )

    async with httpx.AsyncClient() as client:
        with pytest.raises(CepLookupError, match="Erro na API ViaCEP"):
            await lookup_cep(client, "01310100")


@pytest.mark.asyncio
async def test_lookup_invalid_json(mock_http):
    mock_http.get("https://viacep.com.br/ws/01310100/json/").mock(
        return_value=httpx.Response(200, text="<html>")
    )

    async with httpx.AsyncClient() as client:
        with pytest.raises(CepLookupError, match="resposta inválida"):
            await lookup_cep(client, "01310100")
