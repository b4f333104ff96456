"""Tests for errors.py - exception hierarchy and user-facing messages."""

import pytest

from etnopapers.errors import (
    CancelledError,
    ConfigurationError,
    EtnoPapersError,
    ParseError,
    ProviderCallError,
    ProviderConnectionError,
    ProviderTimeoutError,
    STATUS_CODE_MESSAGES,
    provider_error_message,
    status_code_message,
)


class TestEtnoPapersError:
    """Tests for the base exception."""

    def test_basic_message(self):
        exc = EtnoPapersError("Algo deu errado")
        assert str(exc) == "Algo deu errado"
        assert exc.context == {}

    def test_with_context(self):
        exc = EtnoPapersError("Falhou", context={"file": "a.pdf"})
        assert str(exc) == "Falhou [file=a.pdf]"

    def test_configuration_error_context(self):
        exc = ConfigurationError("Inválido", config_key="provider", expected_type="str", actual_value=3)
        assert exc.config_key == "provider"
        assert "key=provider" in str(exc)
        assert isinstance(exc, EtnoPapersError)

    def test_parse_error_truncates_response(self):
        exc = ParseError("bad", raw_response="x" * 300)
        assert exc.raw_response == "x" * 300
        assert len(exc.context["response"]) == 103


class TestStatusCodeMessages:
    """Tests for the status code table."""

    def test_rate_limited(self):
        assert status_code_message(429) == "Limite de requisições excedido. Aguarde um momento e tente novamente."

    def test_all_codes_mapped(self):
        for code in (400, 401, 403, 404, 429, 500, 502, 503, 504):
            assert status_code_message(code) == STATUS_CODE_MESSAGES[code]

    def test_unknown_code(self):
        assert status_code_message(418) == (
            "Erro da API: 418. Verifique sua chave de API e conexão de internet."
        )


class TestProviderErrorMessage:
    """Tests for mapping provider failures to user messages."""

    def test_none(self):
        assert provider_error_message(None) == "Erro desconhecido ao conectar com o provedor de IA"

    def test_status_code_wins(self):
        error = ProviderTimeoutError("slow")
        assert provider_error_message(error, 401) == STATUS_CODE_MESSAGES[401]

    def test_missing_key(self):
        assert provider_error_message(ConfigurationError("no key")) == (
            "A chave de API não foi configurada. Verifique as configurações."
        )

    def test_timeout(self):
        assert provider_error_message(ProviderTimeoutError("slow")) == (
            "Tempo limite excedido ao conectar com o provedor de IA"
        )

    def test_cancelled(self):
        assert provider_error_message(CancelledError()) == "A operação foi cancelada"

    @pytest.mark.parametrize("text,expected", [
        ("certificate verify failed", "Erro de certificado SSL ao conectar com o provedor de IA"),
        ("Connection refused", "Erro de conexão com o provedor de IA. Verifique sua conexão de internet."),
        ("host unreachable", "Erro ao conectar com o provedor de IA. Verifique sua conexão de internet."),
    ])
    def test_connection_messages(self, text, expected):
        assert provider_error_message(ProviderConnectionError(text)) == expected

    def test_generic(self):
        assert provider_error_message(ValueError("boom")) == "Erro ao extrair metadados. Tente novamente mais tarde."

    def test_pure(self):
        error = ProviderCallError("x", status_code=503)
        assert provider_error_message(error, 503) == provider_error_message(error, 503)
