"""
Testes do relogio de cotas e da tabela de planos.
"""

from datetime import datetime, timedelta, timezone

from aegis.acesso.planos import LIMITE_ILIMITADO, Plano, limite_diario, max_chaves
from aegis.acesso.relogio import (
    cota_disponivel,
    expirado,
    minutos_restantes,
    normalizar_contador,
    proximo_reset,
)

UTC = timezone.utc


class TestProximoReset:

    def test_meia_noite_do_dia_seguinte(self):
        agora = datetime(2024, 3, 10, 15, 42, 7, tzinfo=UTC)
        assert proximo_reset(agora) == datetime(2024, 3, 11, tzinfo=UTC)

    def test_exatamente_meia_noite_avanca_um_dia(self):
        agora = datetime(2024, 3, 10, tzinfo=UTC)
        assert proximo_reset(agora) == datetime(2024, 3, 11, tzinfo=UTC)

    def test_virada_de_ano(self):
        agora = datetime(2023, 12, 31, 23, 59, tzinfo=UTC)
        assert proximo_reset(agora) == datetime(2024, 1, 1, tzinfo=UTC)

    def test_converte_outro_fuso_para_utc(self):
        sao_paulo = timezone(timedelta(hours=-3))
        agora = datetime(2024, 3, 10, 22, 0, tzinfo=sao_paulo)  # 01:00 UTC do dia 11
        assert proximo_reset(agora) == datetime(2024, 3, 12, tzinfo=UTC)


class TestNormalizarContador:

    def test_antes_do_reset_mantem(self):
        reset = datetime(2024, 3, 11, tzinfo=UTC)
        agora = datetime(2024, 3, 10, 20, tzinfo=UTC)
        assert normalizar_contador(42, reset, agora) == (42, reset)

    def test_no_instante_do_reset_zera(self):
        reset = datetime(2024, 3, 11, tzinfo=UTC)
        assert normalizar_contador(42, reset, reset) == (0, datetime(2024, 3, 12, tzinfo=UTC))

    def test_varios_dias_depois_avanca_um_passo(self):
        reset = datetime(2024, 3, 1, tzinfo=UTC)
        agora = datetime(2024, 3, 20, 8, 30, tzinfo=UTC)
        requisicoes, novo_reset = normalizar_contador(99, reset, agora)
        assert requisicoes == 0
        assert novo_reset == datetime(2024, 3, 21, tzinfo=UTC)


class TestCota:

    def test_limite_inclusivo_free(self):
        assert cota_disponivel(99, Plano.FREE) is True
        assert cota_disponivel(100, Plano.FREE) is False

    def test_limites_por_plano(self):
        assert limite_diario(Plano.FREE) == 100
        assert limite_diario(Plano.STARTER) == 1000
        assert limite_diario(Plano.PRO) == 10000
        assert limite_diario(Plano.ENTERPRISE) == LIMITE_ILIMITADO == 2**31 - 1

    def test_plano_desconhecido_usa_free(self):
        assert limite_diario(42) == 100

    def test_maximo_de_chaves(self):
        assert max_chaves(Plano.FREE) == 5
        assert max_chaves(Plano.STARTER) == 10
        assert max_chaves(Plano.ENTERPRISE) == 10


class TestExpiracao:

    def test_sem_data_nunca_expira(self):
        assert expirado(None, datetime.now(UTC)) is False

    def test_expira_no_instante_limite(self):
        momento = datetime(2024, 3, 10, 12, tzinfo=UTC)
        assert expirado(momento, momento) is True
        assert expirado(momento, momento - timedelta(seconds=1)) is False

    def test_minutos_restantes(self):
        agora = datetime(2024, 3, 10, 12, tzinfo=UTC)
        assert minutos_restantes(agora + timedelta(minutes=12, seconds=30), agora) == 12.5
        assert minutos_restantes(agora - timedelta(minutes=5), agora) == 0.0
