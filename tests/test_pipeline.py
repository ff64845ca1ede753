"""
tests/test_pipeline.py
───────────────────────
Tests de punta a punta de chat/pipeline.py: control de acceso, orden de
las etapas, borde de errores, serialización por usuario, audio y
comprobantes. La IA se mockea; la base es la de memoria (`fake_db`).
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from chat import pipeline
from chat.commands.auth import RESTRICTED_PROMPT
from chat.commands.system import HELP_MENU, HELP_OPTIONS
from chat.commands.transaction import NOT_UNDERSTOOD
from chat.context import Handled, NOT_HANDLED
from chat.pipeline import (
    GENERIC_ERROR,
    identify_user,
    process_receipt_image,
    process_user_message,
    process_voice_message,
)
from database.models import AccessKey
from services import billing_cycle

PARSED_EXPENSE = {"amount": 50.0, "type": "EXPENSE", "category": "ocio", "description": "pizza"}


async def _send(db, user, text, replies):
    """Manda un mensaje con el usuario tal como está ahora en la base."""
    return await process_user_message(db.UserRepo.get_by_id(user.id), text, replies)


# ─────────────────────────────────────────────
#  Identidad
# ─────────────────────────────────────────────

class TestIdentifyUser:
    def test_creates_user_once(self, fake_db):
        first = identify_user("tg_123", "Ana")
        second = identify_user("tg_123", "Ana")
        assert first.id == second.id
        assert first.streak == 1
        assert len(fake_db.users) == 1

    def test_same_number_distinct_per_transport(self, fake_db):
        assert identify_user("tg_5511").id != identify_user("web_5511").id


# ─────────────────────────────────────────────
#  Control de acceso
# ─────────────────────────────────────────────

class TestAuthGate:
    @pytest.mark.asyncio
    async def test_unauthorized_gets_restricted_prompt(self, fake_db, replies):
        user = fake_db.add_user("Ana", authorized=False)
        result = await _send(fake_db, user, "saldo", replies)
        assert result == Handled("auth")
        assert replies.texts == [RESTRICTED_PROMPT]

    @pytest.mark.asyncio
    async def test_key_activates_and_cannot_be_reused(self, fake_db, replies):
        fake_db.access_keys["AB12CD34"] = AccessKey(key="AB12CD34", id="key-1")
        ana = fake_db.add_user("Ana", authorized=False)
        beto = fake_db.add_user("Beto", authorized=False)

        await _send(fake_db, ana, "ab12cd34", replies)
        assert "Acceso habilitado" in replies.last
        assert fake_db.users[ana.id].is_authorized

        await _send(fake_db, beto, "AB12CD34", replies)
        assert replies.last == "❌ Esta clave ya fue utilizada."
        assert not fake_db.users[beto.id].is_authorized

    @pytest.mark.asyncio
    async def test_unknown_key_gets_restricted_prompt(self, fake_db, replies):
        user = fake_db.add_user("Ana", authorized=False)
        await _send(fake_db, user, "NOEXISTE", replies)
        assert replies.last == RESTRICTED_PROMPT

    @pytest.mark.asyncio
    async def test_email_joins_waitlist(self, fake_db, replies):
        user = fake_db.add_user("Ana", authorized=False)
        await _send(fake_db, user, "ana@mail.com", replies)
        assert "lista de espera" in replies.last
        assert fake_db.users[user.id].email == "ana@mail.com"

    @pytest.mark.asyncio
    async def test_gate_runs_before_active_wizard(self, fake_db, replies):
        from services.session_service import session_store

        user = fake_db.add_user("Ana", authorized=False)
        session_store.set(user.id, "PLAN_CREATE_CATEGORY")
        await _send(fake_db, user, "Ocio", replies)
        assert replies.last == RESTRICTED_PROMPT
        assert fake_db.plans == {}


# ─────────────────────────────────────────────
#  Comandos
# ─────────────────────────────────────────────

class TestCommands:
    @pytest.mark.asyncio
    async def test_empty_message_not_handled(self, fake_db, replies):
        user = fake_db.add_user("Ana")
        assert await _send(fake_db, user, "   ", replies) == NOT_HANDLED
        assert replies.messages == []

    @pytest.mark.asyncio
    async def test_balance_keyword_is_normalized(self, fake_db, replies):
        user = fake_db.add_user("Ana")
        fake_db.add_tx(user, 100, "INCOME", "salario", billing_cycle.now())
        result = await _send(fake_db, user, "  /SALDO ", replies)
        assert result == Handled("finance")
        assert "$100.00" in replies.last

    @pytest.mark.asyncio
    async def test_dashboard_link(self, fake_db, replies):
        user = fake_db.add_user("Ana")
        await _send(fake_db, user, "panel", replies)
        token = fake_db.users[user.id].dashboard_token
        assert token and f"token={token}" in replies.last

    @pytest.mark.asyncio
    async def test_summary_includes_gamification_and_family(self, fake_db, replies):
        family = fake_db.add_family(name="Silva")
        user = fake_db.add_user("Ana", family=family, xp=30)
        fake_db.add_tx(user, 80, "EXPENSE", "ocio", billing_cycle.now())

        await _send(fake_db, user, "resumen", replies)

        assert "$80.00" in replies.last
        assert "Gamificación" in replies.last
        assert "Familia: Silva" in replies.last

    @pytest.mark.asyncio
    async def test_limit_command(self, fake_db, replies):
        user = fake_db.add_user("Ana")
        await _send(fake_db, user, "/limite Comida Rápida 5000", replies)
        assert "Comida Rápida" in replies.last
        assert len(fake_db.budgets) == 1

    @pytest.mark.asyncio
    async def test_limit_rejects_percentage(self, fake_db, replies):
        user = fake_db.add_user("Ana")
        await _send(fake_db, user, "/limite Ocio 10%", replies)
        assert replies.last.startswith("❌")
        assert fake_db.budgets == {}

    @pytest.mark.asyncio
    async def test_family_create_join_and_report(self, fake_db, replies):
        ana = fake_db.add_user("Ana")
        beto = fake_db.add_user("Beto")

        await _send(fake_db, ana, "/familia crear Casa Silva", replies)
        family = next(iter(fake_db.families.values()))
        assert family.name == "Casa Silva"
        assert family.invite_code in replies.last

        await _send(fake_db, beto, f"/familia unirse [{family.invite_code.lower()}]", replies)
        assert "Te uniste" in replies.last

        await _send(fake_db, beto, "/familia", replies)
        assert "2 miembros" in replies.last

    @pytest.mark.asyncio
    async def test_family_report_without_family(self, fake_db, replies):
        user = fake_db.add_user("Ana")
        await _send(fake_db, user, "familia", replies)
        assert "Todavía no sos parte de una familia" in replies.last

    @pytest.mark.asyncio
    async def test_plan_command_flow(self, fake_db, replies):
        user = fake_db.add_user("Ana")

        await _send(fake_db, user, "/plan crear Comida Fuera 500", replies)
        assert "Plan creado" in replies.last
        await _send(fake_db, user, "/plan editar comida fuera 10%", replies)
        assert "10%" in replies.last
        await _send(fake_db, user, "/plan renombrar Comida Salidas", replies)
        assert replies.last.startswith("❌")
        await _send(fake_db, user, "/planificacion", replies)
        assert "Comida Fuera: 10%" in replies.last
        assert replies.messages[-1][1]   # botones crear/editar/borrar

        await _send(fake_db, user, "/plan borrar COMIDA FUERA", replies)
        assert "eliminado" in replies.last
        assert [p.status for p in fake_db.plans.values()] == ["REJECTED"]

    @pytest.mark.asyncio
    async def test_plan_approval_by_admin(self, fake_db, replies):
        family = fake_db.add_family()
        ana = fake_db.add_user("Ana", family=family)
        beto = fake_db.add_user("Beto", family=family)
        fake_db.families[family.id].admin_id = ana.id

        await _send(fake_db, beto, "/plan crear Lazer 300", replies)
        assert "Sugerencia enviada" in replies.last
        plan = fake_db.plans_by_category("lazer")[0]

        await _send(fake_db, beto, f"/plan aprobar {plan.id}", replies)
        assert replies.last == "❌ Solo el administrador de la familia puede aprobar planes."

        await _send(fake_db, ana, f"/plan aprobar {plan.id}", replies)
        assert "aprobado" in replies.last
        assert fake_db.plans[plan.id].status == "ACTIVE"

    @pytest.mark.asyncio
    async def test_plan_rejection_by_admin(self, fake_db, replies):
        family = fake_db.add_family()
        ana = fake_db.add_user("Ana", family=family)
        beto = fake_db.add_user("Beto", family=family)
        fake_db.families[family.id].admin_id = ana.id
        await _send(fake_db, beto, "/plan crear Ropa 80", replies)
        plan = fake_db.plans_by_category("ropa")[0]

        await _send(fake_db, ana, f"/plan rechazar {plan.id}", replies)
        assert "rechazado" in replies.last
        assert fake_db.plans[plan.id].status == "REJECTED"

        await _send(fake_db, ana, f"/plan aprobar {plan.id}", replies)
        assert replies.last.startswith("❌")
        assert fake_db.plans[plan.id].status == "REJECTED"

        await _send(fake_db, ana, "/plan rechazar", replies)
        assert replies.last == "⚠️ Usá: `/plan rechazar [ID]`"

    @pytest.mark.asyncio
    async def test_help_menu_and_topics(self, fake_db, replies):
        user = fake_db.add_user("Ana")

        await _send(fake_db, user, "ayuda", replies)
        assert replies.messages[-1] == (HELP_MENU, HELP_OPTIONS)

        await _send(fake_db, user, "/ayuda Planificación", replies)
        assert "Ayuda: Planificación" in replies.last

        await _send(fake_db, user, "/ayuda cocina", replies)
        assert "Tema no encontrado" in replies.last

    @pytest.mark.asyncio
    async def test_set_name_keeps_casing(self, fake_db, replies):
        user = fake_db.add_user("ana")
        await _send(fake_db, user, "/nombre Ana María", replies)
        assert fake_db.users[user.id].name == "Ana María"

        await _send(fake_db, user, "/nombre", replies)
        assert "Usá" in replies.last


# ─────────────────────────────────────────────
#  Etapa de IA
# ─────────────────────────────────────────────

class TestAiFallback:
    @pytest.mark.asyncio
    @patch("chat.commands.transaction.parse_transaction", new_callable=AsyncMock)
    async def test_records_transaction(self, mock_parse, fake_db, replies):
        mock_parse.return_value = PARSED_EXPENSE
        user = fake_db.add_user("Ana")

        result = await _send(fake_db, user, "gasté 50 en pizza", replies)

        assert result == Handled("ai")
        mock_parse.assert_awaited_once_with("gasté 50 en pizza")
        assert "Gasto registrado" in replies.last
        assert "Primer Paso" in replies.last
        assert len(fake_db.transactions) == 1
        assert fake_db.users[user.id].xp == 60

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["Plan celular 3000", "plan de salud 8000", "familia cena 5000"])
    @patch("chat.commands.transaction.parse_transaction", new_callable=AsyncMock)
    async def test_keyword_prefixed_expense_reaches_parser(self, mock_parse, fake_db, replies, text):
        mock_parse.return_value = {**PARSED_EXPENSE, "amount": 3000.0, "category": "servicios"}
        user = fake_db.add_user("Ana")

        result = await _send(fake_db, user, text, replies)

        assert result == Handled("ai")
        mock_parse.assert_awaited_once_with(text)
        assert len(fake_db.transactions) == 1

    @pytest.mark.asyncio
    @patch("chat.commands.transaction.parse_transaction", new_callable=AsyncMock)
    async def test_slash_plan_with_unknown_action_lists_plans(self, mock_parse, fake_db, replies):
        user = fake_db.add_user("Ana")

        result = await _send(fake_db, user, "/plan celular", replies)

        assert result == Handled("planning")
        assert "Planificación financiera" in replies.last
        mock_parse.assert_not_called()

    @pytest.mark.asyncio
    @patch("chat.commands.transaction.parse_transaction", new_callable=AsyncMock)
    async def test_budget_alert_is_appended(self, mock_parse, fake_db, replies):
        mock_parse.return_value = PARSED_EXPENSE
        user = fake_db.add_user("Ana")
        await _send(fake_db, user, "/limite Ocio 55", replies)

        await _send(fake_db, user, "gasté 50 en pizza", replies)

        assert "Alerta de presupuesto" in replies.last

    @pytest.mark.asyncio
    @patch("chat.commands.transaction.parse_transaction", new_callable=AsyncMock)
    async def test_not_understood(self, mock_parse, fake_db, replies):
        mock_parse.return_value = None
        user = fake_db.add_user("Ana")
        await _send(fake_db, user, "saldo de la tarjeta", replies)
        assert replies.last == NOT_UNDERSTOOD
        assert fake_db.transactions == []

    @pytest.mark.asyncio
    async def test_timeout_is_not_understood(self, fake_db, replies):
        async def slow(text):
            await asyncio.sleep(1)
            return PARSED_EXPENSE

        user = fake_db.add_user("Ana")
        with patch("chat.commands.transaction.parse_transaction", slow), \
                patch("chat.commands.transaction.AI_TIMEOUT_SECONDS", 0.01):
            await _send(fake_db, user, "gasté 50", replies)

        assert replies.last == NOT_UNDERSTOOD
        assert fake_db.transactions == []


# ─────────────────────────────────────────────
#  Borde de errores
# ─────────────────────────────────────────────

class TestErrorBoundary:
    @pytest.mark.asyncio
    async def test_agent_error_becomes_message(self, fake_db, replies):
        user = fake_db.add_user("Ana")
        result = await _send(fake_db, user, "/plan crear Ocio mucho", replies)
        assert result == Handled("planning")
        assert replies.last.startswith("❌ Valor inválido")

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic_and_isolated(self, fake_db, replies):
        user = fake_db.add_user("Ana")
        with patch("chat.commands.finance.ReportService.get_balance", side_effect=RuntimeError("db caída")):
            result = await _send(fake_db, user, "saldo", replies)
        assert result == Handled("finance")
        assert replies.last == GENERIC_ERROR

        await _send(fake_db, user, "saldo", replies)
        assert "Tu saldo actual" in replies.last

    @pytest.mark.asyncio
    @patch("chat.commands.transaction.parse_transaction", new_callable=AsyncMock)
    async def test_ai_failure_is_generic(self, mock_parse, fake_db, replies):
        mock_parse.side_effect = ConnectionError("groq")
        user = fake_db.add_user("Ana")
        await _send(fake_db, user, "gasté 10", replies)
        assert replies.last == GENERIC_ERROR


# ─────────────────────────────────────────────
#  Concurrencia
# ─────────────────────────────────────────────

class TestPerUserSerialization:
    @pytest.mark.asyncio
    async def test_same_user_waits_other_users_do_not(self, fake_db, reply_factory):
        ana = fake_db.add_user("Ana")
        beto = fake_db.add_user("Beto")
        ana_replies, beto_replies = reply_factory(), reply_factory()
        release = asyncio.Event()

        async def blocked_parse(text):
            await release.wait()
            return None

        with patch("chat.commands.transaction.parse_transaction", blocked_parse):
            first = asyncio.create_task(_send(fake_db, ana, "algo largo", ana_replies))
            await asyncio.sleep(0.01)
            second = asyncio.create_task(_send(fake_db, ana, "saldo", ana_replies))

            await _send(fake_db, beto, "saldo", beto_replies)
            await asyncio.sleep(0.01)
            assert "Tu saldo actual" in beto_replies.last
            assert not second.done()

            release.set()
            await asyncio.gather(first, second)

        assert ana_replies.texts[0] == NOT_UNDERSTOOD
        assert "Tu saldo actual" in ana_replies.texts[1]

    @pytest.mark.asyncio
    async def test_locks_are_dropped_once_released(self, fake_db, reply_factory):
        ana = fake_db.add_user("Ana")
        replies = reply_factory()
        release = asyncio.Event()

        async def blocked_parse(text):
            await release.wait()
            return None

        with patch("chat.commands.transaction.parse_transaction", blocked_parse):
            first = asyncio.create_task(_send(fake_db, ana, "algo largo", replies))
            second = asyncio.create_task(_send(fake_db, ana, "otro texto", replies))
            await asyncio.sleep(0.01)
            assert list(pipeline._user_locks) == [ana.id]

            release.set()
            await asyncio.gather(first, second)

        assert pipeline._user_locks == {}

        for i in range(5):
            await _send(fake_db, fake_db.add_user(f"Usuario{i}"), "saldo", reply_factory())
        assert pipeline._user_locks == {}


# ─────────────────────────────────────────────
#  Audio y comprobantes
# ─────────────────────────────────────────────

class TestVoice:
    @pytest.mark.asyncio
    @patch("chat.pipeline.transcribe_audio", new_callable=AsyncMock)
    async def test_transcribed_text_goes_through_pipeline(self, mock_transcribe, fake_db, replies):
        mock_transcribe.return_value = "saldo"
        user = fake_db.add_user("Ana")

        await process_voice_message(fake_db.UserRepo.get_by_id(user.id), b"ogg", replies)

        assert replies.texts[0] == "🎤 Procesando audio…"
        assert replies.texts[1] == "🎙️ Entendí: _saldo_"
        assert "Tu saldo actual" in replies.last

    @pytest.mark.asyncio
    @patch("chat.pipeline.transcribe_audio", new_callable=AsyncMock)
    async def test_empty_transcription(self, mock_transcribe, fake_db, replies):
        mock_transcribe.return_value = None
        user = fake_db.add_user("Ana")
        result = await process_voice_message(fake_db.UserRepo.get_by_id(user.id), b"ogg", replies)
        assert result == Handled("voice")
        assert replies.last == "❌ No pude entender el audio."

    @pytest.mark.asyncio
    @patch("chat.pipeline.transcribe_audio", new_callable=AsyncMock)
    async def test_transcription_error(self, mock_transcribe, fake_db, replies):
        mock_transcribe.side_effect = RuntimeError("whisper")
        user = fake_db.add_user("Ana")
        await process_voice_message(fake_db.UserRepo.get_by_id(user.id), b"ogg", replies)
        assert replies.last == GENERIC_ERROR

    @pytest.mark.asyncio
    @patch("chat.pipeline.transcribe_audio", new_callable=AsyncMock)
    async def test_unauthorized_voice_hits_gate(self, mock_transcribe, fake_db, replies):
        mock_transcribe.return_value = "gasté 50"
        user = fake_db.add_user("Ana", authorized=False)
        await process_voice_message(fake_db.UserRepo.get_by_id(user.id), b"ogg", replies)
        assert replies.last == RESTRICTED_PROMPT


class TestReceipt:
    @pytest.mark.asyncio
    @patch("chat.pipeline.analyze_receipt_image", new_callable=AsyncMock)
    async def test_receipt_is_recorded(self, mock_ocr, fake_db, replies):
        mock_ocr.return_value = {**PARSED_EXPENSE, "category": "alimentación"}
        user = fake_db.add_user("Ana")

        result = await process_receipt_image(fake_db.UserRepo.get_by_id(user.id), b"img", replies)

        assert result == Handled("receipt")
        assert replies.last.startswith("🧾 *¡Comprobante procesado!*")
        assert fake_db.transactions[0].category == "alimentación"

    @pytest.mark.asyncio
    @patch("chat.pipeline.analyze_receipt_image", new_callable=AsyncMock)
    async def test_unreadable_receipt(self, mock_ocr, fake_db, replies):
        mock_ocr.return_value = None
        user = fake_db.add_user("Ana")
        await process_receipt_image(fake_db.UserRepo.get_by_id(user.id), b"img", replies)
        assert "No pude leer el comprobante" in replies.last
        assert fake_db.transactions == []

    @pytest.mark.asyncio
    @patch("chat.pipeline.analyze_receipt_image", new_callable=AsyncMock)
    async def test_unauthorized_receipt(self, mock_ocr, fake_db, replies):
        user = fake_db.add_user("Ana", authorized=False)
        result = await process_receipt_image(fake_db.UserRepo.get_by_id(user.id), b"img", replies)
        assert result == Handled("auth")
        assert replies.texts == [RESTRICTED_PROMPT]
        mock_ocr.assert_not_called()
