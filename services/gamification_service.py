"""
services/gamification_service.py
─────────────────────────────────
XP, niveles, rachas y logros.

  - Cada transacción registrada suma 10 XP; nivel = 1 + xp // 100.
  - Racha: se cuenta por días calendario (zona de config.TIMEZONE).
    Otra actividad el mismo día no cambia nada, la del día siguiente
    suma uno y un día sin actividad la vuelve a 1. Como cuenta días y no
    horas, que add_xp refresque last_activity no frena la racha.
  - Logros: se desbloquean una sola vez y suman XP extra.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from database.models import User
from database.repositories import AchievementRepo, TransactionRepo, UserRepo
from services import billing_cycle
from services.exceptions import UserNotFound

logger = logging.getLogger(__name__)

XP_PER_TRANSACTION = 10
XP_PER_LEVEL = 100


@dataclass(frozen=True)
class Achievement:
    name: str
    description: str
    icon: str
    xp_reward: int


FIRST_STEP = Achievement("Primer Paso", "Registraste tu primer movimiento", "🎯", 50)
FULL_WEEK = Achievement("Semana Completa", "Registraste movimientos 7 días seguidos", "🔥", 100)


@dataclass
class UserStats:
    level: int
    xp: int
    streak: int
    achievements: int


def level_for(xp: int) -> int:
    return 1 + xp // XP_PER_LEVEL


class GamificationService:

    @classmethod
    def add_xp(cls, user_id: str, amount: int) -> User:
        user = UserRepo.get_by_id(user_id)
        if user is None:
            raise UserNotFound("Usuario no encontrado.")
        xp = user.xp + amount
        updated = UserRepo.update(user_id, {
            "xp": xp,
            "level": level_for(xp),
            "last_activity": billing_cycle.now(),
        })
        if updated.level > user.level:
            logger.info("Usuario %s subió a nivel %d", user_id, updated.level)
        return updated

    @classmethod
    def update_streak(cls, user: User, now: Optional[datetime] = None) -> User:
        """Actualiza la racha diaria según la última actividad."""
        now = now or billing_cycle.now()
        last = user.last_activity

        if last is None:
            return UserRepo.update(user.id, {"streak": 1, "last_activity": now})

        days = (billing_cycle.local_date(now) - billing_cycle.local_date(last)).days
        if days <= 0:
            return user
        if days == 1:
            return UserRepo.update(user.id, {"streak": user.streak + 1, "last_activity": now})
        return UserRepo.update(user.id, {"streak": 1, "last_activity": now})

    @classmethod
    def check_achievements(cls, user_id: str) -> list[str]:
        """Desbloquea los logros alcanzados y retorna un mensaje por cada uno."""
        user = UserRepo.get_by_id(user_id)
        if user is None:
            return []

        earned: list[Achievement] = []
        if TransactionRepo.count_by_user(user_id) == 1:
            earned.append(FIRST_STEP)
        if user.streak >= 7:
            earned.append(FULL_WEEK)

        messages = []
        for achievement in earned:
            if not AchievementRepo.unlock(user_id, achievement.name):
                continue
            cls.add_xp(user_id, achievement.xp_reward)
            logger.info("Logro '%s' desbloqueado por %s", achievement.name, user_id)
            messages.append(
                f"🎉 Logro desbloqueado: {achievement.icon} {achievement.name}! "
                f"(+{achievement.xp_reward} XP)"
            )
        return messages

    @classmethod
    def get_user_stats(cls, user_id: str) -> Optional[UserStats]:
        user = UserRepo.get_by_id(user_id)
        if user is None:
            return None
        return UserStats(
            level=user.level,
            xp=user.xp,
            streak=user.streak,
            achievements=len(AchievementRepo.list_names(user_id)),
        )

    @staticmethod
    def format_stats(stats: UserStats) -> str:
        return (
            "\n🎮 *Gamificación*\n"
            f"⭐ Nivel: {stats.level} ({stats.xp} XP)\n"
            f"🔥 Racha: {stats.streak} días\n"
            f"🏆 Logros: {stats.achievements}"
        )
