"""
chat/states.py
───────────────
Estados de los asistentes de planificación.
Mantiene todos los estados en un único lugar para evitar colisiones.
"""

# ── Crear plan ────────────────────────────────
PLAN_CREATE_CATEGORY = "PLAN_CREATE_CATEGORY"
PLAN_CREATE_AMOUNT = "PLAN_CREATE_AMOUNT"

# ── Borrar plan ───────────────────────────────
PLAN_DELETE_CATEGORY = "PLAN_DELETE_CATEGORY"

# ── Editar plan ───────────────────────────────
PLAN_EDIT_CATEGORY = "PLAN_EDIT_CATEGORY"
PLAN_EDIT_OPTION = "PLAN_EDIT_OPTION"
PLAN_EDIT_NEW_NAME = "PLAN_EDIT_NEW_NAME"
PLAN_EDIT_NEW_VALUE = "PLAN_EDIT_NEW_VALUE"

ALL_STATES = frozenset({
    PLAN_CREATE_CATEGORY,
    PLAN_CREATE_AMOUNT,
    PLAN_DELETE_CATEGORY,
    PLAN_EDIT_CATEGORY,
    PLAN_EDIT_OPTION,
    PLAN_EDIT_NEW_NAME,
    PLAN_EDIT_NEW_VALUE,
})
