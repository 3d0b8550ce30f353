from __future__ import annotations

import enum


class Branch(str, enum.Enum):
    tashkent = "ТАШКЕНТ"
    samarkand = "САМАРКАНД"
    bukhara = "БУХАРА"
    namangan = "НАМАНГАН"
    andijan = "АНДИЖАН"
    fergana = "ФЕРГАНА"
    nukus = "НУКУС"
    shymkent = "ШЫМКЕНТ"
